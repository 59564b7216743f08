"""
The `smelt` command line: resolve the project configuration, then run one of
the named task graphs.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from .config import Config, deep_merge, resolve
from .core import TaskError, run
from .dependencies import unsatisfied
from .pipeline import GRAPH_NAMES, Pipeline
from .pretty_utils import print_with_style


def pprint_transform(transform: object, dependencies: set):
    """
    Prettily display dependency information for a Transform or deployer.
    """
    missing = unsatisfied(dependencies)
    if missing:
        text = ', '.join(f'{d} ({d.install_hint})' for d in missing)
        print_with_style(f'✗ {transform!r} (missing: {text})', style='red')
    else:
        print_with_style(f'✓ {transform!r}', style='green')


def audit(pipeline: Pipeline):
    """
    Show which of the pipeline's Transforms have their requirements met.
    """
    for transform in pipeline.transforms:
        pprint_transform(transform, set(transform.get_dependencies()))
    pprint_transform(pipeline.bundler, set(pipeline.bundler.get_dependencies()))
    pprint_transform(pipeline.deployer, set(pipeline.deployer.get_dependencies()))


def parse_args(arguments: list[str] | None = None):
    parser = argparse.ArgumentParser(prog='smelt', description='Build a front-end project.')
    parser.add_argument('task',
                        nargs='?',
                        choices=GRAPH_NAMES,
                        default='build',
                        help='task to run (default: build)')
    parser.add_argument('-C', '--directory',
                        help='project directory holding the config files (default: current directory)',
                        type=Path,
                        default=None)
    parser.add_argument('-p', '--port',
                        help='port for the development server, overriding the config',
                        type=int,
                        default=None)
    parser.add_argument('--audit',
                        help='show the availability of every transform instead of running a task',
                        action='store_true')
    return parser.parse_args(arguments)


def main(arguments: list[str] | None = None):
    """
    smelt main function.
    """
    args = parse_args(arguments)
    overrides = {'server': {'port': args.port}} if args.port is not None else {}
    config = resolve(working_dir=args.directory.resolve() if args.directory else None)
    if overrides:
        config = Config(deep_merge(config.to_dict(), overrides), config.root)

    pipeline = Pipeline(config)
    if args.audit:
        audit(pipeline)
        return

    try:
        asyncio.run(run(pipeline.graph(args.task)))
    except TaskError as e:
        print_with_style(f"{args.task}: {e}", file='stderr', style='red')
        sys.exit(1)
    except KeyboardInterrupt:
        print_with_style('Interrupted', style='yellow')


if __name__ == '__main__':
    main()
