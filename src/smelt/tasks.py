"""
The Tasks making up a build: file transforms, cleaning, bundling, linting,
and deployment. Each does its blocking work in a worker thread so that tasks
combined with `parallel()` overlap.
"""
from __future__ import annotations

import asyncio
import shutil
import subprocess
import typing as t
from pathlib import Path, PurePath

from .core import Task
from .minify import UserefBundler
from .paths import OutputPathCalc, Patterns, find_files
from .simple import Asset, Transform, TransformError, apply_transforms

if t.TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from .deploy import GitPagesDeployer
    from .server import ReloadChannel


def _remove(path: Path):
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _write(out_dir: Path, asset: Asset):
    target = out_dir / asset.path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(asset.contents)


class CleanTask(Task):
    """
    Recursively delete @paths. Paths that do not exist are ignored.
    """
    def __init__(self, name: str, paths: Sequence[Path]):
        super().__init__(name)
        self.paths = list(paths)

    async def execute(self):
        for path in self.paths:
            await asyncio.to_thread(_remove, path)


class FileTransformTask(Task):
    """
    Read every file under @cwd matching @patterns, run it through
    @transforms in order, and write the result into @out_dir at its path
    relative to @base (which defaults to @cwd). Once every file is written,
    @channel is notified of the written paths.
    """
    def __init__(self,
                 name: str,
                 patterns: Patterns,
                 cwd: Path,
                 out_dir: Path,
                 transforms: Sequence[Transform] = (),
                 base: Path | None = None,
                 channel: ReloadChannel | None = None):
        super().__init__(name)
        self.patterns = patterns
        self.cwd = cwd
        self.out_dir = out_dir
        self.transforms = list(transforms)
        self.base = base or cwd
        self.channel = channel

    def find_inputs(self):
        return find_files(self.cwd, self.patterns)

    def process(self, inputs: list[Path]) -> list[PurePath]:
        """
        Transform and write @inputs, returning the written relative paths.
        The first failing file aborts the task.
        """
        for transform in self.transforms:
            transform.ensure_available()
        calc = OutputPathCalc(self.base)

        written = []
        for path in inputs:
            asset = apply_transforms(
                Asset(calc(path), path.read_bytes(), path),
                self.transforms
            )
            if asset is not None:
                _write(self.out_dir, asset)
                written.append(asset.path)
        return written

    def build(self) -> list[PurePath]:
        """
        Create @out_dir, then find and process the inputs. Runs in a worker
        thread.
        """
        self.out_dir.mkdir(parents=True, exist_ok=True)
        inputs = self.find_inputs()
        if not inputs:
            return []
        return self.process(inputs)

    async def execute(self):
        written = await asyncio.to_thread(self.build)
        if written and self.channel:
            self.channel.notify(written)


class BundleTask(FileTransformTask):
    """
    Bundle the build blocks of every page matching @patterns under @cwd using
    `UserefBundler`, then minify each page and bundle with the Transforms in
    @minifiers keyed by file suffix, and write them into @out_dir.
    """
    def __init__(self,
                 name: str,
                 patterns: Patterns,
                 cwd: Path,
                 out_dir: Path,
                 bundler: UserefBundler,
                 minifiers: Mapping[str, Sequence[Transform]] | None = None,
                 channel: ReloadChannel | None = None):
        super().__init__(name, patterns, cwd, out_dir, channel=channel)
        self.bundler = bundler
        self.minifiers = dict(minifiers or {})

    def process(self, inputs: list[Path]):
        self.bundler.ensure_available()
        for transforms in self.minifiers.values():
            for transform in transforms:
                transform.ensure_available()
        calc = OutputPathCalc(self.base)

        written = []
        for path in inputs:
            page = Asset(calc(path), path.read_bytes(), path)
            try:
                outputs = self.bundler(page)
            except TransformError:
                raise
            except OSError as e:
                raise TransformError(path, str(e)) from e
            for output in outputs:
                minified = apply_transforms(output, self.minifiers.get(output.path.suffix, ()))
                if minified is not None:
                    _write(self.out_dir, minified)
                    written.append(minified.path)
        return written


class LintTask(Task):
    """
    Run an external linter @command in @cwd with every file matching
    @patterns appended as arguments. A non-zero exit fails the task.
    """
    def __init__(self, name: str, patterns: Patterns, cwd: Path, command: Sequence[str]):
        super().__init__(name)
        self.patterns = patterns
        self.cwd = cwd
        self.command = list(command)

    def lint(self, inputs: list[Path]):
        result = subprocess.run(
            [*self.command, *(str(p.relative_to(self.cwd)) for p in inputs)],
            cwd=self.cwd,
            capture_output=True,
            text=True
        )
        if result.returncode:
            output = (result.stdout + result.stderr).strip()
            raise RuntimeError(f'{self.command[0]} exited with status {result.returncode}\n{output}')

    async def execute(self):
        inputs = find_files(self.cwd, self.patterns)
        if inputs:
            await asyncio.to_thread(self.lint, inputs)


class DeployTask(Task):
    """
    Upload everything in @dist_dir using @deployer.
    """
    def __init__(self, name: str, dist_dir: Path, deployer: GitPagesDeployer):
        super().__init__(name)
        self.dist_dir = dist_dir
        self.deployer = deployer

    async def execute(self):
        await asyncio.to_thread(self.deployer, self.dist_dir)
