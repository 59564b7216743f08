"""
The standard asset pipeline: every named Task, and the task graphs the CLI
exposes, built from one Config.
"""
from __future__ import annotations

import typing as t

from .core import Node, parallel, series
from .deploy import GitPagesDeployer
from .images import PillowOptimizeTransform
from .jinja import JinjaRenderTransform
from .minify import CSSMinifierTransform, HTMLMinifierTransform, JSMinifierTransform, UserefBundler
from .server import LiveReloadChannel
from .scripts import BabelTransform
from .styles import SassTransform
from .tasks import BundleTask, CleanTask, DeployTask, FileTransformTask, LintTask
from .watch import ServeTask

if t.TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from .config import Config
    from .simple import Transform


GRAPH_NAMES = ('clean', 'lint', 'compile', 'serve', 'build', 'start', 'deploy', 'link', 'upload')
SCRIPT_LINT_COMMAND = ('npx', '--no-install', 'standard', '--fix')
STYLE_LINT_COMMAND = ('npx', '--no-install', 'stylelint', '--fix')


class Pipeline:
    """
    Builds the Tasks of a project from @config. Each keyword argument
    replaces the default Transforms used for that kind of asset; @channel
    receives reload notifications from the style, script, and page Tasks.
    """
    def __init__(self,
                 config: Config,
                 channel: LiveReloadChannel | None = None,
                 *,
                 styles: Sequence[Transform] | None = None,
                 scripts: Sequence[Transform] | None = None,
                 pages: Sequence[Transform] | None = None,
                 images: Sequence[Transform] | None = None,
                 fonts: Sequence[Transform] | None = None,
                 minifiers: Mapping[str, Sequence[Transform]] | None = None,
                 deployer: GitPagesDeployer | None = None):
        self.config = config
        self.channel = channel or LiveReloadChannel()
        src, temp, dist = config.src_dir, config.temp_dir, config.dist_dir

        self.style_transforms = list(styles if styles is not None else [SassTransform()])
        self.script_transforms = list(scripts if scripts is not None else [BabelTransform()])
        self.page_transforms = list(pages if pages is not None else [JinjaRenderTransform(src, config.data)])
        self.image_transforms = list(images if images is not None else [PillowOptimizeTransform()])
        self.font_transforms = list(fonts if fonts is not None else [PillowOptimizeTransform()])
        self.minifiers = dict(minifiers if minifiers is not None else {
            '.js': [JSMinifierTransform()],
            '.css': [CSSMinifierTransform()],
            '.html': [HTMLMinifierTransform()],
        })
        deploy = config['deploy']
        self.deployer = deployer or GitPagesDeployer(
            config.root,
            remote=deploy['remote'],
            branch=deploy['branch'],
            message=deploy['message'],
            force=deploy['force']
        )

        self.clean = CleanTask('clean', [dist, temp])
        self.style = FileTransformTask(
            'style', config.pattern('styles'), src, temp, self.style_transforms, channel=self.channel
        )
        self.script = FileTransformTask(
            'script', config.pattern('scripts'), src, temp, self.script_transforms, channel=self.channel
        )
        self.page = FileTransformTask(
            'page', self.page_pattern, src, temp, self.page_transforms, channel=self.channel
        )
        self.image = FileTransformTask('image', config.pattern('images'), src, dist, self.image_transforms)
        self.font = FileTransformTask('font', config.pattern('fonts'), src, dist, self.font_transforms)
        self.extra = FileTransformTask('extra', '**', config.public_dir, dist)
        self.bundler = UserefBundler([temp, config.root], config.root)
        self.useref = BundleTask('useref', self.page_pattern, temp, dist, self.bundler, self.minifiers)
        self.upload = DeployTask('upload', dist, self.deployer)
        self.lint_styles = LintTask('lint-styles', config.pattern('styles'), src, STYLE_LINT_COMMAND)
        self.lint_scripts = LintTask('lint-scripts', config.pattern('scripts'), src, SCRIPT_LINT_COMMAND)
        self.serve = ServeTask('serve', config, self)

    @property
    def page_pattern(self):
        """
        Pages are matched at any depth below the source directory.
        """
        return '**/' + self.config.pattern('pages')

    @property
    def transforms(self) -> list[Transform]:
        """
        Every distinct Transform this pipeline may use.
        """
        found: list[Transform] = []
        for group in [
            self.style_transforms, self.script_transforms, self.page_transforms,
            self.image_transforms, self.font_transforms, *self.minifiers.values(),
        ]:
            found.extend(tr for tr in group if tr not in found)
        return found

    def graphs(self) -> dict[str, Node]:
        """
        Return every named task graph. Concurrent Tasks in these graphs always
        write to disjoint paths.

        `deploy` runs the full `build` before `upload` rather than only
        `compile`, since `compile` never refreshes `dist/` and would publish
        whatever stale output was left there.
        """
        compile_ = parallel(self.style, self.script, self.page, name='compile')
        build = series(
            self.clean,
            parallel(self.extra, self.image, self.font, series(compile_, self.useref)),
            name='build'
        )
        return {
            'clean': self.clean,
            'lint': parallel(self.lint_styles, self.lint_scripts, name='lint'),
            'compile': compile_,
            'serve': self.serve,
            'build': build,
            'start': series(build, self.serve, name='start'),
            'deploy': series(build, self.upload, name='deploy'),
            'link': parallel(self.style, self.script, name='link'),
            'upload': self.upload,
        }

    def graph(self, name: str) -> Node:
        try:
            return self.graphs()[name]
        except KeyError as e:
            raise KeyError(f'Unknown task {name!r}, choose from {", ".join(GRAPH_NAMES)}') from e
