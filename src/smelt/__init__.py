"""
smelt is a front-end asset pipeline: it compiles styles, scripts, and pages,
optimizes images and fonts, bundles and minifies production output, serves a
live-reloading preview, and publishes the result, all orchestrated as a graph
of parallel and sequential tasks.
"""
from .config import DEFAULTS, Config, InputConfig, deep_merge, resolve
from .core import Combinator, Composite, Node, Task, TaskError, parallel, run, series
from .deploy import DeployError, GitPagesDeployer
from .images import PillowOptimizeTransform
from .jinja import JinjaRenderTransform
from .minify import BundleError, CSSMinifierTransform, HTMLMinifierTransform, JSMinifierTransform, UserefBundler
from .paths import GlobMatcher, find_files
from .pipeline import Pipeline
from .server import LiveReloadChannel, LiveReloadServer, ReloadChannel, SearchPath, ThreadedHTTPServer
from .scripts import BabelTransform
from .simple import Asset, BaseCommandTransform, BaseTextTransform, Transform, TransformError, TransformUnavailableError
from .styles import SassTransform
from .tasks import BundleTask, CleanTask, DeployTask, FileTransformTask, LintTask
from .watch import DevServer, ServeTask, WatchBinding
