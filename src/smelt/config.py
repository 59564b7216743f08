"""
Configuration defaults, override loading, and the frozen Config object shared
by every task in a build.
"""
from __future__ import annotations

import runpy
import types
import typing as t
from collections.abc import Mapping
from pathlib import Path

from .pretty_utils import print_with_style


CONFIG_FILES = ('pages.config.py', 'deploy.config.py')
CONFIG_ATTRIBUTE = 'CONFIG'
AssetKind = t.Literal['styles', 'scripts', 'pages', 'images', 'fonts']
BuildDir = t.Literal['src', 'dist', 'temp', 'public']


class InputPaths(t.TypedDict, total=False):
    """
    TypedDict for per-asset-kind glob patterns, relative to the source
    directory.
    """
    styles: str
    scripts: str
    pages: str
    images: str
    fonts: str


class InputBuildConfig(t.TypedDict, total=False):
    """
    TypedDict for the directory layout of a project.
    """
    src: str
    dist: str
    temp: str
    public: str
    paths: InputPaths


class InputServerConfig(t.TypedDict, total=False):
    """
    TypedDict for development server options.
    """
    host: str
    port: int
    routes: dict[str, str]


class InputDeployConfig(t.TypedDict, total=False):
    """
    TypedDict for deployment options.
    """
    remote: str
    branch: str
    message: str
    force: bool


class InputConfig(t.TypedDict, total=False):
    """
    TypedDict for the CONFIG mapping exported by a config file. Every key is
    optional; missing keys fall back to DEFAULTS.
    """
    build: InputBuildConfig
    data: dict[str, t.Any]
    server: InputServerConfig
    deploy: InputDeployConfig


DEFAULTS: InputConfig = {
    'build': {
        'src': 'src',
        'dist': 'dist',
        'temp': 'temp',
        'public': 'public',
        'paths': {
            'styles': 'assets/styles/*.scss',
            'scripts': 'assets/scripts/*.js',
            'pages': '*.html',
            'images': 'assets/images/**',
            'fonts': 'assets/fonts/**',
        },
    },
    'data': {},
    'server': {
        'host': 'localhost',
        'port': 2080,
        'routes': {
            '/node_modules': 'node_modules',
        },
    },
    'deploy': {
        'remote': 'origin',
        'branch': 'gh-pages',
        'message': 'Update site',
        'force': False,
    },
}


def deep_merge(base: Mapping[str, t.Any], override: Mapping[str, t.Any]) -> dict[str, t.Any]:
    """
    Return a new dict combining @base and @override. Mappings present in both
    are merged recursively; any other value in @override, lists included,
    replaces the value in @base.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def freeze(value: t.Any) -> t.Any:
    """
    Recursively convert mappings to read-only proxies and lists to tuples.
    """
    if isinstance(value, Mapping):
        return types.MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: t.Any) -> t.Any:
    """
    Undo `freeze()`, producing plain dicts and lists.
    """
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


class Config:
    """
    An immutable, fully resolved configuration rooted at a project directory.
    """
    def __init__(self, values: Mapping[str, t.Any], root: Path):
        self._values: Mapping[str, t.Any] = freeze(values)
        self.root = root

    def __getitem__(self, key: str) -> t.Any:
        return self._values[key]

    def __contains__(self, key: object):
        return key in self._values

    def __eq__(self, other: object):
        if not isinstance(other, Config):
            return NotImplemented
        return self.root == other.root and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f'{self.__class__.__name__}({self.to_dict()!r}, root={self.root!r})'

    def to_dict(self) -> dict[str, t.Any]:
        """
        Return a mutable deep copy of the configuration values.
        """
        return thaw(self._values)

    def build_dir(self, key: BuildDir) -> Path:
        """
        Return one of the configured build directories, resolved against the
        project root.
        """
        return self.root / self['build'][key]

    @property
    def src_dir(self):
        return self.build_dir('src')

    @property
    def dist_dir(self):
        return self.build_dir('dist')

    @property
    def temp_dir(self):
        return self.build_dir('temp')

    @property
    def public_dir(self):
        return self.build_dir('public')

    def pattern(self, kind: AssetKind) -> str:
        """
        Return the glob pattern configured for an asset kind.
        """
        return self['build']['paths'][kind]

    @property
    def data(self) -> Mapping[str, t.Any]:
        return self['data']

    @property
    def routes(self) -> dict[str, Path]:
        """
        Return the server route prefixes mapped to directories under the root.
        """
        return {prefix: self.root / target for prefix, target in self['server']['routes'].items()}


def load_override(path: Path) -> Mapping[str, t.Any] | None:
    """
    Execute a single config file and return its CONFIG mapping. Problems are
    reported and result in None; a missing file is silently None.
    """
    if not path.is_file():
        return None
    try:
        namespace = runpy.run_path(str(path))
    except Exception as e:  # pylint: disable=broad-except
        print_with_style(f'Ignoring {path}: {type(e).__name__}: {e}', file='stderr', style='yellow')
        return None

    override = namespace.get(CONFIG_ATTRIBUTE)
    if not isinstance(override, Mapping):
        print_with_style(
            f'Ignoring {path}: no {CONFIG_ATTRIBUTE} mapping defined',
            file='stderr',
            style='yellow'
        )
        return None
    return override


def resolve(defaults: Mapping[str, t.Any] = DEFAULTS,
            working_dir: Path | None = None,
            filenames: t.Sequence[str] = CONFIG_FILES) -> Config:
    """
    Merge @defaults with every override file from @filenames found in
    @working_dir (the current directory by default), in order.
    """
    root = working_dir or Path.cwd()
    values = dict(defaults)
    for filename in filenames:
        override = load_override(root / filename)
        if override is not None:
            values = deep_merge(values, override)
    return Config(values, root)
