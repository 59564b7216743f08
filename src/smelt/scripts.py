"""
Script compilation from modern JavaScript to broadly compatible JavaScript.
"""
from __future__ import annotations

import typing as t

from .dependencies import WebExecDependency
from .simple import Asset, BaseCommandTransform


class BabelTransform(BaseCommandTransform):
    """
    Compile scripts with Babel, run through npx from the project's
    node_modules. @presets defaults to `@babel/preset-env`.
    """
    def __init__(self,
                 presets: t.Sequence[str] = ('@babel/preset-env',),
                 extra_options: t.Iterable[str] = ()):
        self.presets = list(presets)
        self.extra_options = list(extra_options)

    def __repr__(self):
        return f'{self.__class__.__name__}(presets={self.presets!r})'

    @classmethod
    def get_dependencies(cls):
        return {
            WebExecDependency('npx', 'https://nodejs.org/en/download'),
        }

    def get_command(self, asset: Asset):
        command = ['npx', '--no-install', 'babel', '--filename', asset.source.name]
        if self.presets:
            command.extend(['--presets', ','.join(self.presets)])
        command.extend(self.extra_options)
        return command
