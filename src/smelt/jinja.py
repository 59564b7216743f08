"""
Page rendering with Jinja templates.
"""
from __future__ import annotations

import typing as t
from pathlib import Path

from .dependencies import PipDependency
from .simple import Asset, BaseTextTransform, TransformError

if t.TYPE_CHECKING:
    from collections.abc import Mapping
    from jinja2 import Environment


class JinjaRenderTransform(BaseTextTransform):
    """
    Render each page as a Jinja template, with @data available as template
    variables. Templates may extend or include any file under
    @template_dir. Caching is disabled so edits show up on every render.
    """
    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('jinja2'),
        }

    def __init__(self,
                 template_dir: Path,
                 data: Mapping[str, t.Any] | None = None,
                 env: Environment | None = None):
        self.template_dir = template_dir
        self.data = dict(data or {})
        self._env = env

    def __repr__(self):
        return f'{self.__class__.__name__}({str(self.template_dir)!r})'

    @property
    def env(self):
        """
        Returns the Jinja `Environment` for this Transform, creating and
        caching it if necessary.
        """
        if self._env:
            return self._env

        from jinja2 import Environment, FileSystemLoader, select_autoescape
        self._env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=select_autoescape(),
            cache_size=0,
            auto_reload=True,
            keep_trailing_newline=True
        )
        return self._env

    def transform_text(self, text: str, asset: Asset):
        from jinja2 import TemplateError
        try:
            template = self.env.from_string(text)
            return template.render(**self.data)
        except TemplateError as e:
            raise TransformError(asset.source, f'{type(e).__name__}: {e}') from e
