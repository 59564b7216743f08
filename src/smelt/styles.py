"""
Stylesheet compilation from Sass/SCSS to CSS.
"""
from __future__ import annotations

from .dependencies import PipDependency
from .simple import Asset, BaseTextTransform, TransformError


class SassTransform(BaseTextTransform):
    """
    Compile SCSS (or indented Sass) to CSS using libsass. Partials, files whose
    names begin with an underscore, are only importable and produce no output.
    """
    def __init__(self, output_style: str = 'expanded', include_paths: list[str] | None = None):
        self.output_style = output_style
        self.include_paths = include_paths or []

    def __repr__(self):
        return f'{self.__class__.__name__}(output_style={self.output_style!r})'

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('libsass', check_name='sass'),
        }

    def __call__(self, asset: Asset):
        if asset.path.name.startswith('_'):
            return None
        compiled = super().__call__(asset)
        return compiled.replace(path=asset.path.with_suffix('.css'))

    def transform_text(self, text: str, asset: Asset):
        import sass
        try:
            return sass.compile(
                string=text,
                output_style=self.output_style,
                include_paths=[str(asset.source.parent), *self.include_paths],
                indented=asset.path.suffix == '.sass'
            )
        except sass.CompileError as e:
            raise TransformError(asset.source, str(e)) from e
