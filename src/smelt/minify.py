"""
Transforms for reducing the load cost of webpages by bundling and minifying
resources.
"""
from __future__ import annotations

import posixpath
import re
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from .dependencies import PipDependency, unsatisfied
from .simple import Asset, BaseTextTransform, TransformError, TransformUnavailableError


class BundleError(TransformError):
    """
    Exception raised when a build block cannot be bundled, usually because a
    referenced asset does not exist in any search path.
    """


class JSMinifierTransform(BaseTextTransform):
    """
    A fast JavaScript minification Transform using tdewolff/minify.
    """
    mimetype = 'application/javascript'

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('tdewolff-minify', check_name='minify')
        }

    def transform_text(self, text: str, asset: Asset):
        import minify
        return minify.string(self.mimetype, text)


class CSSMinifierTransform(BaseTextTransform):
    """
    A powerful CSS minification Transform, using lightningcss to offer
    intelligent CSS reduction based on browsers supported.
    """
    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('lightningcss')
        }

    def __init__(self,
                 browsers_list: Sequence[str] | None = ('defaults',),
                 error_recovery: bool = False):
        self.browsers_list = list(browsers_list) if browsers_list else None
        self.error_recovery = error_recovery

    def transform_text(self, text: str, asset: Asset):
        import lightningcss
        return lightningcss.process_stylesheet(
            text,
            filename=str(asset.path),
            error_recovery=self.error_recovery,
            browsers_list=self.browsers_list,
            minify=True
        )


class HTMLMinifierTransform(BaseTextTransform):
    """
    HTML minification collapsing whitespace and minifying inline styles and
    scripts.
    """
    minify_css = True
    minify_js = True

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('minify-html', check_name='minify_html'),
        }

    def transform_text(self, text: str, asset: Asset):
        import minify_html
        return minify_html.minify(text, minify_css=self.minify_css, minify_js=self.minify_js)


BLOCK_RE = re.compile(
    r'<!--\s*build:(?P<kind>\w+)(?:\((?P<alt>[^)]*)\))?(?:\s+(?P<target>\S+?))?\s*-->'
    r'(?P<body>.*?)'
    r'<!--\s*endbuild\s*-->',
    re.DOTALL
)
REFERENCE_TAGS = {
    'js': ('script', 'src'),
    'css': ('link', 'href'),
}
REPLACEMENT_TAGS = {
    'js': '<script src="{}"></script>',
    'css': '<link rel="stylesheet" href="{}">',
}
_EXTERNAL_RE = re.compile(r'^([a-z][a-z0-9+.-]*:|//)', re.IGNORECASE)


def _join(page_dir: PurePosixPath, reference: str) -> PurePosixPath:
    if reference.startswith('/'):
        return PurePosixPath(reference.lstrip('/'))
    return PurePosixPath(posixpath.normpath((page_dir / reference).as_posix()))


def _references(kind: str, body: str) -> list[str]:
    """
    Return the script sources or stylesheet links of a build block body in
    document order. Commented-out tags are skipped.
    """
    import lxml.html
    if not body.strip():
        return []
    tag, attribute = REFERENCE_TAGS[kind]
    container = lxml.html.fragment_fromstring(body, create_parent='div')
    references = []
    for element in container.iter(tag):
        if tag == 'link' and 'stylesheet' not in (element.get('rel') or '').lower().split():
            continue
        reference = element.get(attribute)
        if reference:
            references.append(reference.strip())
    return references


class UserefBundler:
    """
    Concatenate the assets referenced inside `<!-- build:js target -->` and
    `<!-- build:css target -->` blocks of a page into single files, replacing
    each block with one reference to its bundle. `<!-- build:remove -->`
    blocks are deleted. References are looked up in any alternate paths given
    in the block, `<!-- build:js(alt1,alt2) target -->`, relative to @root,
    and then in @search_paths, first match wins.
    """
    encoding = 'utf-8'

    def __init__(self, search_paths: Sequence[Path], root: Path):
        self.search_paths = list(search_paths)
        self.root = root

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('lxml'),
        }

    @classmethod
    def is_available(cls):
        return not unsatisfied(cls.get_dependencies())

    def ensure_available(self):
        if not self.is_available():
            raise TransformUnavailableError(self)

    def resolve(self, page: Asset, reference: str, alternates: Sequence[Path]) -> Path:
        """
        Find the file a page's @reference points to.
        """
        if _EXTERNAL_RE.match(reference):
            raise BundleError(page.source, f'cannot bundle external reference {reference!r}')
        cleaned = reference.split('?', 1)[0].split('#', 1)[0]
        relative = _join(PurePosixPath(page.path.parent.as_posix()), cleaned)
        for directory in [*alternates, *self.search_paths]:
            candidate = directory / relative
            if candidate.is_file():
                return candidate
        searched = ', '.join(str(d) for d in [*alternates, *self.search_paths])
        raise BundleError(page.source, f'cannot resolve {reference!r} (searched {searched})')

    def __call__(self, page: Asset) -> list[Asset]:
        """
        Return the rewritten page followed by one Asset per bundle.
        """
        bundles: list[Asset] = []
        page_dir = PurePosixPath(page.path.parent.as_posix())

        def replace_block(match: re.Match[str]):
            kind = match['kind']
            if kind == 'remove':
                return ''
            if kind not in REFERENCE_TAGS:
                raise BundleError(page.source, f'unknown build block type {kind!r}')
            target = match['target']
            if not target:
                raise BundleError(page.source, f'build:{kind} block without a target path')

            alternates = [self.root / a.strip() for a in (match['alt'] or '').split(',') if a.strip()]
            sources = [
                self.resolve(page, reference, alternates)
                for reference in _references(kind, match['body'])
            ]
            contents = '\n'.join(s.read_text(self.encoding) for s in sources)
            bundles.append(Asset(
                path=_join(page_dir, target),
                contents=contents.encode(self.encoding),
                source=sources[0] if sources else page.source
            ))
            return REPLACEMENT_TAGS[kind].format(target)

        text = BLOCK_RE.sub(replace_block, page.text(self.encoding))
        return [page.with_text(text, self.encoding), *bundles]
