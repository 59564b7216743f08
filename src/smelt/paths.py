"""
Glob matching, input discovery, and output path calculation.
"""
from __future__ import annotations

import re
import typing as t
from pathlib import Path, PurePath


Patterns = t.Union[str, t.Sequence[str]]

# A path segment that does not start with a dot.
_SEGMENT = r'(?!\.)[^/]+'


def _translate_segment(segment: str):
    out = []
    if segment[:1] in ('*', '?'):
        out.append(r'(?!\.)')
    i = 0
    while i < len(segment):
        char = segment[i]
        if char == '*':
            out.append('[^/]*')
        elif char == '?':
            out.append('[^/]')
        elif char == '[' and (end := segment.find(']', i + 2)) != -1:
            body = segment[i + 1:end]
            if body.startswith('!'):
                body = '^' + body[1:]
            out.append(f'[{body}]')
            i = end
        else:
            out.append(re.escape(char))
        i += 1
    return ''.join(out)


def glob_to_regex(pattern: str) -> str:
    """
    Translate a glob pattern into an anchored regular expression for POSIX
    relative paths. `*` and `?` never cross `/`, `**` as a whole segment spans
    any number of directories, and wildcards never match a leading dot.
    """
    segments = pattern.strip('/').split('/')
    out = []
    for i, segment in enumerate(segments):
        last = i == len(segments) - 1
        if segment == '**':
            out.append(f'(?:{_SEGMENT}/)*{_SEGMENT}' if last else f'(?:{_SEGMENT}/)*')
        else:
            out.append(_translate_segment(segment) + ('' if last else '/'))
    return ''.join(out) + r'\Z'


class GlobMatcher:
    """
    Matcher for relative paths against one or more glob patterns.
    """
    def __init__(self, patterns: Patterns):
        if isinstance(patterns, str):
            patterns = [patterns]
        self.patterns = list(patterns)
        self.regexes = [re.compile(glob_to_regex(p)) for p in self.patterns]

    def __repr__(self):
        return f'{self.__class__.__name__}({self.patterns!r})'

    def __call__(self, relative: PurePath | str):
        """
        Return whether @relative, a path relative to the matching base, matches
        any of this matcher's patterns.
        """
        candidate = relative.as_posix() if isinstance(relative, PurePath) else relative
        return any(regex.match(candidate) for regex in self.regexes)

    def match_under(self, base: Path, path: Path):
        """
        Return whether @path lies within @base and matches relative to it.
        """
        if not path.is_relative_to(base):
            return False
        return self(path.relative_to(base))


def walk_files(path: Path) -> t.Iterator[Path]:
    """
    Recursively yield the files, but not the directories, under @path.
    """
    for candidate in path.iterdir():
        if candidate.is_dir():
            yield from walk_files(candidate)
        else:
            yield candidate


def find_files(cwd: Path, patterns: Patterns) -> list[Path]:
    """
    Return every file under @cwd matching @patterns, sorted. A missing @cwd
    simply has no files.
    """
    if not cwd.is_dir():
        return []
    matcher = GlobMatcher(patterns)
    return sorted(p for p in walk_files(cwd) if matcher(p.relative_to(cwd)))


class OutputPathCalc:
    """
    Calculates the output path, relative to an output directory, of a file
    found under @base. Its path below @base is preserved and its extension is
    optionally replaced with @ext.
    """
    def __init__(self, base: Path, ext: str | None = None):
        self.base = base
        self.ext = ext

    def __call__(self, path: Path) -> PurePath:
        rel = path.relative_to(self.base)
        if self.ext is not None:
            rel = rel.with_suffix(self.ext)
        return rel
