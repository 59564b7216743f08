"""
The Transform contract, its error types, and base classes for text transforms
and transforms that invoke external commandline tools.
"""
from __future__ import annotations

import abc
import dataclasses
import subprocess
import typing as t
from pathlib import Path, PurePath

from .dependencies import Dependency, unsatisfied

if t.TYPE_CHECKING:
    from collections.abc import Set


@dataclasses.dataclass(frozen=True)
class Asset:
    """
    A single file moving through a chain of Transforms. @path is relative to
    the output directory it will be written into; @source is the file it was
    read from.
    """
    path: PurePath
    contents: bytes
    source: Path

    def text(self, encoding: str = 'utf-8'):
        return self.contents.decode(encoding)

    def replace(self, **changes: t.Any):
        return dataclasses.replace(self, **changes)

    def with_text(self, text: str, encoding: str = 'utf-8'):
        return self.replace(contents=text.encode(encoding))


class TransformError(Exception):
    """
    Exception raised when a Transform cannot process a file.
    """
    def __init__(self, source: Path, message: str = ''):
        self.source = source
        super().__init__(f'{source}: {message}' if message else str(source))


class TransformUnavailableError(Exception):
    """
    Exception raised when a Transform to be used is unavailable due to missing
    dependencies.
    """
    def __init__(self, transform: Transform):
        self.transform = transform
        missing = ', '.join(f'{d} ({d.install_hint})' for d in unsatisfied(transform.get_dependencies()))
        super().__init__(f'{transform} is unavailable, missing: {missing}')


class Transform(abc.ABC):
    """
    Abstract base class for a single conversion applied to each file of a
    task. Returning None drops the file from the task's output.
    """
    encoding = 'utf-8'

    def __repr__(self):
        return f'{self.__class__.__name__}()'

    @classmethod
    def get_dependencies(cls) -> Set[Dependency]:
        """
        Return the requirements for this Transform.
        """
        return set()

    @classmethod
    def is_available(cls) -> bool:
        """
        Return whether this Transform's requirements are installed.
        """
        return not unsatisfied(cls.get_dependencies())

    def ensure_available(self):
        if not self.is_available():
            raise TransformUnavailableError(self)

    @abc.abstractmethod
    def __call__(self, asset: Asset) -> Asset | None:
        ...


class BaseTextTransform(Transform):
    """
    A base class for Transforms working on decoded text.
    """
    @abc.abstractmethod
    def transform_text(self, text: str, asset: Asset) -> str:
        ...

    def __call__(self, asset: Asset):
        return asset.with_text(self.transform_text(asset.text(self.encoding), asset), self.encoding)


class BaseCommandTransform(Transform):
    """
    A base class for Transforms that pipe file contents through an external
    command and read the result from its stdout.
    """
    ext: str | None = None

    @abc.abstractmethod
    def get_command(self, asset: Asset) -> list[str]:
        """
        Abstract method that must return a commandline ready for subprocess.
        """

    def __call__(self, asset: Asset):
        try:
            result = subprocess.run(
                self.get_command(asset),
                input=asset.contents,
                capture_output=True,
                check=True,
                cwd=asset.source.parent
            )
        except subprocess.CalledProcessError as e:
            raise TransformError(asset.source, e.stderr.decode(self.encoding, 'replace').strip()) from e

        path = asset.path.with_suffix(self.ext) if self.ext else asset.path
        return asset.replace(path=path, contents=result.stdout)


def apply_transforms(asset: Asset, transforms: t.Iterable[Transform]) -> Asset | None:
    """
    Run @asset through each of @transforms in order. A dropped asset stops the
    chain; any failure is raised as a TransformError for the asset's source.
    """
    for transform in transforms:
        try:
            result = transform(asset)
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(asset.source, f'{type(e).__name__}: {e}') from e
        if result is None:
            return None
        asset = result
    return asset
