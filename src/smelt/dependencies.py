"""
Declarations for the external tools and packages that transforms rely on.
"""
from __future__ import annotations

import abc
import importlib.util
import shutil
import typing as t


class Dependency(abc.ABC):
    """
    A base class for checkable requirements of a Transform.
    """

    @property
    @abc.abstractmethod
    def satisfied(self) -> bool:
        """
        A bool indicating whether this dependency is met.
        """

    @property
    @abc.abstractmethod
    def install_hint(self) -> str:
        """
        A string giving help on how to install this dependency.
        """

    def __repr__(self):
        return f'{self.__class__.__name__}({self}, satisfied={self.satisfied})'


class PipDependency(Dependency):
    """
    A Dependency on a pip-installable package. @check_name is the importable
    module name when it differs from the distribution name.
    """
    def __init__(self, name: str, check_name: str | None = None):
        self.name = name
        self.check_name = check_name or name

    def __str__(self):
        return self.name

    @property
    def satisfied(self):
        return importlib.util.find_spec(self.check_name) is not None

    @property
    def install_hint(self):
        return f'pip install {self.name}'


class WebExecDependency(Dependency):
    """
    A Dependency on an executable found on PATH, installed from @source.
    """
    def __init__(self, name: str, source: str, check_name: str | None = None):
        self.name = name
        self.source = source
        self.check_name = check_name or name

    def __str__(self):
        return self.name

    @property
    def satisfied(self):
        return bool(shutil.which(self.check_name))

    @property
    def install_hint(self):
        return self.source


def unsatisfied(dependencies: t.Iterable[Dependency]):
    """
    Return the members of @dependencies which are not currently met.
    """
    return [d for d in dependencies if not d.satisfied]
