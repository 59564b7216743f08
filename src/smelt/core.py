"""
Core classes for the smelt task graph: Tasks as leaves, Composites combining
them in parallel or in series, and the functions to build and run them.
"""
from __future__ import annotations

import abc
import asyncio
import enum
import typing as t

from .pretty_utils import TaskTimer, print_with_style


class TaskError(Exception):
    """
    Exception raised when a Task fails. The original exception is chained as
    the cause.
    """
    def __init__(self, task_name: str, cause: BaseException | None = None):
        self.task_name = task_name
        self.cause = cause
        detail = f': {cause}' if cause else ''
        super().__init__(f"'{task_name}' failed{detail}")


class Node(abc.ABC):
    """
    Abstract base class for anything that can be placed in a task graph.
    """
    name: str

    @abc.abstractmethod
    async def run(self) -> None:
        ...

    def leaves(self) -> list[Task]:
        """
        Return every Task in this Node, in execution order for series.
        """
        return []


class Task(Node):
    """
    A named, side-effecting unit of work and the leaf of every task graph.
    Subclasses implement `execute()`; `run()` adds timing output and wraps
    failures in TaskError.
    """
    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.name!r}>'

    @abc.abstractmethod
    async def execute(self) -> None:
        ...

    async def run(self):
        with TaskTimer(self.name):
            try:
                await self.execute()
            except TaskError:
                raise
            except Exception as e:
                raise TaskError(self.name, e) from e

    def leaves(self):
        return [self]


class Combinator(enum.Enum):
    PARALLEL = 'parallel'
    SERIES = 'series'


class Composite(Node):
    """
    An ordered group of child Nodes and the Combinator joining them.
    """
    def __init__(self, combinator: Combinator, children: t.Sequence[Node], name: str | None = None):
        self.combinator = combinator
        self.children = list(children)
        self.name = name or f'<{combinator.value}>'

    def __repr__(self):
        return f'{self.combinator.value}({", ".join(map(repr, self.children))})'

    def leaves(self):
        return [leaf for child in self.children for leaf in child.leaves()]

    async def run(self):
        if self.combinator is Combinator.SERIES:
            await self._run_series()
        else:
            await self._run_parallel()

    async def _run_series(self):
        for child in self.children:
            await child.run()

    async def _run_parallel(self):
        # Siblings are never cancelled; the first failure in child order is
        # raised once every child has settled.
        results = await asyncio.gather(
            *(child.run() for child in self.children),
            return_exceptions=True
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if not failures:
            return
        for extra in failures[1:]:
            print_with_style(f'Also failed: {extra}', file='stderr', style='red')
        raise failures[0]


def parallel(*nodes: Node, name: str | None = None) -> Composite:
    """
    Describe @nodes running concurrently. Nothing is executed.
    """
    return Composite(Combinator.PARALLEL, nodes, name)


def series(*nodes: Node, name: str | None = None) -> Composite:
    """
    Describe @nodes running one after another. Nothing is executed.
    """
    return Composite(Combinator.SERIES, nodes, name)


async def run(node: Node) -> None:
    """
    Execute a task graph, raising TaskError for the first failing Task.
    """
    await node.run()
