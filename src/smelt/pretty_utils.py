"""
Internal utilities for pretty printing and task timing output.
"""
import asyncio
import time
import typing as t

import rich.console


_rich_consoles = {
    'stdout': rich.console.Console(highlight=False, soft_wrap=True),
    'stderr': rich.console.Console(stderr=True, highlight=False, soft_wrap=True),
}


def print_with_style(*args, sep=' ', end='\n', file: str = 'stdout', style=None):
    """
    Enhanced print() function which supports rich console styles.
    """
    _rich_consoles[file].print(*args, sep=sep, end=end, style=style, markup=False)


def format_elapsed(seconds: float):
    """
    Format a duration the way task timings are reported.
    """
    if seconds < 1:
        return f'{seconds * 1000:.0f} ms'
    return f'{seconds:.2f} s'


class TaskTimer:
    """
    Context manager which reports the start, finish, or failure of a named
    task along with its duration.
    """
    def __init__(self, name: str):
        self.name = name
        self.started = 0.0

    def __enter__(self):
        self.started = time.perf_counter()
        print_with_style(f"Starting '{self.name}'...")
        return self

    def __exit__(self, exc_type: t.Any, exc: t.Any, tb: t.Any):
        elapsed = format_elapsed(time.perf_counter() - self.started)
        if exc_type is asyncio.CancelledError:
            print_with_style(f"Stopped '{self.name}' after {elapsed}", style='yellow')
        elif exc_type is None:
            print_with_style(f"Finished '{self.name}' after {elapsed}", style='green')
        else:
            print_with_style(f"'{self.name}' errored after {elapsed}", file='stderr', style='red')
        return False
