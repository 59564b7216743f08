"""
The development server controller: a static server over the temp, source,
and public directories plus filesystem watches dispatching changes to Tasks
or straight to a live reload.
"""
from __future__ import annotations

import asyncio
import dataclasses
import typing as t
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core import Task, TaskError
from .paths import GlobMatcher
from .pretty_utils import print_with_style
from .server import LiveReloadChannel, LiveReloadServer

if t.TYPE_CHECKING:
    from .config import Config
    from .pipeline import Pipeline


@dataclasses.dataclass(frozen=True)
class WatchBinding:
    """
    Associates files matching @matcher under @base_dir with a Task to re-run,
    or with a plain reload when @task is None.
    """
    matcher: GlobMatcher
    base_dir: Path
    task: Task | None = None

    def matches(self, path: Path):
        return self.matcher.match_under(self.base_dir, path)


class _ForwardingHandler(FileSystemEventHandler):
    """
    Hands watchdog file events from the observer thread to the event loop.
    """
    def __init__(self, server: DevServer, loop: asyncio.AbstractEventLoop):
        super().__init__()
        self.server = server
        self.loop = loop

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in ('created', 'modified', 'deleted', 'moved'):
            return
        raw = getattr(event, 'dest_path', '') or event.src_path
        path = Path(raw.decode() if isinstance(raw, bytes) else raw)
        asyncio.run_coroutine_threadsafe(self.server.handle_change(path), self.loop)


class DevServer:
    """
    Serves @config's temp, source, and public directories, in that order of
    precedence, and watches the source and public directories. Changes to
    styles, scripts, or pages re-run only the matching Task of @pipeline, whose
    output notifies the reload channel; changes to images, fonts, or public
    files only trigger a reload. Rapid successive changes are not coalesced.
    """
    def __init__(self,
                 config: Config,
                 pipeline: Pipeline,
                 channel: LiveReloadChannel | None = None,
                 port: int | None = None):
        self.config = config
        self.pipeline = pipeline
        self.channel = channel or pipeline.channel
        self.host: str = config['server']['host']
        self.port: int = config['server']['port'] if port is None else port
        self.bindings = self.build_bindings()
        self.httpd: LiveReloadServer | None = None
        self.observer: t.Any = None
        self._stopped = asyncio.Event()

    def build_bindings(self) -> list[WatchBinding]:
        """
        Build the dispatch table from filesystem changes to actions.
        """
        src = self.config.src_dir
        return [
            WatchBinding(GlobMatcher(self.config.pattern('styles')), src, self.pipeline.style),
            WatchBinding(GlobMatcher(self.config.pattern('scripts')), src, self.pipeline.script),
            WatchBinding(GlobMatcher(self.pipeline.page_pattern), src, self.pipeline.page),
            WatchBinding(GlobMatcher([self.config.pattern('images'), self.config.pattern('fonts')]), src),
            WatchBinding(GlobMatcher('**'), self.config.public_dir),
        ]

    async def handle_change(self, path: Path):
        """
        Dispatch a single changed path to every binding it matches. A failing
        Task is reported and the server keeps running.
        """
        for binding in self.bindings:
            if not binding.matches(path):
                continue
            if binding.task is None:
                self.channel.notify([path.relative_to(binding.base_dir)])
                continue
            try:
                await binding.task.run()
            except TaskError as e:
                print_with_style(str(e), file='stderr', style='red')

    @property
    def url(self):
        return f'http://{self.host}:{self.port}'

    async def start(self):
        """
        Start serving and watching. Returns once both are running.
        """
        self.httpd = LiveReloadServer(
            self.host,
            self.port,
            [self.config.temp_dir, self.config.src_dir, self.config.public_dir],
            self.config.routes
        )
        await asyncio.to_thread(self.httpd.start)
        self.port = self.httpd.port
        self.channel.attach(self.httpd.io_loop)

        self.observer = Observer()
        handler = _ForwardingHandler(self, asyncio.get_running_loop())
        for directory in (self.config.src_dir, self.config.public_dir):
            if directory.is_dir():
                self.observer.schedule(handler, str(directory), recursive=True)
            else:
                print_with_style(f'Not watching missing directory {directory}', style='yellow')
        self.observer.start()
        print_with_style(f'Serving at {self.url} with live reload')

    async def wait(self):
        """
        Block until `stop()` is called.
        """
        await self._stopped.wait()

    async def stop(self):
        """
        Stop watching and serving, and detach the reload channel, which
        disconnects every browser. Task re-runs already in flight are left to
        finish.
        """
        if self.observer:
            self.observer.stop()
            await asyncio.to_thread(self.observer.join)
            self.observer = None
        if self.httpd:
            self.channel.detach()
            await asyncio.to_thread(self.httpd.stop)
            self.httpd = None
        self._stopped.set()


class ServeTask(Task):
    """
    Run a DevServer until the task is cancelled, e.g. by Ctrl-C.
    """
    def __init__(self, name: str, config: Config, pipeline: Pipeline):
        super().__init__(name)
        self.config = config
        self.pipeline = pipeline

    async def execute(self):
        server = DevServer(self.config, self.pipeline)
        await server.start()
        try:
            await server.wait()
        finally:
            await server.stop()
