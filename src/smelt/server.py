"""
HTTP servers which look for each requested file in several directories in
turn and support route prefixes mapped to other directories: a plain threaded
server, and a livereload server which injects its client into every page and
pushes reload commands to connected browsers.
"""
from __future__ import annotations

import abc
import argparse
import asyncio
import hashlib
import http.server
import mimetypes
import os
import pathlib
import posixpath
import socket
import threading
import typing
import urllib.parse

from livereload import Server
from livereload.handlers import LiveReloadHandler, StaticFileHandler
from livereload.watcher import Watcher
from tornado.ioloop import IOLoop
from tornado.web import HTTPError

from .pretty_utils import print_with_style

if typing.TYPE_CHECKING:
    from socketserver import _AfInetAddress


INDEX_FILE = 'index.html'
# Default used by nginx
DEFAULT_MIME_TYPE = 'application/octet-stream'


class SearchPath:
    """
    Maps URL paths to files, trying each of @directories in order. @routes
    maps URL prefixes to a directory searched instead.
    """
    def __init__(self,
                 directories: typing.Sequence[str | pathlib.Path],
                 routes: typing.Mapping[str, str | pathlib.Path] | None = None):
        self.directories = [pathlib.Path(d).resolve() for d in directories]
        self.routes = {
            '/' + prefix.strip('/'): pathlib.Path(target).resolve()
            for prefix, target in (routes or {}).items()
        }

    def resolve(self, url_path: str) -> tuple[pathlib.Path, pathlib.Path] | None:
        """
        Find the file serving @url_path, returning it with the directory it
        was found in, or None.
        """
        path = urllib.parse.unquote(urllib.parse.urlsplit(url_path).path)
        path = posixpath.normpath(path)
        parts = [p for p in path.split('/') if p and p not in ('.', '..')]

        directories = self.directories
        for prefix, target in self.routes.items():
            prefix_parts = prefix.strip('/').split('/')
            if parts[:len(prefix_parts)] == prefix_parts:
                directories = [target]
                parts = parts[len(prefix_parts):]
                break

        for directory in directories:
            candidate = directory.joinpath(*parts)
            if candidate.is_dir():
                candidate /= INDEX_FILE
            if candidate.is_file():
                return candidate, directory
        return None


class ThreadedHTTPServer(http.server.ThreadingHTTPServer):
    """
    A simple HTTP server that handles each request in a separate thread,
    serving the first match for a path among @directories.
    """
    def __init__(self,
                 server_address: _AfInetAddress,
                 directories: typing.Sequence[str | pathlib.Path],
                 routes: typing.Mapping[str, str | pathlib.Path] | None = None,
                 bind_and_activate: bool = True) -> None:
        super().__init__(server_address, Handler, bind_and_activate)
        self.search_path = SearchPath(directories, routes)

    @property
    def directories(self):
        return self.search_path.directories

    def resolve(self, url_path: str):
        return self.search_path.resolve(url_path)


class Handler(http.server.SimpleHTTPRequestHandler):
    server: ThreadedHTTPServer

    def log_message(self, format, *args):  # pylint: disable=redefined-builtin
        pass

    def get_etag(self, file_path: pathlib.Path):
        """
        Generate an etag for a file based on its path and modification time.
        """
        mtime = os.path.getmtime(file_path)
        file_size = os.path.getsize(file_path)
        file_info = f"{file_path}-{file_size}-{mtime}"
        return hashlib.md5(file_info.encode('utf-8')).hexdigest()

    def translate_path(self, path: str) -> str:
        found = self.server.resolve(path)
        if found:
            return str(found[0])
        return str(self.server.directories[0] / 'nonexistent' / INDEX_FILE)

    def do_GET(self):
        found = self.server.resolve(self.path)
        if not found:
            return self.send_error(404, f'File Not Found: {self.path}')
        file_path, directory = found

        # Double-check that we haven't escaped the directory.
        if not file_path.resolve().is_relative_to(directory):
            return self.send_error(403, 'Forbidden')

        etag = self.get_etag(file_path)
        # Check if the client already has the file
        if 'If-None-Match' in self.headers and self.headers['If-None-Match'] == etag:
            self.send_response(304)
            self.end_headers()
            return None

        # Get the file extension and set the MIME type accordingly
        mime_type, _enc = mimetypes.guess_type(file_path)
        self.send_response(200)
        self.send_header('Content-type', mime_type or DEFAULT_MIME_TYPE)
        self.send_header('Content-Length', str(file_path.stat().st_size))
        self.send_header('ETag', etag)
        self.send_header('Cache-Control', 'no-cache')
        self.end_headers()
        with open(file_path, 'rb') as file:
            # Serve the file in chunks to avoid reading the entire file
            # into memory
            chunk_size = 8192
            while chunk := file.read(chunk_size):
                self.wfile.write(chunk)
        return None


class ReloadChannel(abc.ABC):
    """
    Abstract base class for out-of-band reload notifications.
    """
    @abc.abstractmethod
    def notify(self, paths: typing.Sequence[pathlib.PurePath]) -> None:
        """
        Announce that the files at @paths, relative to the served
        directories, have new content.
        """


class LiveReloadChannel(ReloadChannel):
    """
    Sends livereload `reload` commands for changed paths to every browser
    connected to a running LiveReloadServer. Stylesheets and images are
    swapped in place by the livereload client; anything else reloads the page.
    Notifications are dropped while no server is attached.
    """
    def __init__(self):
        self.io_loop: IOLoop | None = None

    def attach(self, io_loop: IOLoop):
        self.io_loop = io_loop

    def detach(self):
        self.io_loop = None

    @property
    def listener_count(self):
        return len(LiveReloadHandler.waiters)

    def notify(self, paths: typing.Sequence[pathlib.PurePath]):
        if self.io_loop is None:
            return
        for path in paths:
            # IOLoop.add_callback is the one thread-safe entry into the loop.
            self.io_loop.add_callback(LiveReloadHandler.reload_waiters, path.as_posix())


class SearchPathStaticHandler(StaticFileHandler):
    """
    A tornado StaticFileHandler serving from a SearchPath instead of a single
    root directory.
    """
    search_path: SearchPath

    async def get(self, path: str, include_body: bool = True):
        found = self.search_path.resolve('/' + path)
        if not found:
            raise HTTPError(404)
        file_path, directory = found
        self.root = str(directory)
        await super().get(file_path.relative_to(directory).as_posix(), include_body)


class ExternalWatcher(Watcher):
    """
    A livereload Watcher that never polls; changes are detected elsewhere and
    announced through a LiveReloadChannel.
    """
    def start(self, callback):
        return True


def find_free_port(host: str):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


class LiveReloadServer:
    """
    Serves @directories and @routes like ThreadedHTTPServer through a
    livereload Server running its own event loop on a background thread.
    livereload injects its client script into served pages and accepts the
    client's websocket at `/livereload`; reloads are sent through a
    LiveReloadChannel attached to this server.
    """
    def __init__(self,
                 host: str,
                 port: int,
                 directories: typing.Sequence[str | pathlib.Path],
                 routes: typing.Mapping[str, str | pathlib.Path] | None = None):
        self.host = host
        self.port = port or find_free_port(host)
        self.search_path = SearchPath(directories, routes)
        self.server = Server(watcher=ExternalWatcher())
        self.server.root = str(self.search_path.directories[0])
        self.server.default_filename = INDEX_FILE
        self.server.SFH = type(
            'BoundSearchPathStaticHandler',
            (SearchPathStaticHandler,),
            {'search_path': self.search_path}
        )
        self.io_loop: IOLoop | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._error: BaseException | None = None

    @property
    def url(self):
        return f'http://{self.host}:{self.port}'

    async def _listen(self):
        self.server.application(self.port, self.host, debug=False)
        self.io_loop = IOLoop.current()

    def _run(self):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._listen())
        except Exception as e:  # pylint: disable=broad-except
            # Raised again by start() in the caller's thread.
            self._error = e
            loop.close()
            self._ready.set()
            return
        self._loop = loop
        self._ready.set()
        loop.run_forever()
        if self.io_loop:
            self.io_loop.close(all_fds=True)

    def start(self):
        """
        Start serving in a background thread, returning once the server
        accepts connections. Errors binding the port are raised here.
        """
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        self._ready.wait()
        if self._error:
            raise self._error

    def _shutdown(self):
        for waiter in list(LiveReloadHandler.waiters):
            waiter.close()
        if self._loop:
            self._loop.stop()

    def stop(self):
        """
        Disconnect browsers, stop serving, and wait for the thread to exit.
        """
        if self._loop and self._thread:
            self._loop.call_soon_threadsafe(self._shutdown)
            self._thread.join()
        self._loop = None
        self._thread = None
        self.io_loop = None


def serve(port: int,
          directories: typing.Sequence[str | pathlib.Path],
          host: str = 'localhost',
          routes: typing.Mapping[str, str | pathlib.Path] | None = None):
    with ThreadedHTTPServer((host, port), directories, routes) as httpd:
        print_with_style(f'Serving at http://{host}:{port}')
        httpd.serve_forever()


def main(arguments: list[str] | None = None):
    parser = argparse.ArgumentParser(description='Serve files from several directories.')
    parser.add_argument('-p', '--port',
                        help='port to serve from',
                        type=int,
                        default=8080)
    parser.add_argument('-d', '--directory',
                        help='directory to serve; repeat to search several in order',
                        type=pathlib.Path,
                        action='append',
                        dest='directories')
    args = parser.parse_args(arguments)
    serve(args.port, args.directories or [pathlib.Path('.')])


if __name__ == '__main__':
    main()
