"""Start/stop lifecycle for the HTTP server that serves the bundled frontend.

The server binds its own listening socket (so a port conflict surfaces as a
WebServerBindError from start()) and hands it to a uvicorn server running on a
background thread with its own event loop. Each connection is handled by its own
task on that loop. close() stops accepting, gives in-flight requests until the
deadline to finish (uvicorn's graceful shutdown), cancels whatever is left, and
releases the socket.
"""

import asyncio
import socket
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Final

import uvicorn
from loguru import logger
from starlette.types import ASGIApp
from starlette.types import Receive
from starlette.types import Scope
from starlette.types import Send

from sanding_history_web_app.data_types import DEFAULT_DRAIN_DEADLINE_SECONDS
from sanding_history_web_app.data_types import DEFAULT_HOST
from sanding_history_web_app.data_types import WebServerState
from sanding_history_web_app.errors import WebServerAlreadyStartedError
from sanding_history_web_app.errors import WebServerBindError
from sanding_history_web_app.errors import WebServerStartupError
from sanding_history_web_app.log_utils import UVICORN_LOG_LEVEL
from sanding_history_web_app.log_utils import log_span
from sanding_history_web_app.primitives import DrainDeadline
from sanding_history_web_app.primitives import ListenPort

_LISTEN_BACKLOG: Final[int] = 2048

_STARTUP_TIMEOUT_SECONDS: Final[float] = 10.0

# Extra time close() allows past the drain deadline before forcing uvicorn to exit.
_SHUTDOWN_GRACE_SECONDS: Final[float] = 1.0

# How often uvicorn housekeeping runs while serving (date header, request limits).
_TICK_SECONDS: Final[float] = 0.1

_DRAIN_POLL_SECONDS: Final[float] = 0.01

_WILDCARD_HOSTS: Final[dict[str, str]] = {"": "127.0.0.1", "0.0.0.0": "127.0.0.1", "::": "::1"}


def bind_listening_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on host:port, raising WebServerBindError if that is not possible."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(_LISTEN_BACKLOG)
    except OSError as e:
        sock.close()
        raise WebServerBindError(host, port, e.strerror or str(e)) from e
    sock.set_inheritable(True)
    return sock


class _InFlightRequestTracker:
    """ASGI wrapper that counts running HTTP requests and those cancelled by shutdown.

    All updates happen on the server's event loop thread.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app
        self.in_flight = 0
        self.cancelled = 0

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        self.in_flight += 1
        try:
            await self.app(scope, receive, send)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1


class _NotifyingServer(uvicorn.Server):
    """uvicorn server that signals startup and shuts down as soon as it is asked to.

    Stock uvicorn only looks at should_exit on a 0.1s tick and pauses another 0.1s
    before it starts waiting on connections. Here request_exit() wakes the main loop
    right away and shutdown() starts draining immediately, so close() takes about as
    long as its deadline.
    """

    def __init__(self, config: uvicorn.Config, startup_finished: threading.Event) -> None:
        super().__init__(config)
        self._startup_finished = startup_finished
        self._loop: asyncio.AbstractEventLoop | None = None
        self._exit_requested: asyncio.Event | None = None

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        self._loop = asyncio.get_running_loop()
        self._exit_requested = asyncio.Event()
        try:
            await super().startup(sockets=sockets)
        finally:
            self._startup_finished.set()

    def request_exit(self) -> None:
        """Ask the server to stop; safe to call from any thread."""
        self.should_exit = True
        loop = self._loop
        exit_requested = self._exit_requested
        if loop is None or exit_requested is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(exit_requested.set)
        except RuntimeError:
            # the loop closed between the check and the call, so the server is already gone
            logger.debug("Web server event loop closed before exit could be signalled")

    async def main_loop(self) -> None:
        assert self._exit_requested is not None
        counter = 0
        should_exit = await self.on_tick(counter)
        while not should_exit:
            counter = (counter + 1) % 864000
            try:
                await asyncio.wait_for(self._exit_requested.wait(), timeout=_TICK_SECONDS)
            except TimeoutError:
                pass
            should_exit = await self.on_tick(counter)

    async def shutdown(self, sockets: list[socket.socket] | None = None) -> None:
        for server in self.servers:
            server.close()
        for sock in sockets or []:
            sock.close()
        for connection in list(self.server_state.connections):
            connection.shutdown()

        try:
            async with asyncio.timeout(self.config.timeout_graceful_shutdown):
                await self._wait_for_connections_to_close()
        except TimeoutError:
            if self.server_state.tasks:
                logger.debug("Cancelling {} request task(s) at the drain deadline", len(self.server_state.tasks))
            for task in self.server_state.tasks:
                task.cancel()

        if not self.force_exit:
            await self.lifespan.shutdown()

    async def _wait_for_connections_to_close(self) -> None:
        while (self.server_state.connections or self.server_state.tasks) and not self.force_exit:
            await asyncio.sleep(_DRAIN_POLL_SECONDS)
        for server in self.servers:
            await server.wait_closed()


class _ServingThread(threading.Thread):
    """Runs the uvicorn server until it exits and keeps any exception it died with."""

    def __init__(
        self,
        server: _NotifyingServer,
        sock: socket.socket,
        startup_finished: threading.Event,
        name: str,
    ) -> None:
        super().__init__(name=name, daemon=True)
        self._server = server
        self._sock = sock
        self._startup_finished = startup_finished
        self.exception: BaseException | None = None

    def run(self) -> None:
        try:
            self._server.run(sockets=[self._sock])
        except BaseException as e:
            self.exception = e
            logger.opt(exception=e).error("Web server thread '{}' failed", self.name)
        finally:
            self._startup_finished.set()


class WebServer:
    """Owns one listening socket and the HTTP server that serves an ASGI app on it.

    State moves IDLE -> LISTENING -> DRAINING -> CLOSED and only start() and
    close() move it. close() is idempotent.
    """

    def __init__(self, app: ASGIApp, name: str = "web") -> None:
        self._name = name
        self._tracker = _InFlightRequestTracker(app)
        self._lock = threading.Lock()
        self._state = WebServerState.IDLE
        self._host: str | None = None
        self._bound_port: int | None = None
        self._socket: socket.socket | None = None
        self._server: _NotifyingServer | None = None
        self._thread: _ServingThread | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> WebServerState:
        return self._state

    @property
    def bound_port(self) -> int | None:
        """The port actually bound, which differs from the requested one when that was 0."""
        return self._bound_port

    @property
    def url(self) -> str | None:
        if self._host is None or self._bound_port is None:
            return None
        host = _WILDCARD_HOSTS.get(self._host, self._host)
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self._bound_port}"

    @property
    def in_flight_requests(self) -> int:
        return self._tracker.in_flight

    def start(self, port: int, host: str = DEFAULT_HOST) -> None:
        """Bind host:port and begin serving on a background thread.

        Returns once the server is accepting connections. Raises
        WebServerAlreadyStartedError unless the server is IDLE, WebServerBindError
        if the port cannot be bound, and WebServerStartupError if uvicorn does not
        come up (in which case the socket is released and the server is CLOSED).
        """
        listen_port = ListenPort(port)
        with self._lock:
            if self._state != WebServerState.IDLE:
                raise WebServerAlreadyStartedError(self._name, self._state)

            with log_span("Starting web server {} on {}:{}", self._name, host, listen_port):
                sock = bind_listening_socket(host, listen_port)
                config = uvicorn.Config(
                    self._tracker,
                    log_config=None,
                    log_level=UVICORN_LOG_LEVEL,
                    access_log=False,
                    timeout_graceful_shutdown=int(DEFAULT_DRAIN_DEADLINE_SECONDS),
                )
                startup_finished = threading.Event()
                server = _NotifyingServer(config, startup_finished)
                thread = _ServingThread(server, sock, startup_finished, name=f"web-server-{self._name}")
                thread.start()

                is_startup_finished = startup_finished.wait(timeout=_STARTUP_TIMEOUT_SECONDS)
                if not is_startup_finished or not server.started or server.should_exit:
                    server.should_exit = True
                    server.force_exit = True
                    thread.join(timeout=_SHUTDOWN_GRACE_SECONDS)
                    sock.close()
                    self._state = WebServerState.CLOSED
                    raise WebServerStartupError(f"Web server '{self._name}' failed to start") from thread.exception

            self._host = host
            self._bound_port = sock.getsockname()[1]
            self._socket = sock
            self._server = server
            self._thread = thread
            self._state = WebServerState.LISTENING

        logger.info("Web server {} listening on {}", self._name, self.url)

    def close(self, deadline_seconds: float = DEFAULT_DRAIN_DEADLINE_SECONDS) -> None:
        """Stop accepting connections and wait up to the deadline for in-flight requests.

        Requests still running when the deadline elapses are cancelled; that is
        logged but not raised. Calling close() on a server that is not LISTENING
        does nothing.
        """
        deadline = DrainDeadline(deadline_seconds)
        with self._lock:
            if self._state != WebServerState.LISTENING:
                logger.debug("Web server {} is {}, nothing to close", self._name, self._state)
                return
            self._state = WebServerState.DRAINING
            server = self._server
            thread = self._thread
            sock = self._socket
        assert server is not None and thread is not None and sock is not None

        in_flight_at_close = self._tracker.in_flight
        logger.info(
            "Draining web server {} ({} request(s) in flight, deadline {:.2f}s)",
            self._name,
            in_flight_at_close,
            deadline,
        )
        start_time = time.monotonic()
        try:
            server.config.timeout_graceful_shutdown = deadline  # type: ignore[assignment]
            server.request_exit()
            thread.join(timeout=deadline + _SHUTDOWN_GRACE_SECONDS)
            if thread.is_alive():
                logger.warning("Web server {} did not stop within its drain deadline, forcing exit", self._name)
                server.force_exit = True
                thread.join(timeout=_SHUTDOWN_GRACE_SECONDS)
        finally:
            sock.close()
            with self._lock:
                self._socket = None
                self._server = None
                self._thread = None
                self._state = WebServerState.CLOSED

        if self._tracker.cancelled:
            logger.warning(
                "Web server {} cancelled {} request(s) still running after the {:.2f}s drain deadline",
                self._name,
                self._tracker.cancelled,
                deadline,
            )
        logger.info("Web server {} closed after {:.3f}s", self._name, time.monotonic() - start_time)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, state={self._state}, url={self.url!r})"


@contextmanager
def serve_web_server(
    app: ASGIApp,
    port: int,
    host: str = DEFAULT_HOST,
    name: str = "web",
    deadline_seconds: float = DEFAULT_DRAIN_DEADLINE_SECONDS,
) -> Iterator[WebServer]:
    """Start a WebServer for the duration of the block and always close it on the way out."""
    server = WebServer(app, name=name)
    server.start(port, host=host)
    try:
        yield server
    finally:
        server.close(deadline_seconds)
