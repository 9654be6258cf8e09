"""
apiscaffold/api/server.py
Embedded uvicorn listener.

Responsibilities:
- Bind the listening socket explicitly (bind failures surface as exceptions)
- Serve an ASGI app as a task on the running event loop
- Confirm the server is accepting before start() returns
- Drain and stop within a grace period

Signal handling is left to the process entry point.
"""

import asyncio
import contextlib
import socket
from typing import Optional

import structlog
import uvicorn

from ..core.exceptions import ListenerBindFailure, ListenerShutdownTimeout

logger = structlog.get_logger("listener")


class _EmbeddedServer(uvicorn.Server):
    """uvicorn.Server that never touches process signal handlers."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class HTTPListener:
    """
    One ASGI app bound to one address.

    ``start`` = bind + listen + wait for uvicorn to report it is serving.
    ``stop`` = ask uvicorn to exit, force it if the grace period runs out.
    """

    def __init__(self, app, host: str, port: int, name: str = "main", log_level: str = "info"):
        self.app = app
        self.host = host
        self.port = port
        self.name = name
        self.log_level = log_level.lower()

        self._server: Optional[_EmbeddedServer] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_serving(self) -> bool:
        return (
            self._server is not None
            and self._server.started
            and self._task is not None
            and not self._task.done()
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def bind(self) -> socket.socket:
        """Bind the listening socket; resolves port 0 to the real port."""
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ListenerBindFailure(self.address, str(e)) from e
        sock.set_inheritable(True)
        self.port = sock.getsockname()[1]
        return sock

    async def start(self, timeout: float = 10.0) -> None:
        """
        Bind and serve in the background.

        Returns once uvicorn reports it is accepting connections.

        Raises:
            ListenerBindFailure: bind error, early exit or no confirmation in time
        """
        if self._task is not None:
            logger.warning("listener_already_started", listener=self.name)
            return

        sock = self.bind()
        config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level=self.log_level,
            access_log=False,
            lifespan="off",
        )
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(
            self._serve(sock), name=f"listener-{self.name}"
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self._server.started:
            if self._task.done():
                reason = "server exited during startup"
                if not self._task.cancelled() and self._task.exception() is not None:
                    reason = str(self._task.exception())
                self._task = None
                raise ListenerBindFailure(self.address, reason)
            if loop.time() >= deadline:
                await self._abort()
                raise ListenerBindFailure(
                    self.address, f"not accepting connections after {timeout:g} seconds"
                )
            try:
                await asyncio.sleep(0.01)
            except asyncio.CancelledError:
                await self._abort()
                raise

        logger.info("listener_started", listener=self.name, address=self.address)

    async def _serve(self, sock: socket.socket) -> None:
        try:
            await self._server.serve(sockets=[sock])
        except SystemExit as e:
            # uvicorn exits the process on some startup errors
            raise RuntimeError(f"uvicorn exited with status {e.code}") from None

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Stop accepting and let in-flight requests finish.

        Raises:
            ListenerShutdownTimeout: requests still open after ``timeout``;
                the server is force-closed before raising
        """
        if self._task is None:
            return

        logger.info("stopping_listener", listener=self.name, grace_seconds=timeout)
        self._server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout)
        except asyncio.TimeoutError:
            await self._abort()
            raise ListenerShutdownTimeout(timeout) from None
        finally:
            self._task = None

        logger.info("listener_stopped", listener=self.name)

    async def _abort(self) -> None:
        self._server.force_exit = True
        self._server.should_exit = True
        task = self._task
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task
        self._task = None


__all__ = ["HTTPListener"]
