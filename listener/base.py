"""
base.py

Shared lifecycle for per-port listeners: bind, run the receive loop,
hand events to the recorder, close.
"""

from __future__ import annotations

import asyncio
import errno
import socket
from enum import Enum
from typing import Optional

from logger.recorder import EventRecorder
from parser.events import ConnectionEvent, Protocol
from utils import app_logger, config


class ListenerError(Exception):
    """Base class for listener failures."""
    pass


class BindError(ListenerError):
    """Raised when a listener cannot bind its port."""
    pass


class AcceptError(ListenerError):
    """A TCP accept() failed; the listener keeps going."""
    pass


class ReceiveError(ListenerError):
    """A UDP receive failed; the listener keeps going."""
    pass


class RecoveryWriteError(ListenerError):
    """Sending the UDP acknowledgement failed; the listener keeps going."""
    pass


class ListenerState(str, Enum):
    CREATED = "created"
    BOUND = "bound"
    RUNNING = "running"
    STOPPED = "stopped"


# errno values meaning the socket itself is gone
UNRECOVERABLE_ERRNOS = {errno.EBADF, errno.ENOTSOCK, errno.EINVAL}


class BaseListener:
    """
    Owns one socket for one (protocol, port) pair.

    Subclasses set `protocol` and `socket_type` and implement `_loop()`.
    """

    protocol: Protocol
    socket_type: int

    def __init__(
        self,
        port: int,
        recorder: EventRecorder,
        host: Optional[str] = None,
    ) -> None:
        self.host = host or config.get("listener.host", "0.0.0.0")
        self.port = port
        self.recorder = recorder
        self.state = ListenerState.CREATED
        self.error: Optional[str] = None
        self.sock: Optional[socket.socket] = None
        self.ready = asyncio.Event()
        self.logger = app_logger

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.host}:{self.port} {self.state.value}>"

    @property
    def label(self) -> str:
        return f"{self.protocol.value.upper()}/{self.port}"

    def _family(self) -> int:
        return socket.AF_INET6 if ":" in self.host else socket.AF_INET

    def _prepare(self, sock: socket.socket) -> None:
        """Socket options applied before bind()."""

    def _activate(self, sock: socket.socket) -> None:
        """Work done right after bind(), e.g. listen()."""

    def bind(self) -> socket.socket:
        """
        Bind the listening socket (created -> bound).

        Raises:
            BindError: if the port is in use, not permitted, or invalid.
        """
        if self.state is not ListenerState.CREATED:
            raise RuntimeError(f"{self!r} cannot bind twice")

        sock = socket.socket(self._family(), self.socket_type)
        try:
            self._prepare(sock)
            sock.bind((self.host, self.port))
            self._activate(sock)
            sock.setblocking(False)
        except (OSError, OverflowError) as exc:
            sock.close()
            self.state = ListenerState.STOPPED
            self.error = str(exc)
            raise BindError(f"Error listening on {self.label}: {exc}") from exc

        self.sock = sock
        # Port 0 asks the OS for a free port; record the one we got
        self.port = sock.getsockname()[1]
        self.state = ListenerState.BOUND
        return sock

    async def serve(self) -> None:
        """
        Bind and run until cancelled or the socket dies.

        A bind failure is logged and ends this listener only.
        """
        try:
            self.bind()
        except BindError as exc:
            self.logger.error(str(exc))
            return
        finally:
            self.ready.set()

        self.state = ListenerState.RUNNING
        self.logger.info(f"Starting {self.protocol.value.upper()} sinkhole server on port {self.port}")

        try:
            await self._loop()
        except OSError as exc:
            self.error = str(exc)
            self.logger.error(f"{self.label} stopped on socket error: {exc}")
        finally:
            self.close()

    async def _loop(self) -> None:
        raise NotImplementedError

    def _is_unrecoverable(self, exc: OSError) -> bool:
        if self.sock is None or self.sock.fileno() == -1:
            return True
        return exc.errno in UNRECOVERABLE_ERRNOS

    def _submit(self, event: ConnectionEvent) -> None:
        """Hand an event to the recorder; nothing it raises reaches the loop."""
        try:
            self.recorder.record(event)
        except Exception as exc:
            self.logger.error(f"Event recorder failed on {self.label}: {exc}")

    def close(self) -> None:
        """Release the socket (-> stopped). Safe to call more than once."""
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        if self.state is not ListenerState.STOPPED:
            self.state = ListenerState.STOPPED
            self.logger.debug(f"{self.label} stopped")
