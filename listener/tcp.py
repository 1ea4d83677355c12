"""
tcp.py

TCP sinkhole listener: accept, record the peer, hang up.
"""

from __future__ import annotations

import asyncio
import socket
from typing import Optional, Set, Tuple

from listener.base import AcceptError, BaseListener
from logger.recorder import EventRecorder
from parser.events import ConnectionEvent, Protocol
from utils import config


class TCPListener(BaseListener):
    """
    Accepts connections on one port. Each connection is handled in its own
    task so a slow recorder never holds up accept(); the number of such
    tasks is capped by `max_inflight`.
    """

    protocol = Protocol.TCP
    socket_type = socket.SOCK_STREAM

    def __init__(
        self,
        port: int,
        recorder: EventRecorder,
        host: Optional[str] = None,
        backlog: Optional[int] = None,
        max_inflight: Optional[int] = None,
        accept_retry_delay: Optional[float] = None,
    ) -> None:
        super().__init__(port, recorder, host)
        if backlog is None:
            backlog = config.get("listener.backlog", 128)
        if max_inflight is None:
            max_inflight = config.get("listener.max_inflight", 256)
        self.backlog = int(backlog)
        self.max_inflight = int(max_inflight)
        if self.max_inflight <= 0:
            raise ValueError("max_inflight must be positive")
        if accept_retry_delay is None:
            accept_retry_delay = config.get("listener.accept_retry_delay", 1.0)
        self.accept_retry_delay = float(accept_retry_delay)
        self._inflight: Set[asyncio.Task] = set()

    def _prepare(self, sock: socket.socket) -> None:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    def _activate(self, sock: socket.socket) -> None:
        sock.listen(self.backlog)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def _accept(self, loop: asyncio.AbstractEventLoop) -> Tuple[socket.socket, Tuple]:
        try:
            return await loop.sock_accept(self.sock)
        except OSError as exc:
            if self._is_unrecoverable(exc):
                raise
            raise AcceptError(f"Error accepting connection on port {self.port}: {exc}") from exc

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        slots = asyncio.Semaphore(self.max_inflight)

        while True:
            await slots.acquire()
            try:
                conn, peer = await self._accept(loop)
            except AcceptError as exc:
                slots.release()
                self.logger.warning(str(exc))
                await asyncio.sleep(self.accept_retry_delay)
                continue
            except BaseException:
                slots.release()
                raise

            task = loop.create_task(self._handle_connection(conn, peer))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            task.add_done_callback(lambda _: slots.release())

    async def _handle_connection(self, conn: socket.socket, peer: Tuple) -> None:
        try:
            event = ConnectionEvent.observe(Protocol.TCP, peer, self.port)
            self.logger.debug(f"TCP contact {event.source_address}:{event.source_port} -> {self.port}")
            # Recorder I/O runs in a worker thread, off the accept loop
            await asyncio.get_running_loop().run_in_executor(None, self._submit, event)
        except ValueError as exc:
            self.logger.warning(f"Unusable peer address {peer!r} on {self.label}: {exc}")
        finally:
            conn.close()

    def close(self) -> None:
        for task in list(self._inflight):
            task.cancel()
        super().close()
