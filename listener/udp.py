"""
udp.py

UDP sinkhole listener: receive a datagram, record the sender, send a fixed ack.
"""

from __future__ import annotations

import asyncio
import socket
from typing import Optional, Tuple, Union

from listener.base import BaseListener, ReceiveError, RecoveryWriteError
from logger.recorder import EventRecorder
from parser.events import ConnectionEvent, Protocol
from utils import config


class UDPListener(BaseListener):
    """
    Handles datagrams one at a time, in arrival order. The ack for one
    datagram is sent before the next one is read.
    """

    protocol = Protocol.UDP
    socket_type = socket.SOCK_DGRAM

    def __init__(
        self,
        port: int,
        recorder: EventRecorder,
        host: Optional[str] = None,
        buffer_size: Optional[int] = None,
        ack: Optional[Union[str, bytes]] = None,
    ) -> None:
        super().__init__(port, recorder, host)
        if buffer_size is None:
            buffer_size = config.get("listener.udp_buffer_size", 1024)
        self.buffer_size = int(buffer_size)
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if ack is None:
            ack = config.get("listener.udp_ack", "true")
        if isinstance(ack, str):
            ack = ack.encode("utf-8")
        if not ack:
            raise ValueError("UDP acknowledgement payload must not be empty")
        self.ack = bytes(ack)

    async def _receive(self, loop: asyncio.AbstractEventLoop) -> Tuple[bytes, Tuple]:
        try:
            return await loop.sock_recvfrom(self.sock, self.buffer_size)
        except OSError as exc:
            if self._is_unrecoverable(exc):
                raise
            raise ReceiveError(f"Error reading from port {self.port}: {exc}") from exc

    async def _acknowledge(self, loop: asyncio.AbstractEventLoop, peer: Tuple) -> None:
        try:
            await loop.sock_sendto(self.sock, self.ack, peer)
        except OSError as exc:
            if self._is_unrecoverable(exc):
                raise
            raise RecoveryWriteError(f"Error writing response to {peer[0]}:{peer[1]}: {exc}") from exc

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()

        while True:
            try:
                # Payload is dropped; only the sender address matters
                _, peer = await self._receive(loop)
            except ReceiveError as exc:
                self.logger.warning(str(exc))
                continue

            try:
                event = ConnectionEvent.observe(Protocol.UDP, peer, self.port)
            except ValueError as exc:
                self.logger.warning(f"Unusable peer address {peer!r} on {self.label}: {exc}")
                continue

            self.logger.debug(f"UDP contact {event.source_address}:{event.source_port} -> {self.port}")
            # Other ports share this event loop, so recorder I/O goes to a worker thread
            await loop.run_in_executor(None, self._submit, event)

            try:
                await self._acknowledge(loop, peer)
            except RecoveryWriteError as exc:
                self.logger.warning(str(exc))
