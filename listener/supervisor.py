"""
supervisor.py

Starts one listener per port, waits on them, and stops them together.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from listener.base import BaseListener, ListenerState
from listener.tcp import TCPListener
from listener.udp import UDPListener
from logger.recorder import EventRecorder
from parser.events import Protocol
from utils import app_logger

LISTENER_TYPES: Dict[Protocol, Type[BaseListener]] = {
    Protocol.TCP: TCPListener,
    Protocol.UDP: UDPListener,
}


@dataclass
class ListenerHandle:
    """A running listener and the task driving it."""
    protocol: Protocol
    port: int
    listener: BaseListener
    task: asyncio.Task

    @property
    def state(self) -> ListenerState:
        return self.listener.state


class Supervisor:
    """
    Owns every listener for one protocol.

    Startup is concurrent and tolerant: a port that fails to bind is logged
    and the rest carry on. Shutdown is driven by an asyncio.Event handed to
    run().
    """

    def __init__(
        self,
        protocol: str,
        ports: Iterable[int],
        recorder: EventRecorder,
        host: Optional[str] = None,
        listener_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.protocol = Protocol(protocol)
        self.ports = list(ports)
        self.recorder = recorder
        self.host = host
        self.listener_options = listener_options or {}
        self.handles: List[ListenerHandle] = []
        self.logger = app_logger

    def _create_listener(self, port: int) -> BaseListener:
        listener_cls = LISTENER_TYPES[self.protocol]
        return listener_cls(port, self.recorder, host=self.host, **self.listener_options)

    @property
    def running(self) -> List[ListenerHandle]:
        return [h for h in self.handles if h.state is ListenerState.RUNNING]

    @property
    def failed(self) -> List[ListenerHandle]:
        return [h for h in self.handles if h.listener.error is not None]

    async def start(self) -> List[ListenerHandle]:
        """
        Launch every listener at once and wait until each one has either
        bound its port or given up.
        """
        if self.handles:
            raise RuntimeError("Supervisor already started")

        for port in self.ports:
            listener = self._create_listener(port)
            task = asyncio.create_task(listener.serve(), name=f"sinkhole-{listener.label}")
            self.handles.append(ListenerHandle(self.protocol, port, listener, task))

        await asyncio.gather(*(h.listener.ready.wait() for h in self.handles))

        # Pick up the real port for listeners started on port 0
        for handle in self.handles:
            handle.port = handle.listener.port

        self.logger.info(
            f"{len(self.running)}/{len(self.handles)} {self.protocol.value.upper()} listeners running"
        )
        return self.handles

    async def run(self, shutdown: asyncio.Event) -> None:
        """
        Start all listeners (unless start() was already called) and block
        until `shutdown` is set or every listener has ended on its own, then
        stop whatever is left.
        """
        if not self.handles:
            await self.start()

        if not self.running:
            self.logger.error("No listeners could be started")
            await self.stop()
            return

        stop_waiter = asyncio.create_task(shutdown.wait())
        all_done = asyncio.gather(*(h.task for h in self.handles), return_exceptions=True)
        try:
            await asyncio.wait({stop_waiter, all_done}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_waiter.cancel()
            await self.stop()

        if not shutdown.is_set():
            self.logger.warning("All listeners exited before shutdown was requested")

    async def stop(self) -> None:
        """Cancel every listener and release its socket. In-flight events may be lost."""
        pending = [h.task for h in self.handles if not h.task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for handle in self.handles:
            handle.listener.close()

        if pending:
            self.logger.info("Closing sinkhole servers.")

    def summary(self) -> List[Tuple[str, int, str, str]]:
        """Rows of (protocol, port, state, error) for display."""
        return [
            (h.protocol.value, h.port, h.state.value, h.listener.error or "")
            for h in self.handles
        ]
