import asyncio
import socket

import pytest

from conftest import wait_until
from listener.base import ListenerState
from listener.supervisor import Supervisor
from listener.tcp import TCPListener
from listener.udp import UDPListener
from parser.events import Protocol


async def touch_tcp(port):
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    await asyncio.wait_for(reader.read(), timeout=2)
    writer.close()
    await writer.wait_closed()


def test_one_listener_per_port_with_bind_failure_isolated(recorder, busy_tcp_port):
    async def scenario():
        supervisor = Supervisor("tcp", [busy_tcp_port, 0, 0], recorder, host="127.0.0.1")
        shutdown = asyncio.Event()
        run_task = asyncio.create_task(supervisor.run(shutdown))
        await wait_until(lambda: supervisor.handles and all(h.listener.ready.is_set() for h in supervisor.handles))

        running = supervisor.running
        failed = supervisor.failed
        for handle in running:
            await touch_tcp(handle.port)
        await wait_until(lambda: len(recorder.events) == 2)

        shutdown.set()
        await asyncio.wait_for(run_task, timeout=2)
        return supervisor, running, failed

    supervisor, running, failed = asyncio.run(scenario())

    assert len(supervisor.handles) == 3
    assert len(running) == 2
    assert [h.port for h in failed] == [busy_tcp_port]
    assert all(isinstance(h.listener, TCPListener) for h in supervisor.handles)
    assert sorted(e.destination_port for e in recorder.events) == sorted(h.port for h in running)
    assert all(h.state is ListenerState.STOPPED for h in supervisor.handles)
    assert all(h.task.done() for h in supervisor.handles)


def test_start_returns_handles_for_every_port(recorder):
    async def scenario():
        supervisor = Supervisor(Protocol.UDP, [0, 0], recorder, host="127.0.0.1")
        handles = await supervisor.start()
        states = [h.state for h in handles]
        await supervisor.stop()
        return supervisor, handles, states

    supervisor, handles, states = asyncio.run(scenario())
    assert len(handles) == 2
    assert states == [ListenerState.RUNNING, ListenerState.RUNNING]
    assert all(isinstance(h.listener, UDPListener) for h in handles)
    assert all(h.port != 0 for h in handles)
    assert [row[2] for row in supervisor.summary()] == ["stopped", "stopped"]


def test_udp_supervisor_records_datagrams(recorder):
    async def scenario():
        supervisor = Supervisor("udp", [0], recorder, host="127.0.0.1")
        await supervisor.start()
        port = supervisor.handles[0].port

        def send():
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.settimeout(2)
                sock.sendto(b"hi", ("127.0.0.1", port))
                return sock.recvfrom(64)[0]

        reply = await asyncio.get_running_loop().run_in_executor(None, send)
        await supervisor.stop()
        return port, reply

    port, reply = asyncio.run(scenario())
    assert reply == b"true"
    assert [e.destination_port for e in recorder.events] == [port]


def test_run_returns_when_nothing_binds(recorder, busy_tcp_port):
    async def scenario():
        supervisor = Supervisor("tcp", [busy_tcp_port], recorder, host="127.0.0.1")
        await asyncio.wait_for(supervisor.run(asyncio.Event()), timeout=2)
        return supervisor

    supervisor = asyncio.run(scenario())
    assert supervisor.running == []
    assert len(supervisor.failed) == 1
    protocol, port, state, error = supervisor.summary()[0]
    assert (protocol, port, state) == ("tcp", busy_tcp_port, "stopped")
    assert error


def test_start_twice_is_refused(recorder):
    async def scenario():
        supervisor = Supervisor("tcp", [0], recorder, host="127.0.0.1")
        await supervisor.start()
        try:
            with pytest.raises(RuntimeError):
                await supervisor.start()
        finally:
            await supervisor.stop()

    asyncio.run(scenario())


def test_unknown_protocol(recorder):
    with pytest.raises(ValueError):
        Supervisor("sctp", [80], recorder)


def test_listener_options_are_passed_through(recorder):
    supervisor = Supervisor("udp", [0], recorder, listener_options={"ack": b"seen"})
    listener = supervisor._create_listener(0)
    assert listener.ack == b"seen"
