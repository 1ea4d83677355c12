import asyncio
import os
import socket
from pathlib import Path

import pytest

# Must be set before utils.config is first imported
os.environ.setdefault("SINKHOLE_CONFIG", str(Path(__file__).parent / "config.yaml"))

from logger.recorder import MemoryEventRecorder  # noqa: E402


async def wait_until(predicate, timeout=2.0):
    """Poll predicate until it is true or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


async def stop_task(task):
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


@pytest.fixture
def recorder():
    return MemoryEventRecorder()


@pytest.fixture
def busy_tcp_port():
    """A loopback TCP port held by another listening socket."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


@pytest.fixture
def busy_udp_port():
    """A loopback UDP port held by another socket."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    yield sock.getsockname()[1]
    sock.close()
