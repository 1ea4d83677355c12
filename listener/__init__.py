"""
listener package

Per-port TCP/UDP sinkhole listeners and the supervisor that runs them.
"""

from listener.base import (
    AcceptError,
    BindError,
    ListenerError,
    ListenerState,
    ReceiveError,
    RecoveryWriteError,
)
from listener.supervisor import ListenerHandle, Supervisor
from listener.tcp import TCPListener
from listener.udp import UDPListener

__all__ = [
    "AcceptError",
    "BindError",
    "ListenerError",
    "ListenerHandle",
    "ListenerState",
    "ReceiveError",
    "RecoveryWriteError",
    "Supervisor",
    "TCPListener",
    "UDPListener",
]
