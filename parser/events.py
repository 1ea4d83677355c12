"""
events.py

Defines the connection event recorded for every inbound contact.
An event carries metadata only; payloads are never kept.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Protocol(str, Enum):
    TCP = "tcp"
    UDP = "udp"


def _check_port(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 65535:
        raise ValueError(f"{name} must be an integer in 0-65535, got {value!r}")


@dataclass(frozen=True)
class ConnectionEvent:
    """
    Immutable record of one TCP connection or UDP datagram.
    """
    timestamp: datetime
    protocol: Protocol
    source_address: str
    source_port: int
    destination_port: int

    def __post_init__(self) -> None:
        if not isinstance(self.timestamp, datetime) or self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be a timezone-aware datetime")
        # Accept the plain strings "tcp"/"udp" and normalise them
        object.__setattr__(self, "protocol", Protocol(self.protocol))
        if not self.source_address:
            raise ValueError("source_address must not be empty")
        _check_port("source_port", self.source_port)
        _check_port("destination_port", self.destination_port)

    @classmethod
    def observe(
        cls,
        protocol: Protocol,
        peer: Tuple[Any, ...],
        destination_port: int,
        when: Optional[datetime] = None,
    ) -> "ConnectionEvent":
        """
        Build an event from a socket peer address, stamped now unless
        `when` is given. Works for both IPv4 and IPv6 address tuples.
        """
        return cls(
            timestamp=when or datetime.now(timezone.utc),
            protocol=protocol,
            source_address=str(peer[0]),
            source_port=int(peer[1]),
            destination_port=int(destination_port),
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the flat structure written by event recorders."""
        return {
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "protocol": self.protocol.value,
            "source_ip": self.source_address,
            "source_port": self.source_port,
            "destination_port": self.destination_port,
        }
