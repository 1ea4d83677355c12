"""
ports.py

Expands port specifications such as "22,80,8000-8010" into concrete ports.
"""

import re
from typing import Iterable, List, Set

MIN_PORT = 1
MAX_PORT = 65535

_TOKEN_SPLIT = re.compile(r"[,\s]+")
_SINGLE = re.compile(r"^[0-9]+$")
_RANGE = re.compile(r"^([0-9]+)-([0-9]+)$")


class InvalidPortSpec(ValueError):
    """Raised when a port specification cannot be expanded."""
    pass


def _validate(value: int, token: str) -> int:
    if not MIN_PORT <= value <= MAX_PORT:
        raise InvalidPortSpec(
            f"Port {value} in '{token}' is outside {MIN_PORT}-{MAX_PORT}"
        )
    return value


def _expand_token(token: str) -> range:
    if _SINGLE.match(token):
        port = _validate(int(token), token)
        return range(port, port + 1)

    match = _RANGE.match(token)
    if not match:
        raise InvalidPortSpec(f"Invalid port or range: '{token}'")

    start = _validate(int(match.group(1)), token)
    end = _validate(int(match.group(2)), token)
    if start > end:
        raise InvalidPortSpec(f"Range start exceeds end in '{token}'")

    return range(start, end + 1)


def expand_ports(spec: str) -> List[int]:
    """
    Expand a port specification into a sorted list of unique ports.

    Tokens are separated by commas and/or whitespace. Each token is either a
    port number or an inclusive range "start-end". Ports named more than once
    appear once in the result.

    Raises:
        InvalidPortSpec: on any malformed token, reversed range, out-of-range
            value, or an empty specification.
    """
    tokens = [t for t in _TOKEN_SPLIT.split(spec.strip()) if t]
    if not tokens:
        raise InvalidPortSpec("Port specification is empty")

    ports: Set[int] = set()
    for token in tokens:
        ports.update(_expand_token(token))

    return sorted(ports)


def expand_port_args(args: Iterable[str]) -> List[int]:
    """Expand command-line style port arguments, e.g. ["22", "80-90"]."""
    return expand_ports(",".join(args))
