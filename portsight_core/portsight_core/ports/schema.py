"""
Port Schema - what the port resolver and scanner report.

PortRecords are produced per call and never persisted.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


# Bind addresses meaning "every interface"
WILDCARD_ADDRESSES = frozenset({"0.0.0.0", "*", "::", "[::]", "::0", "[::0]"})


class Protocol(str, Enum):
    TCP = "tcp"
    UDP = "udp"


class PortStatus(str, Enum):
    OCCUPIED = "occupied"
    FREE = "free"


@dataclass(frozen=True)
class PortRecord:
    """A single port observed on the host."""

    port: int
    protocol: Protocol = Protocol.TCP
    status: PortStatus = PortStatus.OCCUPIED
    process_name: Optional[str] = None
    pid: Optional[int] = None
    local_address: Optional[str] = None  # bind address, None for active probes

    def __post_init__(self):
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")

    @property
    def is_public(self) -> bool:
        """True when bound to a wildcard address (reachable on every interface)."""
        if self.local_address is None:
            return False
        # ss prints zone-scoped wildcards like "*%eth0"
        return self.local_address.split("%", 1)[0] in WILDCARD_ADDRESSES

    def to_dict(self) -> dict:
        return {
            "port": self.port,
            "protocol": self.protocol.value,
            "status": self.status.value,
            "process_name": self.process_name,
            "pid": self.pid,
            "local_address": self.local_address,
        }
