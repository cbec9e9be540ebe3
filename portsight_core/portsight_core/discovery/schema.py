"""
Discovery Schema - unified service record for every provider.

Containers, systemd units, launchd jobs, Windows services and plain processes
all come out of discovery as ServiceRecords, so the aggregator, the change
monitor and the security scanner handle one shape only.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional, Tuple


class ServiceStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"
    UNKNOWN = "unknown"


class ServiceKind(str, Enum):
    """Which provider a record came from."""
    DOCKER = "docker"
    SYSTEMD = "systemd"
    LAUNCHD = "launchd"
    WINDOWS_SERVICE = "windows_service"
    PROCESS = "process"


def normalize_ports(ports: Iterable[int]) -> Tuple[int, ...]:
    """Sorted, duplicate-free tuple of valid port numbers."""
    result = set()
    for port in ports:
        port = int(port)
        if not 0 <= port <= 65535:
            raise ValueError(f"port out of range: {port}")
        result.add(port)
    return tuple(sorted(result))


@dataclass(frozen=True)
class ServiceRecord:
    """
    One service, container or process seen during a discovery cycle.

    Records are frozen: enrichment and truncation build new records, so a
    record placed in a snapshot is never changed afterwards.
    """

    # Identity
    id: str                            # Unique within one snapshot
    name: str
    kind: ServiceKind

    # State
    status: ServiceStatus = ServiceStatus.UNKNOWN
    ports: Tuple[int, ...] = field(default_factory=tuple)
    pid: Optional[int] = None
    autostart: bool = False

    # Details
    path: Optional[str] = None         # Executable or image
    description: Optional[str] = None

    # Resources
    cpu_percent: Optional[float] = None
    memory_bytes: Optional[int] = None
    memory_percent: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "ports", normalize_ports(self.ports))

    @property
    def is_running(self) -> bool:
        return self.status is ServiceStatus.RUNNING

    def with_ports(self, ports: Iterable[int]) -> "ServiceRecord":
        """Copy of this record with ``ports`` replaced."""
        return replace(self, ports=normalize_ports(ports))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "status": self.status.value,
            "ports": list(self.ports),
            "pid": self.pid,
            "autostart": self.autostart,
            "path": self.path,
            "description": self.description,
            "cpu_percent": self.cpu_percent,
            "memory_bytes": self.memory_bytes,
            "memory_percent": self.memory_percent,
        }
