"""
Launchd Provider - jobs loaded into launchd on macOS.
"""

from __future__ import annotations
from typing import List, Optional
import platform

from .base import BaseProvider
from ..schema import ServiceKind, ServiceRecord, ServiceStatus


class LaunchdProvider(BaseProvider):
    """
    Provider for launchd jobs (`launchctl list`).

    Every listed job is loaded, so every record is marked autostart.
    """

    def __init__(self, system: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.system = system or platform.system()

    @property
    def kind(self) -> ServiceKind:
        return ServiceKind.LAUNCHD

    def is_available(self) -> bool:
        return self.system == "Darwin" and self.command_exists("launchctl")

    def discover(self) -> List[ServiceRecord]:
        records = parse_launchctl_list(self.check_output(["launchctl", "list"]))
        self.logger.info(f"Found {len(records)} launchd jobs", extra={"count": len(records)})
        return records


def parse_launchctl_list(output: str) -> List[ServiceRecord]:
    """
    Parse `launchctl list`.

    Header "PID Status Label", then one job per line. PID is "-" for jobs
    that are loaded but not running.
    """
    records = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 3:
            continue
        label = parts[2]
        try:
            pid: Optional[int] = int(parts[0])
        except ValueError:
            pid = None

        records.append(ServiceRecord(
            id=label,
            name=label,
            kind=ServiceKind.LAUNCHD,
            status=ServiceStatus.RUNNING if pid is not None else ServiceStatus.STOPPED,
            pid=pid,
            autostart=True,
        ))
    return records
