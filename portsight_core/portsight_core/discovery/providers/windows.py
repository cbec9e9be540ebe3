"""
Windows Provider - services known to the Service Control Manager.

Queried through PowerShell's Get-Service, serialized with ConvertTo-Json.
"""

from __future__ import annotations
from typing import List, Optional
import json
import platform

from .base import BaseProvider
from ..schema import ServiceKind, ServiceRecord, ServiceStatus

GET_SERVICE = (
    "Get-Service | Select-Object Name,Status,DisplayName,StartType | ConvertTo-Json"
)

# ServiceControllerStatus / ServiceStartMode values as serialized by ConvertTo-Json
_STATUS_RUNNING = 4
_STATUS_STOPPED = 1
_START_AUTOMATIC = 2


class WindowsServiceProvider(BaseProvider):
    """
    Provider for Windows services.
    """

    def __init__(self, system: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.system = system or platform.system()

    @property
    def kind(self) -> ServiceKind:
        return ServiceKind.WINDOWS_SERVICE

    def is_available(self) -> bool:
        return self.system == "Windows" and self.command_exists("powershell")

    def discover(self) -> List[ServiceRecord]:
        stdout = self.check_output(["powershell", "-NoProfile", "-Command", GET_SERVICE])
        records = parse_get_service_json(stdout)
        self.logger.info(f"Found {len(records)} Windows services", extra={"count": len(records)})
        return records


def parse_get_service_json(output: str) -> List[ServiceRecord]:
    """
    Parse Get-Service JSON.

    ConvertTo-Json emits a bare object instead of an array when there is a
    single service; both shapes are accepted. Invalid JSON yields [].
    """
    if not output.strip():
        return []
    try:
        data = json.loads(output)
    except json.JSONDecodeError:
        return []
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return []

    records = []
    for item in data:
        if not isinstance(item, dict) or not item.get("Name"):
            continue
        name = str(item["Name"])

        status_code = item.get("Status")
        if status_code == _STATUS_RUNNING:
            status = ServiceStatus.RUNNING
        elif status_code == _STATUS_STOPPED:
            status = ServiceStatus.STOPPED
        else:
            status = ServiceStatus.UNKNOWN

        records.append(ServiceRecord(
            id=name,
            name=name,
            kind=ServiceKind.WINDOWS_SERVICE,
            status=status,
            description=item.get("DisplayName") or None,
            autostart=item.get("StartType") == _START_AUTOMATIC,
        ))
    return records
