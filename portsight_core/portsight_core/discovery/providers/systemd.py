"""
Systemd Provider - service units on Linux.

Commands used:
- systemctl list-units: every service unit with its sub-state
- systemctl list-unit-files: enablement (autostart)
- systemctl show: MainPID and MemoryCurrent of running units, one batched call

Only list-units is required; the other two fill in details when they work.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Set
import platform

from .base import BaseProvider
from ..schema import ServiceKind, ServiceRecord, ServiceStatus

LIST_UNITS = [
    "systemctl", "list-units", "--type=service", "--all",
    "--no-pager", "--plain", "--no-legend",
]
LIST_UNIT_FILES = [
    "systemctl", "list-unit-files", "--type=service",
    "--no-pager", "--plain", "--no-legend",
]

_SUB_STATES = {
    "running": ServiceStatus.RUNNING,
    "exited": ServiceStatus.STOPPED,
    "dead": ServiceStatus.STOPPED,
    "inactive": ServiceStatus.STOPPED,
    "failed": ServiceStatus.ERROR,
}

# Enablement states that start the unit at boot
_AUTOSTART_STATES = {"enabled", "enabled-runtime", "static-enabled"}


class SystemdProvider(BaseProvider):
    """
    Provider for systemd service units.
    """

    def __init__(self, system: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.system = system or platform.system()

    @property
    def kind(self) -> ServiceKind:
        return ServiceKind.SYSTEMD

    def is_available(self) -> bool:
        return self.system == "Linux" and self.command_exists("systemctl")

    def discover(self) -> List[ServiceRecord]:
        units = parse_list_units(self.check_output(LIST_UNITS))

        code, stdout, _ = self.run_command(LIST_UNIT_FILES)
        enabled = parse_unit_files(stdout) if code == 0 else set()

        running = [u["id"] for u in units if u["status"] is ServiceStatus.RUNNING]
        details: Dict[str, Dict[str, str]] = {}
        if running:
            code, stdout, _ = self.run_command(
                ["systemctl", "show", "--property=Id,MainPID,MemoryCurrent"] + running
            )
            if code == 0:
                details = parse_systemctl_show(stdout)

        records = []
        for unit in units:
            props = details.get(unit["id"], {})
            records.append(ServiceRecord(
                id=unit["id"],
                name=unit["name"],
                kind=ServiceKind.SYSTEMD,
                status=unit["status"],
                description=unit["description"],
                autostart=unit["id"] in enabled,
                pid=_positive_int(props.get("MainPID")),
                memory_bytes=_positive_int(props.get("MemoryCurrent")),
            ))

        self.logger.info(f"Found {len(records)} systemd services", extra={"count": len(records)})
        return records


def _positive_int(value: Optional[str]) -> Optional[int]:
    # systemctl reports "0" for no main pid and "[not set]" or 2^64-1 for no accounting
    try:
        number = int(value) if value is not None else 0
    except ValueError:
        return None
    if number <= 0 or number >= 2 ** 63:
        return None
    return number


def sub_state_status(sub: str) -> ServiceStatus:
    return _SUB_STATES.get(sub, ServiceStatus.UNKNOWN)


def parse_list_units(output: str) -> List[dict]:
    """
    Parse `systemctl list-units --plain --no-legend`.

    Columns: UNIT LOAD ACTIVE SUB DESCRIPTION...
    Returns dicts with id, name, status and description.
    """
    units = []
    for line in output.splitlines():
        # Failed units carry a leading bullet even in plain mode on old versions
        parts = line.replace("●", " ").split()
        if len(parts) < 4 or ".service" not in parts[0]:
            continue
        unit = parts[0]
        units.append({
            "id": unit,
            "name": unit[:-len(".service")] if unit.endswith(".service") else unit,
            "status": sub_state_status(parts[3]),
            "description": " ".join(parts[4:]) or None,
        })
    return units


def parse_unit_files(output: str) -> Set[str]:
    """Unit names from `systemctl list-unit-files` whose state means autostart."""
    enabled = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[1] in _AUTOSTART_STATES:
            enabled.add(parts[0])
    return enabled


def parse_systemctl_show(output: str) -> Dict[str, Dict[str, str]]:
    """
    Parse `systemctl show --property=Id,...` for several units.

    Units are separated by blank lines; each block is KEY=VALUE lines.
    Returns {unit id: {key: value}}.
    """
    result: Dict[str, Dict[str, str]] = {}
    block: Dict[str, str] = {}

    def flush():
        if block.get("Id"):
            result[block["Id"]] = dict(block)
        block.clear()

    for line in output.splitlines():
        if not line.strip():
            flush()
            continue
        key, sep, value = line.partition("=")
        if sep:
            block[key.strip()] = value.strip()
    flush()
    return result
