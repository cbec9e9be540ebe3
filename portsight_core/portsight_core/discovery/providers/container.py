"""
Container Provider - Docker containers, running and stopped.

Talks to the runtime through the docker CLI:
- `docker info` to check the daemon socket is reachable
- `docker ps -a` (one JSON object per line) for the container list
- one batched `docker inspect` for restart policies
"""

from __future__ import annotations
from typing import Dict, List, Optional
import json

from .base import BaseProvider
from ...errors import ParseError
from ..schema import ServiceKind, ServiceRecord, ServiceStatus

PS_FORMAT = '{{json .}}'
INSPECT_FORMAT = '{{.Id}} {{.HostConfig.RestartPolicy.Name}}'


class ContainerProvider(BaseProvider):
    """
    Provider for Docker containers.
    """

    @property
    def kind(self) -> ServiceKind:
        return ServiceKind.DOCKER

    def is_available(self) -> bool:
        if not self.command_exists("docker"):
            return False
        # Binary present but daemon socket unreachable -> no data
        code, _, _ = self.run_command(["docker", "info", "--format", "{{.ID}}"], timeout=5)
        return code == 0

    def discover(self) -> List[ServiceRecord]:
        """List all containers with status, published ports and restart policy."""
        stdout = self.check_output([
            "docker", "ps", "-a", "--no-trunc", "--format", PS_FORMAT,
        ])
        rows = parse_ps_output(stdout)

        policies: Dict[str, str] = {}
        ids = [row["ID"] for row in rows if isinstance(row.get("ID"), str) and row["ID"]]
        if ids:
            code, out, _ = self.run_command(
                ["docker", "inspect", "--format", INSPECT_FORMAT] + ids
            )
            if code == 0:
                policies = parse_restart_policies(out)
            else:
                self.logger.debug("docker inspect failed; autostart unknown")

        records = []
        for row in rows:
            try:
                record = container_record(row, policies)
            except ParseError as e:
                self.logger.debug(f"Skipping container row: {e}")
                continue
            if record is not None:
                records.append(record)

        self.logger.info(f"Found {len(records)} containers", extra={"count": len(records)})
        return records


def parse_ps_output(output: str) -> List[dict]:
    """Parse `docker ps --format '{{json .}}'`, one object per line."""
    rows = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            row = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(row, dict):
            rows.append(row)
    return rows


def parse_restart_policies(output: str) -> Dict[str, str]:
    """Parse `docker inspect --format '{{.Id}} {{...RestartPolicy.Name}}'` lines."""
    policies = {}
    for line in output.splitlines():
        parts = line.split(None, 1)
        if not parts:
            continue
        policies[parts[0]] = parts[1].strip() if len(parts) > 1 else ""
    return policies


def container_status(state: str) -> ServiceStatus:
    """Map the runtime's state value to a ServiceStatus by substring."""
    state = (state or "").lower()
    if "running" in state:
        return ServiceStatus.RUNNING
    if "exited" in state or "dead" in state:
        return ServiceStatus.STOPPED
    return ServiceStatus.UNKNOWN


def parse_published_ports(ports: str) -> List[int]:
    """
    Extract host-side ports from docker's Ports column.

    "0.0.0.0:8080->80/tcp, :::8080->80/tcp, 9000/tcp" -> [8080, 8080]
    Ranges ("0.0.0.0:7000-7001->7000-7001/tcp") expand to every port.
    Unpublished ports (no "->") are ignored.
    """
    result: List[int] = []
    for mapping in (ports or "").split(","):
        mapping = mapping.strip()
        if "->" not in mapping:
            continue
        host_side = mapping.split("->", 1)[0]
        port_part = host_side.rsplit(":", 1)[-1]
        try:
            if "-" in port_part:
                first, last = (int(p) for p in port_part.split("-", 1))
                result.extend(range(first, last + 1))
            else:
                result.append(int(port_part))
        except ValueError:
            continue
    return [p for p in result if 0 <= p <= 65535]


def is_autostart_policy(policy: str) -> bool:
    policy = (policy or "").lower()
    return "always" in policy or "unless" in policy


def _text_field(row: dict, key: str) -> str:
    value = row.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ParseError(f"{key} is {type(value).__name__}, expected a string")
    return value


def container_record(row: dict, policies: Dict[str, str]) -> Optional[ServiceRecord]:
    """
    Build a ServiceRecord from one `docker ps` row; None if it has no id.

    Raises ParseError when a column has a non-string value (podman's docker
    shim emits Names and Ports as lists).
    """
    container_id = _text_field(row, "ID")
    if not container_id:
        return None

    names = _text_field(row, "Names")
    name = names.split(",")[0].lstrip("/") or "unknown"
    ports = _text_field(row, "Ports")
    status_text = _text_field(row, "Status")

    state = _text_field(row, "State")
    if not state:
        # Older engines only report the human Status column ("Up 2 hours")
        state = "running" if status_text.startswith("Up") else status_text

    policy = policies.get(container_id)
    if policy is None:
        # inspect echoes full ids; ps may have given a prefix
        policy = next((v for k, v in policies.items() if k.startswith(container_id)), "")

    return ServiceRecord(
        id=container_id,
        name=name,
        kind=ServiceKind.DOCKER,
        status=container_status(state),
        ports=parse_published_ports(ports),
        path=_text_field(row, "Image") or None,
        description=status_text or None,
        autostart=is_autostart_policy(policy),
    )
