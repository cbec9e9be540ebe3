"""
Port table parsers - raw tool output in, PortRecords out.

One pure function per enumeration tool. Every parser works line by line and
skips anything it does not understand; a garbled line never costs the rest of
the table. No parser runs a command, so all of them are tested against
recorded output.

Supported tools:
- ss -tulnp            (Linux)
- netstat -tulpn       (Linux fallback)
- lsof -i -P -n        (macOS)
- netstat -ano         (Windows)
"""

from __future__ import annotations
from typing import List, Optional, Tuple
import logging
import re

from ..errors import ParseError
from .schema import PortRecord, Protocol

logger = logging.getLogger('portsight.ports.parsers')

# users:(("sshd",pid=1001,fd=3),("sshd",pid=1002,fd=3)) -> first owner
_SS_OWNER_RE = re.compile(r'\("([^"]*)",pid=(\d+)')


def split_host_port(addr: str) -> Tuple[str, int]:
    """
    Split "host:port" as printed by ss/netstat/lsof.

    Handles IPv6 forms such as "[::]:80" and ":::80".

    Raises:
        ParseError: when there is no numeric port in range.
    """
    if ':' not in addr:
        raise ParseError(f"no port in address {addr!r}")
    host, port_str = addr.rsplit(':', 1)
    if not port_str.isdigit():
        raise ParseError(f"non-numeric port in address {addr!r}")
    port = int(port_str)
    if port > 65535:
        raise ParseError(f"port out of range in address {addr!r}")
    return host or '*', port


def _protocol_from_token(token: str) -> Optional[Protocol]:
    token = token.lower()
    if token.startswith('tcp'):
        return Protocol.TCP
    if token.startswith('udp'):
        return Protocol.UDP
    return None


def parse_ss(output: str) -> List[PortRecord]:
    """Parse `ss -tulnp` output."""
    ports: List[PortRecord] = []

    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 5:
            continue
        protocol = _protocol_from_token(parts[0])
        if protocol is None:
            # Header ("Netid State ...") or a socket family we do not report
            continue
        try:
            host, port = split_host_port(parts[4])
        except ParseError as e:
            logger.debug(f"Skipping ss line: {e}")
            continue

        process_name = None
        pid = None
        match = _SS_OWNER_RE.search(line)
        if match:
            process_name = match.group(1)
            pid = int(match.group(2))

        ports.append(PortRecord(
            port=port,
            protocol=protocol,
            process_name=process_name,
            pid=pid,
            local_address=host,
        ))

    return ports


def parse_netstat_linux(output: str) -> List[PortRecord]:
    """Parse `netstat -tulpn` output (net-tools)."""
    ports: List[PortRecord] = []

    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        protocol = _protocol_from_token(parts[0])
        if protocol is None:
            continue
        try:
            host, port = split_host_port(parts[3])
        except ParseError as e:
            logger.debug(f"Skipping netstat line: {e}")
            continue

        # Columns after "Foreign Address": [State] PID/Program name
        rest = parts[5:]
        if protocol is Protocol.TCP and rest:
            rest = rest[1:]
        process_name = None
        pid = None
        owner = ' '.join(rest)
        if '/' in owner:
            pid_str, name = owner.split('/', 1)
            if pid_str.isdigit():
                pid = int(pid_str)
                process_name = name or None

        ports.append(PortRecord(
            port=port,
            protocol=protocol,
            process_name=process_name,
            pid=pid,
            local_address=host,
        ))

    return ports


def parse_lsof(output: str) -> List[PortRecord]:
    """
    Parse `lsof -i -P -n` output.

    lsof lists every socket, including established connections and one line
    per file descriptor. Only listeners (TCP in LISTEN, unconnected UDP) are
    kept, and identical sockets are collapsed.
    """
    seen = set()
    ports: List[PortRecord] = []

    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 9 or parts[0] == 'COMMAND':
            continue
        protocol = _protocol_from_token(parts[7])
        if protocol is None:
            continue
        name = parts[8]
        if '->' in name:
            continue
        if protocol is Protocol.TCP and '(LISTEN)' not in parts[9:]:
            continue
        try:
            host, port = split_host_port(name)
        except ParseError as e:
            logger.debug(f"Skipping lsof line: {e}")
            continue
        pid = int(parts[1]) if parts[1].isdigit() else None

        key = (port, protocol, pid, host)
        if key in seen:
            continue
        seen.add(key)
        ports.append(PortRecord(
            port=port,
            protocol=protocol,
            process_name=parts[0],
            pid=pid,
            local_address=host,
        ))

    ports.sort(key=lambda p: p.port)
    return ports


def parse_netstat_windows(output: str) -> List[PortRecord]:
    """Parse `netstat -ano` output (Windows). TCP rows must be LISTENING."""
    ports: List[PortRecord] = []

    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        if parts[0] == 'TCP':
            protocol = Protocol.TCP
            if len(parts) < 5 or parts[3] != 'LISTENING':
                continue
        elif parts[0] == 'UDP':
            protocol = Protocol.UDP
        else:
            continue
        try:
            host, port = split_host_port(parts[1])
        except ParseError as e:
            logger.debug(f"Skipping netstat line: {e}")
            continue
        pid = int(parts[-1]) if parts[-1].isdigit() else None

        ports.append(PortRecord(
            port=port,
            protocol=protocol,
            pid=pid,
            local_address=host,
        ))

    return ports
