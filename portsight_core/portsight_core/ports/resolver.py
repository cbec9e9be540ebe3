"""
Port Resolver - which ports are in use on this host, and by whom.

Runs the host's native enumeration tool and hands the text to the matching
parser in ``parsers``. A missing tool or a non-zero exit is a normal outcome
(containers, minimal images, no privileges) and yields an empty table.
"""

from __future__ import annotations
from typing import Callable, List, Optional, Tuple
import logging
import platform

from ..utils.commands import DEFAULT_TIMEOUT, run_command
from .parsers import parse_lsof, parse_netstat_linux, parse_netstat_windows, parse_ss
from .schema import PortRecord

logger = logging.getLogger('portsight.ports.resolver')

Runner = Callable[..., Tuple[int, str, str]]

# (command, parser) candidates per host OS, tried in order
_ENUMERATORS = {
    "Linux": [
        (["ss", "-tulnp"], parse_ss),
        (["netstat", "-tulpn"], parse_netstat_linux),
    ],
    "Darwin": [
        (["lsof", "-i", "-P", "-n"], parse_lsof),
    ],
    "Windows": [
        (["netstat", "-ano"], parse_netstat_windows),
    ],
}


class PortResolver:
    """
    Host-appropriate listing of occupied ports with owning pid.

    Usage:
        resolver = PortResolver()
        table = resolver.get_port_usage()
        free = resolver.find_free_ports(8000, 8100, 3)
    """

    def __init__(
        self,
        system: Optional[str] = None,
        runner: Optional[Runner] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.system = system or platform.system()
        self._run = runner or run_command
        self.timeout = timeout
        # Unknown Unix-likes (BSDs) ship lsof more reliably than ss
        self._enumerators = _ENUMERATORS.get(self.system, _ENUMERATORS["Darwin"])

    def get_port_usage(self) -> List[PortRecord]:
        """
        Get all ports currently in use with their associated processes.

        Returns:
            PortRecords from the first tool that runs successfully, or an
            empty list if none does.
        """
        for cmd, parser in self._enumerators:
            code, stdout, _ = self._run(cmd, timeout=self.timeout)
            if code != 0:
                logger.debug(f"{cmd[0]} unavailable (exit {code})")
                continue
            records = parser(stdout)
            logger.debug(
                f"{cmd[0]} reported {len(records)} ports",
                extra={"count": len(records)},
            )
            return records

        logger.info("No port enumeration tool available; port table is empty")
        return []

    def find_free_ports(self, start: int, end: int, count: int) -> List[int]:
        """
        Find free ports in a range.

        Computed from a single snapshot of the port table, so another process
        may bind a returned port before the caller does.

        Args:
            start: First port to consider (inclusive)
            end: Last port to consider (inclusive)
            count: Maximum number of ports to return

        Returns:
            Up to ``count`` free ports in ascending order.
        """
        validate_range(start, end)
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        occupied = {p.port for p in self.get_port_usage()}

        free: List[int] = []
        for port in range(start, end + 1):
            if len(free) >= count:
                break
            if port not in occupied:
                free.append(port)
        return free


def validate_range(start: int, end: int) -> None:
    if not (0 <= start <= 65535 and 0 <= end <= 65535):
        raise ValueError(f"ports must be within 0-65535, got {start}-{end}")
    if start > end:
        raise ValueError(f"start port {start} is greater than end port {end}")
