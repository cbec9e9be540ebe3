"""
Port Scanner - active TCP reachability probing.

A probe is a plain TCP connect with a short timeout. Range scans run probes
on a worker pool behind an admission semaphore: a probe is only submitted once
a slot is free, so even a full 65535-port scan never has more than
``max_concurrent`` probes queued or in flight.
"""

from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional
import logging
import socket
import threading
import time

from ..errors import ProbeTimeout
from .resolver import validate_range
from .schema import PortRecord, PortStatus, Protocol

logger = logging.getLogger('portsight.ports.scanner')

Connector = Callable[[str, int, float], bool]

DEFAULT_TIMEOUT = 0.2
DEFAULT_MAX_CONCURRENT = 100

COMMON_PORTS = [
    20, 21, 22, 23, 25, 53, 80, 110, 143, 443, 465, 587, 993, 995,
    3000, 3306, 5432, 5672, 6379, 8000, 8080, 8443, 9000, 27017,
]


def tcp_connect(host: str, port: int, timeout: float) -> bool:
    """Return True if a TCP connection to host:port succeeds within timeout."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except socket.timeout as e:
        raise ProbeTimeout(f"{host}:{port}") from e


class PortScanner:
    """
    Bounded-concurrency TCP port scanner.

    Args:
        timeout: Per-probe connect timeout in seconds (default 0.2)
        max_concurrent: Maximum probes outstanding at once (default 100)
        connector: Probe function (host, port, timeout) -> bool; replaceable
            for tests or alternative transports
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        connector: Optional[Connector] = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.timeout = timeout
        self.max_concurrent = max_concurrent
        self._connect = connector or tcp_connect

    def scan_port(self, host: str, port: int) -> bool:
        """Probe one port. Timeouts and connection errors count as closed."""
        try:
            return bool(self._connect(host, port, self.timeout))
        except (ProbeTimeout, OSError):
            return False

    def scan_range(self, host: str, start: int, end: int) -> List[PortRecord]:
        """
        Probe every port in [start, end].

        Returns:
            One PortRecord per port that accepted a connection, in completion
            order (not port order). Returns only after every probe finished.
        """
        validate_range(start, end)
        admission = threading.BoundedSemaphore(self.max_concurrent)
        results: List[PortRecord] = []
        results_lock = threading.Lock()
        started = time.monotonic()

        def probe(port: int) -> None:
            if self.scan_port(host, port):
                record = PortRecord(
                    port=port,
                    protocol=Protocol.TCP,
                    status=PortStatus.OCCUPIED,
                )
                with results_lock:
                    results.append(record)

        def release(_: Future) -> None:
            admission.release()

        with ThreadPoolExecutor(
            max_workers=self.max_concurrent,
            thread_name_prefix="portsight-probe",
        ) as pool:
            for port in range(start, end + 1):
                admission.acquire()
                future = pool.submit(probe, port)
                future.add_done_callback(release)
        # Leaving the with-block waits for every submitted probe

        logger.info(
            f"Scanned {host} ports {start}-{end}: {len(results)} open",
            extra={
                "host": host,
                "count": len(results),
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        return results

    def scan_common_ports(self, host: str) -> List[PortRecord]:
        """Sequentially probe a curated list of well-known service ports."""
        results = []
        for port in COMMON_PORTS:
            if self.scan_port(host, port):
                results.append(PortRecord(
                    port=port,
                    protocol=Protocol.TCP,
                    status=PortStatus.OCCUPIED,
                ))
        return results
