"""
Aggregator - one merged, port-enriched service list per discovery run.

A run:
1. Fetches the port table once
2. Queries every available provider concurrently
3. Caps platform services (running first) at MAX_PLATFORM_SERVICES
4. Replaces the ports of every record with a pid by what the port table says
5. Synthesizes records for port-owning pids no provider reported
6. Dedups by id, sorts running first then by name, caps at MAX_SERVICES
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Set
import logging
import threading
import time

from ..errors import ExternalToolUnavailable, TargetNotFound
from ..ports.resolver import PortResolver
from ..ports.schema import PortRecord
from .providers.base import BaseProvider
from .schema import ServiceKind, ServiceRecord, ServiceStatus

logger = logging.getLogger('portsight.discovery.aggregator')

MAX_PLATFORM_SERVICES = 100
MAX_SYNTHESIZED = 50
MAX_PORTS_PER_SYNTHESIZED = 10
MAX_SERVICES = 150


class Aggregator:
    """
    Merges provider output with the port table.

    Usage:
        aggregator = Aggregator(resolver, container=ContainerProvider(),
                                platform=platform_provider())
        services = aggregator.discover_all()
        nginx = aggregator.get_service("nginx.service")

    Runs are serialized; discover_all() never raises.
    """

    def __init__(
        self,
        resolver: PortResolver,
        container: Optional[BaseProvider] = None,
        platform: Optional[BaseProvider] = None,
        process: Optional[BaseProvider] = None,
    ):
        self.resolver = resolver
        self.container = container
        self.platform = platform
        self.process = process
        self._lock = threading.Lock()

    @property
    def providers(self) -> List[BaseProvider]:
        """Configured providers in merge-priority order."""
        return [p for p in (self.container, self.platform, self.process) if p is not None]

    # ─────────────────────────────────────────────────────────────
    # Discovery
    # ─────────────────────────────────────────────────────────────

    def discover_all(self) -> List[ServiceRecord]:
        with self._lock:
            start = time.time()
            services = self._run()
            duration_ms = int((time.time() - start) * 1000)
            logger.info(
                f"Discovered {len(services)} services in {duration_ms}ms",
                extra={"count": len(services), "duration_ms": duration_ms},
            )
            return services

    def get_service(self, service_id: str) -> Optional[ServiceRecord]:
        """Run a full discovery and return the record with ``service_id``."""
        for record in self.discover_all():
            if record.id == service_id:
                return record
        return None

    def require_service(self, service_id: str) -> ServiceRecord:
        """Like get_service(), but raises TargetNotFound when absent."""
        record = self.get_service(service_id)
        if record is None:
            raise TargetNotFound(service_id)
        return record

    def _run(self) -> List[ServiceRecord]:
        try:
            port_table = self.resolver.get_port_usage()
        except Exception as e:
            logger.error(f"Port table unavailable: {e}")
            port_table = []

        results = self._query_providers()

        platform_records = results.get(id(self.platform), []) if self.platform else []
        platform_records = sorted(platform_records, key=lambda r: not r.is_running)
        platform_records = platform_records[:MAX_PLATFORM_SERVICES]

        records: List[ServiceRecord] = []
        if self.container is not None:
            records.extend(results.get(id(self.container), []))
        records.extend(platform_records)
        if self.process is not None:
            records.extend(results.get(id(self.process), []))

        records = enrich_with_ports(records, port_table)
        represented = {r.pid for r in records if r.pid is not None}
        records.extend(synthesize_residual(port_table, represented))

        return finalize(records)

    def _query_providers(self) -> Dict[int, List[ServiceRecord]]:
        """Run every provider on its own worker; failures contribute []."""
        providers = self.providers
        if not providers:
            return {}

        with ThreadPoolExecutor(max_workers=len(providers), thread_name_prefix="portsight-provider") as pool:
            futures = {id(p): pool.submit(self._safe_discover, p) for p in providers}
            return {key: future.result() for key, future in futures.items()}

    @staticmethod
    def _safe_discover(provider: BaseProvider) -> List[ServiceRecord]:
        name = provider.provider_name
        try:
            if not provider.is_available():
                logger.debug(f"Provider {name} not available", extra={"provider": name})
                return []
            return list(provider.discover())
        except ExternalToolUnavailable as e:
            logger.info(f"Provider {name} skipped: {e}", extra={"provider": name})
        except Exception as e:
            logger.error(f"Provider {name} failed: {e}", extra={"provider": name})
        return []


# ─────────────────────────────────────────────────────────────
# Pipeline steps
# ─────────────────────────────────────────────────────────────

def ports_by_pid(port_table: List[PortRecord]) -> Dict[int, Set[int]]:
    owned: Dict[int, Set[int]] = {}
    for entry in port_table:
        if entry.pid is not None:
            owned.setdefault(entry.pid, set()).add(entry.port)
    return owned


def enrich_with_ports(records: List[ServiceRecord], port_table: List[PortRecord]) -> List[ServiceRecord]:
    """
    Give every record with a pid exactly the ports the table attributes to it.

    Provider-reported ports of such records are discarded, even when the
    table has nothing for the pid. Records without a pid are kept as-is.
    """
    owned = ports_by_pid(port_table)
    return [
        r.with_ports(owned.get(r.pid, ())) if r.pid is not None else r
        for r in records
    ]


def synthesize_residual(port_table: List[PortRecord], represented: Set[int]) -> List[ServiceRecord]:
    """
    Pseudo-records for pids that own ports but that no provider reported.

    The MAX_SYNTHESIZED pids owning the most distinct ports win (ties by pid).
    """
    owned = {
        pid: ports for pid, ports in ports_by_pid(port_table).items()
        if pid not in represented
    }
    ranked = sorted(owned, key=lambda pid: (-len(owned[pid]), pid))[:MAX_SYNTHESIZED]

    names: Dict[int, str] = {}
    for entry in port_table:
        if entry.pid is not None and entry.process_name and entry.pid not in names:
            names[entry.pid] = entry.process_name

    records = []
    for pid in ranked:
        ports = sorted(owned[pid])
        if len(ports) == 1:
            description = f"Port {ports[0]}"
        else:
            description = "Ports: " + ", ".join(str(p) for p in ports[:5])
        records.append(ServiceRecord(
            id=f"process-{pid}",
            name=names.get(pid, f"Process {pid}"),
            kind=ServiceKind.PROCESS,
            status=ServiceStatus.RUNNING,
            ports=ports[:MAX_PORTS_PER_SYNTHESIZED],
            pid=pid,
            description=description,
        ))
    return records


def finalize(records: List[ServiceRecord]) -> List[ServiceRecord]:
    """Dedup by id (first wins), sort running first then by name, cap."""
    seen: Set[str] = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)

    unique.sort(key=lambda r: (not r.is_running, r.name.lower()))
    return unique[:MAX_SERVICES]
