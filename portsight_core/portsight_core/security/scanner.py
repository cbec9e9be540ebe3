"""
Security Scanner - heuristic audit of open ports and discovered services.

Checks, evaluated in this order over one port-table snapshot:
1. Insecure protocols: any open port from INSECURE_PORTS
2. Public databases: database ports bound to a wildcard address
3. Insecure-by-default software, matched by service name
4. Services running as root (POSIX only)

Checks are independent: one port can produce findings from several of them.
A check that fails contributes no findings; scan() itself never raises.
"""

from __future__ import annotations
from typing import Callable, List, Optional
import logging
import os
import time

import psutil

from ..discovery.schema import ServiceRecord
from ..ports.resolver import PortResolver
from ..ports.schema import PortRecord
from .rules import DATABASE_PORTS, INSECURE_PORTS, is_system_service, port_recommendation, port_severity
from .schema import SecurityCategory, SecurityIssue, SecurityScanResult, SecuritySeverity

logger = logging.getLogger('portsight.security.scanner')

OwnerLookup = Callable[[int], Optional[str]]


def process_owner(pid: int) -> Optional[str]:
    """User name owning ``pid``, or None if it cannot be determined."""
    try:
        return psutil.Process(pid).username()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None


def _first_with_port(services: List[ServiceRecord], port: int) -> Optional[ServiceRecord]:
    return next((s for s in services if port in s.ports), None)


class SecurityScanner:
    """
    Runs the security checks.

    Usage:
        scanner = SecurityScanner(resolver, aggregator=aggregator)
        result = scanner.scan(services)
        result = scanner.scan_current()    # aggregate, then scan
    """

    def __init__(
        self,
        resolver: PortResolver,
        aggregator=None,
        owner_lookup: Optional[OwnerLookup] = None,
        is_posix: Optional[bool] = None,
    ):
        self.resolver = resolver
        self.aggregator = aggregator
        self.owner_lookup = owner_lookup or process_owner
        self.is_posix = os.name == "posix" if is_posix is None else is_posix

    def scan_current(self) -> SecurityScanResult:
        """Scan whatever the aggregator reports right now."""
        services: List[ServiceRecord] = []
        if self.aggregator is not None:
            services = self.aggregator.discover_all()
        return self.scan(services)

    def scan(
        self,
        services: List[ServiceRecord],
        port_table: Optional[List[PortRecord]] = None,
    ) -> SecurityScanResult:
        """
        Audit ``services`` against the host's port table.

        Args:
            services: Aggregated services, used to attribute findings
            port_table: Port snapshot to use; fetched from the resolver if None
        """
        if port_table is None:
            try:
                port_table = self.resolver.get_port_usage()
            except Exception as e:
                logger.error(f"Port table unavailable for security scan: {e}")
                port_table = []

        checks = [
            ("insecure_ports", lambda: self.check_insecure_ports(services, port_table)),
            ("public_databases", lambda: self.check_public_databases(services, port_table)),
            ("insecure_software", lambda: self.check_insecure_software(services)),
        ]
        if self.is_posix:
            checks.append(("root_services", lambda: self.check_root_services(services)))

        issues: List[SecurityIssue] = []
        for name, check in checks:
            try:
                issues.extend(check())
            except Exception as e:
                logger.error(f"Security check {name} failed: {e}", extra={"check": name})

        result = SecurityScanResult(
            issues=issues,
            scan_timestamp=int(time.time()),
            services_scanned=len(services),
            ports_scanned=len({p.port for p in port_table}),
        )
        logger.info(
            f"Security scan found {len(issues)} issues "
            f"({result.critical_count} critical, {result.high_count} high)",
            extra={"count": len(issues)},
        )
        return result

    # ─────────────────────────────────────────────────────────────
    # Checks
    # ─────────────────────────────────────────────────────────────

    def check_insecure_ports(self, services: List[ServiceRecord], port_table: List[PortRecord]) -> List[SecurityIssue]:
        open_ports = {p.port for p in port_table}
        issues = []
        for port, label, description in INSECURE_PORTS:
            if port not in open_ports:
                continue
            service = _first_with_port(services, port)
            issues.append(SecurityIssue(
                id=f"port-{port}",
                service_id=service.id if service else None,
                service_name=service.name if service else None,
                category=SecurityCategory.UNENCRYPTED_CONNECTION,
                severity=port_severity(port),
                title=f"{label} port {port} is open",
                description=description,
                recommendation=port_recommendation(port),
                port=port,
            ))
        return issues

    def check_public_databases(self, services: List[ServiceRecord], port_table: List[PortRecord]) -> List[SecurityIssue]:
        issues = []
        reported = set()
        for entry in port_table:
            if entry.port not in DATABASE_PORTS or entry.port in reported:
                continue
            if not entry.is_public:
                continue
            reported.add(entry.port)
            service = _first_with_port(services, entry.port)
            issues.append(SecurityIssue(
                id=f"public-db-{entry.port}",
                service_id=service.id if service else None,
                service_name=entry.process_name or (service.name if service else None),
                category=SecurityCategory.PUBLIC_EXPOSURE,
                severity=SecuritySeverity.CRITICAL,
                title=f"Database on port {entry.port} is publicly reachable",
                description="Databases should not be reachable from outside the host",
                recommendation="Bind the database to localhost (127.0.0.1) or put it behind a firewall",
                port=entry.port,
                details=f"Bound to {entry.local_address}",
            ))
        return issues

    def check_insecure_software(self, services: List[ServiceRecord]) -> List[SecurityIssue]:
        issues = []
        for service in services:
            name = service.name.lower()

            if "redis" in name and 6379 in service.ports:
                issues.append(self._auth_issue(
                    service, "redis-auth", SecuritySeverity.HIGH, 6379,
                    title="Redis may be running without authentication",
                    description="Redis has no password authentication by default",
                    recommendation="Set a password with 'requirepass' in redis.conf",
                ))

            if "mongodb" in name and 27017 in service.ports:
                issues.append(self._auth_issue(
                    service, "mongo-auth", SecuritySeverity.HIGH, 27017,
                    title="MongoDB may be running without authentication",
                    description="MongoDB does not enable authentication by default",
                    recommendation="Enable authentication with the --auth flag",
                ))

            if "memcached" in name and 11211 in service.ports:
                issues.append(self._auth_issue(
                    service, "memcached-auth", SecuritySeverity.HIGH, 11211,
                    title="Memcached has no authentication",
                    description="Memcached accepts commands from anyone who can connect",
                    recommendation="Listen on localhost only (-l 127.0.0.1) or enable SASL",
                ))

            if "elasticsearch" in name:
                issues.append(self._auth_issue(
                    service, "elastic-auth", SecuritySeverity.MEDIUM,
                    service.ports[0] if service.ports else None,
                    title="Check Elasticsearch security settings",
                    description="Elasticsearch security features should be enabled",
                    recommendation="Enable xpack.security for authentication and TLS",
                ))
        return issues

    @staticmethod
    def _auth_issue(service, prefix, severity, port, title, description, recommendation) -> SecurityIssue:
        return SecurityIssue(
            id=f"{prefix}-{service.id}",
            service_id=service.id,
            service_name=service.name,
            category=SecurityCategory.MISSING_AUTHENTICATION,
            severity=severity,
            title=title,
            description=description,
            recommendation=recommendation,
            port=port,
        )

    def check_root_services(self, services: List[ServiceRecord]) -> List[SecurityIssue]:
        issues = []
        for service in services:
            if service.pid is None or is_system_service(service.name):
                continue
            if self.owner_lookup(service.pid) != "root":
                continue
            issues.append(SecurityIssue(
                id=f"root-{service.id}",
                service_id=service.id,
                service_name=service.name,
                category=SecurityCategory.PRIVILEGE_ESCALATION,
                severity=SecuritySeverity.MEDIUM,
                title=f"{service.name} runs as root",
                description="Services should run with the least privileges they need",
                recommendation="Create a dedicated user for this service",
                port=service.ports[0] if service.ports else None,
                details=f"PID: {service.pid}",
            ))
        return issues
