"""
Application context - every long-lived component, built once at startup.

Entry points (CLI commands, the change monitor) receive an AppContext
instead of reaching for module-level singletons.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .config import ConfigCell, Settings
from .discovery.aggregator import Aggregator
from .discovery.monitor import ChangeMonitor, EventSink
from .discovery.providers import ContainerProvider, ProcessProvider, platform_provider
from .ports.resolver import PortResolver
from .ports.scanner import PortScanner
from .security.scanner import SecurityScanner


@dataclass
class AppContext:
    settings: Settings
    resolver: PortResolver
    aggregator: Aggregator
    port_scanner: PortScanner
    security_scanner: SecurityScanner
    monitor_config: ConfigCell

    @classmethod
    def create(cls, settings: Optional[Settings] = None, system: Optional[str] = None) -> "AppContext":
        """Wire up the components for this host from ``settings``."""
        settings = settings or Settings()
        timeout = settings.commands.timeout_seconds

        resolver = PortResolver(system=system, timeout=timeout)
        aggregator = Aggregator(
            resolver,
            container=ContainerProvider(timeout=timeout),
            platform=platform_provider(system, timeout=timeout),
            process=ProcessProvider(timeout=timeout) if settings.commands.include_processes else None,
        )
        return cls(
            settings=settings,
            resolver=resolver,
            aggregator=aggregator,
            port_scanner=PortScanner(
                timeout=settings.scanner.timeout_ms / 1000.0,
                max_concurrent=settings.scanner.max_concurrent,
            ),
            security_scanner=SecurityScanner(resolver, aggregator=aggregator),
            monitor_config=ConfigCell(settings.monitor),
        )

    def create_monitor(self, sink: Optional[EventSink] = None) -> ChangeMonitor:
        return ChangeMonitor(self.aggregator, self.monitor_config, sink=sink)
