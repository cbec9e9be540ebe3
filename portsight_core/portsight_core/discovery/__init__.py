"""
Service Discovery - what is running on this host.

This module provides:
- ServiceRecord schema (what we find)
- Providers (where we find it)
- Aggregator (merge, enrich, rank)
- ChangeMonitor (what changed since last time)
"""

from .schema import ServiceKind, ServiceRecord, ServiceStatus
from .aggregator import Aggregator
from .monitor import (
    AllDiscovered,
    ChangeMonitor,
    MonitorEvent,
    PortsChanged,
    ServiceAdded,
    ServiceRemoved,
    StatusChanged,
)

__all__ = [
    'ServiceKind',
    'ServiceRecord',
    'ServiceStatus',
    'Aggregator',
    'ChangeMonitor',
    'MonitorEvent',
    'AllDiscovered',
    'StatusChanged',
    'PortsChanged',
    'ServiceAdded',
    'ServiceRemoved',
]
