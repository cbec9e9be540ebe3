"""
Discovery Providers - where service records come from.

Each provider implements BaseProvider and produces ServiceRecords. Exactly
one platform-service provider applies to a host; platform_provider() picks it.
"""

from __future__ import annotations
from typing import Optional
import platform

from .base import BaseProvider
from .container import ContainerProvider
from .launchd import LaunchdProvider
from .process import ProcessProvider
from .systemd import SystemdProvider
from .windows import WindowsServiceProvider

_PLATFORM_PROVIDERS = {
    "Linux": SystemdProvider,
    "Darwin": LaunchdProvider,
    "Windows": WindowsServiceProvider,
}


def platform_provider(system: Optional[str] = None, **kwargs) -> Optional[BaseProvider]:
    """
    The native service-manager provider for this host OS.

    Returns None on hosts without a supported service manager.
    """
    system = system or platform.system()
    provider_cls = _PLATFORM_PROVIDERS.get(system)
    if provider_cls is None:
        return None
    return provider_cls(system=system, **kwargs)


__all__ = [
    'BaseProvider',
    'ContainerProvider',
    'LaunchdProvider',
    'ProcessProvider',
    'SystemdProvider',
    'WindowsServiceProvider',
    'platform_provider',
]
