"""
Base Provider - Abstract base class for all discovery providers.

Providers:
1. Query one source (process table, container runtime, service manager)
2. Parse its output into ServiceRecords
3. Return the list, skipping entries they cannot parse

A provider may raise from discover(); the aggregator isolates each provider
so one failing source never costs the others their results.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple
import logging

from ...errors import ExternalToolUnavailable
from ...utils.commands import DEFAULT_TIMEOUT, command_exists, run_command
from ..schema import ServiceKind, ServiceRecord

Runner = Callable[..., Tuple[int, str, str]]


class BaseProvider(ABC):
    """
    Abstract base class for discovery providers.

    Subclasses must implement:
    - kind: The ServiceKind of the records this provider produces
    - discover(): The main discovery method

    Optional overrides:
    - is_available(): Check if the provider can run on this system
    """

    def __init__(self, runner: Optional[Runner] = None, timeout: int = DEFAULT_TIMEOUT):
        self.logger = logging.getLogger(f'portsight.provider.{self.provider_name}')
        self._runner = runner or run_command
        self.timeout = timeout

    @property
    @abstractmethod
    def kind(self) -> ServiceKind:
        """The kind of records this provider produces."""
        pass

    @property
    def provider_name(self) -> str:
        """Provider name for logging."""
        return self.kind.value

    @abstractmethod
    def discover(self) -> List[ServiceRecord]:
        """
        Enumerate every service this source knows about.

        Returns:
            List of ServiceRecords, in the source's own order.
        """
        pass

    def get_service(self, service_id: str) -> Optional[ServiceRecord]:
        """Re-run discovery and return the record with ``service_id``."""
        for record in self.discover():
            if record.id == service_id:
                return record
        return None

    def is_available(self) -> bool:
        """
        Check if this provider can run on this system.

        Override in subclasses to check host OS and required tools.
        Default returns True.
        """
        return True

    # ─────────────────────────────────────────────────────────────
    # Utility methods for subclasses
    # ─────────────────────────────────────────────────────────────

    def run_command(self, cmd: List[str], timeout: Optional[int] = None) -> Tuple[int, str, str]:
        """
        Run an external command through the configured runner.

        Returns:
            Tuple of (exit_code, stdout, stderr)
        """
        return self._runner(cmd, timeout=timeout or self.timeout)

    def check_output(self, cmd: List[str], timeout: Optional[int] = None) -> str:
        """
        Run the command a provider cannot work without.

        Raises:
            ExternalToolUnavailable: missing binary or non-zero exit.
        """
        code, stdout, stderr = self.run_command(cmd, timeout=timeout)
        if code != 0:
            raise ExternalToolUnavailable(cmd, None if code == -1 else code, stderr)
        return stdout

    def command_exists(self, cmd: str) -> bool:
        """Check if a command exists on the system."""
        return command_exists(cmd)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} provider={self.provider_name}>"
