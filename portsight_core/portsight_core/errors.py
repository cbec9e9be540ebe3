"""
Error taxonomy for portsight.

Only ``TargetNotFound`` ever reaches a caller. The others are raised inside
providers, parsers and probes and are absorbed at the component boundary:
discovery and scanning degrade to partial or empty data instead of failing.
"""

from __future__ import annotations
from typing import List, Optional


class PortsightError(Exception):
    """Base class for all portsight errors."""


class ExternalToolUnavailable(PortsightError):
    """An external command is missing or exited non-zero."""

    def __init__(self, command: List[str], returncode: Optional[int] = None, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = f"exit {returncode}" if returncode is not None else "not found"
        super().__init__(f"{' '.join(self.command)}: {detail}")


class ParseError(PortsightError):
    """A single line or entry of tool output had an unexpected shape."""


class TargetNotFound(PortsightError):
    """A named service, container or pid does not exist (anymore)."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Target not found: {target}")


class ProbeTimeout(PortsightError):
    """A TCP probe did not complete within its timeout."""
