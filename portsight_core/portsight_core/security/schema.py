"""
Security Schema - findings of the heuristic security scan.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class SecuritySeverity(str, Enum):
    """Risk tier, most severe first."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class SecurityCategory(str, Enum):
    UNENCRYPTED_CONNECTION = "unencrypted_connection"
    PUBLIC_EXPOSURE = "public_exposure"
    DEFAULT_CREDENTIALS = "default_credentials"
    OUTDATED_SOFTWARE = "outdated_software"
    MISSING_AUTHENTICATION = "missing_authentication"
    INSECURE_CONFIGURATION = "insecure_configuration"
    PRIVILEGE_ESCALATION = "privilege_escalation"
    DATA_LEAKAGE = "data_leakage"


@dataclass
class SecurityIssue:
    """One finding."""

    id: str
    category: SecurityCategory
    severity: SecuritySeverity
    title: str
    description: str
    recommendation: str
    service_id: Optional[str] = None
    service_name: Optional[str] = None
    port: Optional[int] = None
    details: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_id": self.service_id,
            "service_name": self.service_name,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
            "port": self.port,
            "details": self.details,
        }


@dataclass
class SecurityScanResult:
    """
    Issues in the order the checks produced them, plus per-severity counts.

    Severity is only counted here; issues are never re-sorted by it.
    """

    issues: List[SecurityIssue] = field(default_factory=list)
    scan_timestamp: int = 0
    services_scanned: int = 0
    ports_scanned: int = 0

    def count(self, severity: SecuritySeverity) -> int:
        return sum(1 for issue in self.issues if issue.severity is severity)

    @property
    def critical_count(self) -> int:
        return self.count(SecuritySeverity.CRITICAL)

    @property
    def high_count(self) -> int:
        return self.count(SecuritySeverity.HIGH)

    @property
    def medium_count(self) -> int:
        return self.count(SecuritySeverity.MEDIUM)

    @property
    def low_count(self) -> int:
        return self.count(SecuritySeverity.LOW)

    @property
    def info_count(self) -> int:
        return self.count(SecuritySeverity.INFO)

    def counts(self) -> Dict[str, int]:
        """Issue count per severity value, most severe first."""
        return {severity.value: self.count(severity) for severity in SecuritySeverity}

    def to_dict(self) -> dict:
        data = {
            "issues": [issue.to_dict() for issue in self.issues],
            "scan_timestamp": self.scan_timestamp,
            "services_scanned": self.services_scanned,
            "ports_scanned": self.ports_scanned,
        }
        for severity, n in self.counts().items():
            data[f"{severity}_count"] = n
        return data
