"""
Security - heuristic audit over discovered services and open ports.
"""

from .schema import SecurityCategory, SecurityIssue, SecurityScanResult, SecuritySeverity
from .scanner import SecurityScanner

__all__ = [
    'SecurityCategory',
    'SecurityIssue',
    'SecurityScanResult',
    'SecuritySeverity',
    'SecurityScanner',
]
