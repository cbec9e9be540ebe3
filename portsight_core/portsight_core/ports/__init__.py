"""
Ports - passive enumeration (resolver) and active probing (scanner).
"""

from .schema import PortRecord, PortStatus, Protocol
from .resolver import PortResolver
from .scanner import PortScanner

__all__ = [
    'PortRecord',
    'PortStatus',
    'Protocol',
    'PortResolver',
    'PortScanner',
]
