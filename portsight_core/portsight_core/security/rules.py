"""
Static rule tables for the security scanner.
"""

from __future__ import annotations
from typing import Dict, List, Tuple

from .schema import SecuritySeverity

# (port, label, description) for plaintext or weakly authenticated protocols
INSECURE_PORTS: List[Tuple[int, str, str]] = [
    (21, "FTP", "FTP transfers data, including passwords, unencrypted"),
    (23, "Telnet", "Telnet is unencrypted; use SSH instead"),
    (25, "SMTP", "SMTP without TLS transfers mail unencrypted"),
    (69, "TFTP", "TFTP has no authentication"),
    (80, "HTTP", "HTTP is unencrypted; use HTTPS"),
    (110, "POP3", "POP3 without TLS transfers mail unencrypted"),
    (143, "IMAP", "IMAP without TLS transfers mail unencrypted"),
    (161, "SNMP", "SNMP v1/v2 has weak authentication"),
    (389, "LDAP", "LDAP without TLS transfers directory data unencrypted"),
    (445, "SMB", "SMB is a common target for network attacks"),
    (512, "rexec", "Remote execution without strong authentication"),
    (513, "rlogin", "Remote login is insecure; use SSH"),
    (514, "rsh", "Remote shell is insecure; use SSH"),
    (1433, "MSSQL", "Databases should not be reachable from the network"),
    (1521, "Oracle", "Databases should not be reachable from the network"),
    (3306, "MySQL", "Databases should not be reachable from the network"),
    (5432, "PostgreSQL", "Databases should not be reachable from the network"),
    (6379, "Redis", "Redis often runs without authentication"),
    (11211, "Memcached", "Memcached has no authentication"),
    (27017, "MongoDB", "MongoDB should not be reachable from the network"),
]

DATABASE_PORTS = frozenset({1433, 1521, 3306, 5432, 6379, 11211, 27017, 5984, 9200, 9300})

_PORT_SEVERITY: Dict[int, SecuritySeverity] = {
    23: SecuritySeverity.CRITICAL,
    512: SecuritySeverity.CRITICAL,
    513: SecuritySeverity.CRITICAL,
    514: SecuritySeverity.CRITICAL,
    21: SecuritySeverity.HIGH,
    69: SecuritySeverity.HIGH,
    25: SecuritySeverity.MEDIUM,
    80: SecuritySeverity.MEDIUM,
    110: SecuritySeverity.MEDIUM,
    143: SecuritySeverity.MEDIUM,
    161: SecuritySeverity.MEDIUM,
    389: SecuritySeverity.MEDIUM,
    445: SecuritySeverity.MEDIUM,
}

_PORT_RECOMMENDATION: Dict[int, str] = {
    21: "Use SFTP (port 22) instead of FTP",
    23: "Use SSH (port 22) instead of Telnet",
    25: "Enable STARTTLS or use port 587 with TLS",
    80: "Enable HTTPS and redirect HTTP to HTTPS",
    110: "Use POP3S (port 995) with TLS",
    143: "Use IMAPS (port 993) with TLS",
    389: "Use LDAPS (port 636) with TLS",
    445: "Restrict SMB access to the local network",
}

DATABASE_RECOMMENDATION = "Bind the database to localhost and use an SSH tunnel for remote access"
GENERIC_RECOMMENDATION = "Check whether this port really needs to be reachable"

# Name prefixes of OS-owned processes that legitimately run as root
SYSTEM_PREFIXES = ("com.apple.", "systemd", "launchd", "kernel", "init")


def port_severity(port: int) -> SecuritySeverity:
    return _PORT_SEVERITY.get(port, SecuritySeverity.LOW)


def port_recommendation(port: int) -> str:
    if port in _PORT_RECOMMENDATION:
        return _PORT_RECOMMENDATION[port]
    if port in DATABASE_PORTS:
        return DATABASE_RECOMMENDATION
    return GENERIC_RECOMMENDATION


def is_system_service(name: str) -> bool:
    return name.lower().startswith(SYSTEM_PREFIXES)
