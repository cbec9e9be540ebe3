"""
portsight - what is running and what is listening on this host.
"""

__version__ = "0.1.0"
