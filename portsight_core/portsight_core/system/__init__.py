"""
System - host resource snapshot (CPU and memory) next to the service view.
"""

from .stats import CpuStats, MemoryStats, SystemStats, get_system_stats

__all__ = [
    'CpuStats',
    'MemoryStats',
    'SystemStats',
    'get_system_stats',
]
