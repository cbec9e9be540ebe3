"""
System Stats - one snapshot of host CPU and memory usage via psutil.

CPU usage needs two readings, so ``get_system_stats`` blocks for
``sample_interval`` seconds. Overall usage is the mean of the per-core
values.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
from typing import List, Optional
import logging
import time

import psutil

logger = logging.getLogger('portsight.system.stats')

DEFAULT_SAMPLE_INTERVAL = 0.1


@dataclass
class CpuStats:
    usage_percent: float
    core_count: int
    per_core_usage: List[float] = field(default_factory=list)
    frequency_mhz: Optional[int] = None


@dataclass
class MemoryStats:
    total_bytes: int
    used_bytes: int
    available_bytes: int
    usage_percent: float
    swap_total_bytes: int
    swap_used_bytes: int


@dataclass
class SystemStats:
    cpu: CpuStats
    memory: MemoryStats
    timestamp: int

    def to_dict(self) -> dict:
        return asdict(self)


def _cpu_frequency() -> Optional[int]:
    # Not available in every VM or container
    try:
        freq = psutil.cpu_freq()
    except (OSError, NotImplementedError) as e:
        logger.debug(f"CPU frequency unavailable: {e}")
        return None
    if freq is None or not freq.current:
        return None
    return int(freq.current)


def cpu_stats(sample_interval: float = DEFAULT_SAMPLE_INTERVAL) -> CpuStats:
    per_core = [float(p) for p in psutil.cpu_percent(interval=sample_interval, percpu=True)]
    usage = sum(per_core) / len(per_core) if per_core else 0.0
    return CpuStats(
        usage_percent=usage,
        core_count=psutil.cpu_count(logical=True) or len(per_core),
        per_core_usage=per_core,
        frequency_mhz=_cpu_frequency(),
    )


def memory_stats() -> MemoryStats:
    memory = psutil.virtual_memory()
    swap = psutil.swap_memory()
    usage = memory.used / memory.total * 100 if memory.total > 0 else 0.0
    return MemoryStats(
        total_bytes=int(memory.total),
        used_bytes=int(memory.used),
        available_bytes=int(memory.available),
        usage_percent=usage,
        swap_total_bytes=int(swap.total),
        swap_used_bytes=int(swap.used),
    )


def get_system_stats(sample_interval: float = DEFAULT_SAMPLE_INTERVAL) -> SystemStats:
    """Snapshot CPU and memory usage of this host."""
    return SystemStats(
        cpu=cpu_stats(sample_interval),
        memory=memory_stats(),
        timestamp=int(time.time()),
    )
