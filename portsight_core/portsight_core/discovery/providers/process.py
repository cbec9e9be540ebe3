"""
Process Provider - one record per OS process, via psutil.

Ports are left empty; the aggregator fills them from the port table.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
import time

import psutil

from .base import BaseProvider
from ..schema import ServiceKind, ServiceRecord, ServiceStatus

_PROCESS_ATTRS = ['pid', 'name', 'exe', 'cmdline', 'status', 'cpu_percent', 'memory_info']

# psutil states that mean "not doing anything anymore"
_STOPPED_STATES = {
    psutil.STATUS_ZOMBIE,
    psutil.STATUS_DEAD,
    psutil.STATUS_STOPPED,
    psutil.STATUS_TRACING_STOP,
}


class ProcessProvider(BaseProvider):
    """
    Provider for the OS process table.
    """

    def __init__(self, total_memory: Optional[int] = None, cpu_sample_interval: float = 0.1, **kwargs):
        super().__init__(**kwargs)
        self._total_memory = total_memory
        self.cpu_sample_interval = cpu_sample_interval

    @property
    def kind(self) -> ServiceKind:
        return ServiceKind.PROCESS

    @property
    def total_memory(self) -> int:
        if self._total_memory is None:
            self._total_memory = psutil.virtual_memory().total
        return self._total_memory

    def discover(self) -> List[ServiceRecord]:
        """List every process visible to this user."""
        records = []
        total = self.total_memory
        self._prime_cpu_percent()

        for proc in psutil.process_iter(_PROCESS_ATTRS, ad_value=None):
            record = process_record(proc.info, total)
            if record is not None:
                records.append(record)

        self.logger.debug(f"Found {len(records)} processes", extra={"count": len(records)})
        return records

    def _prime_cpu_percent(self) -> None:
        """
        Start a CPU sample on every process.

        psutil measures cpu_percent against the previous call on the same
        Process object and answers 0.0 the first time. process_iter hands
        back its cached objects, so the listing pass that follows reports
        usage over ``cpu_sample_interval``.
        """
        if self.cpu_sample_interval <= 0:
            return
        for proc in psutil.process_iter():
            try:
                proc.cpu_percent(None)
            except psutil.Error:
                continue
        time.sleep(self.cpu_sample_interval)


def process_record(info: Dict[str, Any], total_memory: int) -> Optional[ServiceRecord]:
    """
    Build a ServiceRecord from a psutil ``Process.info`` mapping.

    Returns None for entries without a usable pid.
    """
    pid = info.get('pid')
    if not isinstance(pid, int) or pid < 0:
        return None

    memory_bytes = None
    memory_percent = None
    mem = info.get('memory_info')
    if mem is not None:
        memory_bytes = int(mem.rss)
        if total_memory > 0:
            memory_percent = memory_bytes / total_memory * 100

    cmdline = info.get('cmdline') or []
    state = info.get('status')
    if state is None:
        status = ServiceStatus.UNKNOWN
    elif state in _STOPPED_STATES:
        status = ServiceStatus.STOPPED
    else:
        status = ServiceStatus.RUNNING

    return ServiceRecord(
        id=str(pid),
        name=info.get('name') or f"pid-{pid}",
        kind=ServiceKind.PROCESS,
        status=status,
        pid=pid,
        path=info.get('exe') or None,
        description=' '.join(cmdline) or None,
        cpu_percent=info.get('cpu_percent'),
        memory_bytes=memory_bytes,
        memory_percent=memory_percent,
    )
