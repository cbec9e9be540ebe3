"""
Change Monitor - polls the aggregator and reports what changed.

The monitor keeps the previous snapshot (the baseline) to itself. Callers
only ever see the events handed to the sink:

    AllDiscovered   first successful tick, the whole list
    StatusChanged   a known service changed status
    PortsChanged    a known service's port set changed
    ServiceAdded    an id not in the baseline
    ServiceRemoved  a baseline id that vanished

StatusChanged and PortsChanged are independent; both can fire for one id in
the same tick.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union
import logging
import threading

from ..config import ConfigCell
from .aggregator import Aggregator
from .schema import ServiceRecord

logger = logging.getLogger('portsight.discovery.monitor')


# ─────────────────────────────────────────────────────────────
# Events
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AllDiscovered:
    services: Tuple[ServiceRecord, ...]

    def to_dict(self) -> dict:
        return {"type": "AllDiscovered", "payload": [s.to_dict() for s in self.services]}


@dataclass(frozen=True)
class StatusChanged:
    service_id: str
    old_status: str
    new_status: str

    def to_dict(self) -> dict:
        return {
            "type": "StatusChanged",
            "payload": {
                "service_id": self.service_id,
                "old_status": self.old_status,
                "new_status": self.new_status,
            },
        }


@dataclass(frozen=True)
class PortsChanged:
    service_id: str
    ports: Tuple[int, ...]

    def to_dict(self) -> dict:
        return {
            "type": "PortsChanged",
            "payload": {"service_id": self.service_id, "ports": list(self.ports)},
        }


@dataclass(frozen=True)
class ServiceAdded:
    service: ServiceRecord

    def to_dict(self) -> dict:
        return {"type": "ServiceAdded", "payload": self.service.to_dict()}


@dataclass(frozen=True)
class ServiceRemoved:
    service_id: str

    def to_dict(self) -> dict:
        return {"type": "ServiceRemoved", "payload": {"service_id": self.service_id}}


MonitorEvent = Union[AllDiscovered, StatusChanged, PortsChanged, ServiceAdded, ServiceRemoved]
EventSink = Callable[[MonitorEvent], None]


def diff_snapshots(
    baseline: Dict[str, ServiceRecord],
    current: List[ServiceRecord],
) -> List[MonitorEvent]:
    """
    Events describing the move from ``baseline`` to ``current``.

    An empty baseline yields a single AllDiscovered event.
    """
    if not baseline:
        return [AllDiscovered(tuple(current))]

    events: List[MonitorEvent] = []
    current_ids = set()
    for service in current:
        current_ids.add(service.id)
        old = baseline.get(service.id)
        if old is None:
            events.append(ServiceAdded(service))
            continue
        if old.status != service.status:
            events.append(StatusChanged(service.id, old.status.value, service.status.value))
        if set(old.ports) != set(service.ports):
            events.append(PortsChanged(service.id, service.ports))

    for service_id in baseline:
        if service_id not in current_ids:
            events.append(ServiceRemoved(service_id))
    return events


# ─────────────────────────────────────────────────────────────
# Monitor
# ─────────────────────────────────────────────────────────────

class ChangeMonitor:
    """
    Background polling loop over an Aggregator.

    Usage:
        monitor = ChangeMonitor(aggregator, config_cell, sink=print)
        monitor.start()
        ...
        config_cell.set_interval(10)   # applies after the current sleep
        monitor.stop()

    Interval and enabled flag are read from the ConfigCell at the top of
    every iteration. While disabled the loop keeps waking up but neither
    discovers nor emits, and the baseline is kept for when it resumes.
    """

    def __init__(
        self,
        aggregator: Aggregator,
        config: ConfigCell,
        sink: Optional[EventSink] = None,
    ):
        self.aggregator = aggregator
        self.config = config
        self.sink = sink
        self._baseline: Dict[str, ServiceRecord] = {}
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> List[MonitorEvent]:
        """Run one discovery, diff against the baseline, emit and return events."""
        current = self.aggregator.discover_all()
        events = diff_snapshots(self._baseline, current)
        self._baseline = {s.id: s for s in current}

        for event in events:
            self._emit(event)

        if events:
            logger.debug(f"Tick produced {len(events)} events", extra={"events": len(events)})
        return events

    def _emit(self, event: MonitorEvent) -> None:
        if self.sink is None:
            return
        try:
            self.sink(event)
        except Exception as e:
            logger.error(f"Event sink failed on {type(event).__name__}: {e}")

    def start(self) -> bool:
        """
        Start the polling loop in a daemon thread.

        Returns False without starting anything while a previous loop is
        still alive, including one that was asked to stop but is still
        finishing its discovery.
        """
        if self.running:
            if self._stop_event.is_set():
                logger.warning("Previous monitor loop is still finishing; not starting another")
            return False

        # One stop event per loop so a new start never revives an old loop
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._loop, args=(self._stop_event,), name="portsight-monitor", daemon=True
        )
        self._thread.start()
        logger.info("Change monitor started")
        return True

    def stop(self, timeout: float = 5.0) -> bool:
        """
        Stop the loop, interrupting its sleep, and wait for the thread.

        Returns False if the thread is still inside a discovery after
        ``timeout``; it exits on its own once that discovery returns.
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"Change monitor did not stop within {timeout}s")
                return False
            self._thread = None
        logger.info("Change monitor stopped")
        return True

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            settings = self.config.get()
            if settings.enabled:
                try:
                    self.tick()
                except Exception as e:
                    logger.error(f"Monitor loop error: {e}")
            stop_event.wait(settings.interval_seconds)
