import threading

import pytest

from portsight_core.discovery.aggregator import (
    MAX_SERVICES,
    MAX_SYNTHESIZED,
    Aggregator,
    enrich_with_ports,
    finalize,
    synthesize_residual,
)
from portsight_core.discovery.providers.base import BaseProvider
from portsight_core.discovery.schema import ServiceKind, ServiceRecord, ServiceStatus
from portsight_core.errors import ExternalToolUnavailable, TargetNotFound
from portsight_core.ports.schema import PortRecord


class FakeProvider(BaseProvider):

    def __init__(self, kind, records=(), error=None, available=True):
        self._kind = kind
        super().__init__()
        self.records = list(records)
        self.error = error
        self.available = available
        self.calls = 0

    @property
    def kind(self):
        return self._kind

    def is_available(self):
        return self.available

    def discover(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeResolver:

    def __init__(self, table=()):
        self.table = list(table)
        self.calls = 0

    def get_port_usage(self):
        self.calls += 1
        return list(self.table)


def svc(id, name=None, status=ServiceStatus.RUNNING, kind=ServiceKind.SYSTEMD, pid=None, ports=()):
    return ServiceRecord(id=id, name=name or id, kind=kind, status=status, pid=pid, ports=ports)


def port(number, pid=None, name=None, address="127.0.0.1"):
    return PortRecord(port=number, pid=pid, process_name=name, local_address=address)


class TestEnrichment:

    def test_ports_replaced_by_port_table(self):
        records = enrich_with_ports(
            [svc("nginx", pid=100, ports=(9999,))],
            [port(80, pid=100), port(443, pid=100), port(80, pid=100)],
        )
        assert records[0].ports == (80, 443)

    def test_no_table_entries_clears_ports(self):
        records = enrich_with_ports([svc("nginx", pid=100, ports=(9999,))], [port(22, pid=1)])
        assert records[0].ports == ()

    def test_records_without_pid_untouched(self):
        web = svc("web", kind=ServiceKind.DOCKER, ports=(8080,))
        assert enrich_with_ports([web], [port(8080, pid=5)]) == [web]


class TestResidualSynthesis:

    def test_pseudo_record_shape(self):
        table = [port(5000, pid=42, name="gunicorn")]
        [record] = synthesize_residual(table, set())

        assert record.id == "process-42"
        assert record.name == "gunicorn"
        assert record.kind is ServiceKind.PROCESS
        assert record.status is ServiceStatus.RUNNING
        assert record.pid == 42
        assert record.ports == (5000,)
        assert record.description == "Port 5000"

    def test_multi_port_description_and_cap(self):
        table = [port(p, pid=7) for p in range(9000, 9012)]
        [record] = synthesize_residual(table, set())

        assert record.name == "Process 7"
        assert len(record.ports) == 10
        assert record.description == "Ports: 9000, 9001, 9002, 9003, 9004"

    def test_represented_pids_skipped(self):
        table = [port(80, pid=1), port(81, pid=2)]
        assert [r.pid for r in synthesize_residual(table, {1})] == [2]

    def test_cap_keeps_largest(self):
        # pid n owns n distinct ports, for n in 1..60
        table = []
        next_port = 1000
        for pid in range(1, 61):
            for _ in range(pid):
                table.append(port(next_port, pid=pid))
                next_port += 1

        records = synthesize_residual(table, set())

        assert len(records) == MAX_SYNTHESIZED
        assert {r.pid for r in records} == set(range(11, 61))


class TestFinalize:

    def test_running_first_then_name(self):
        records = finalize([
            svc("b", name="beta", status=ServiceStatus.STOPPED),
            svc("z", name="Zeta"),
            svc("a", name="alpha"),
            svc("c", name="Charlie", status=ServiceStatus.ERROR),
        ])
        assert [r.name for r in records] == ["alpha", "Zeta", "beta", "Charlie"]

    def test_dedup_first_wins(self):
        first = svc("dup", name="first")
        second = svc("dup", name="second")
        assert finalize([first, second]) == [first]

    def test_global_cap(self):
        records = finalize([svc(f"s{i:03d}") for i in range(200)])
        assert len(records) == MAX_SERVICES
        assert len({r.id for r in records}) == MAX_SERVICES


class TestDiscoverAll:

    def test_merges_providers_and_port_table(self):
        container = FakeProvider(ServiceKind.DOCKER, [
            svc("c1", name="web", kind=ServiceKind.DOCKER, ports=(8080,)),
        ])
        platform = FakeProvider(ServiceKind.SYSTEMD, [
            svc("nginx.service", name="nginx", pid=100),
            svc("cron.service", name="cron", status=ServiceStatus.STOPPED),
        ])
        resolver = FakeResolver([port(80, pid=100), port(5000, pid=200, name="gunicorn")])

        services = Aggregator(resolver, container=container, platform=platform).discover_all()
        by_id = {s.id: s for s in services}

        assert [s.name for s in services] == ["gunicorn", "nginx", "web", "cron"]
        assert by_id["nginx.service"].ports == (80,)
        assert by_id["c1"].ports == (8080,)
        assert by_id["process-200"].ports == (5000,)
        assert resolver.calls == 1

    def test_failing_provider_contributes_nothing(self):
        container = FakeProvider(ServiceKind.DOCKER, error=RuntimeError("socket gone"))
        platform = FakeProvider(ServiceKind.SYSTEMD, [svc("ssh.service")])

        services = Aggregator(FakeResolver(), container=container, platform=platform).discover_all()

        assert [s.id for s in services] == ["ssh.service"]

    def test_missing_tool_contributes_nothing(self):
        platform = FakeProvider(ServiceKind.SYSTEMD, error=ExternalToolUnavailable(["systemctl"]))
        assert Aggregator(FakeResolver(), platform=platform).discover_all() == []

    def test_unavailable_provider_not_called(self):
        container = FakeProvider(ServiceKind.DOCKER, [svc("c1")], available=False)
        Aggregator(FakeResolver(), container=container).discover_all()
        assert container.calls == 0

    def test_platform_services_capped_running_first(self):
        stopped = [svc(f"s{i}", status=ServiceStatus.STOPPED) for i in range(120)]
        running = [svc(f"r{i}") for i in range(5)]
        platform = FakeProvider(ServiceKind.LAUNCHD, stopped + running)

        services = Aggregator(FakeResolver(), platform=platform).discover_all()

        assert len(services) == 100
        assert {f"r{i}" for i in range(5)} <= {s.id for s in services}

    def test_container_wins_duplicate_ids(self):
        container = FakeProvider(ServiceKind.DOCKER, [svc("same", name="from-docker", kind=ServiceKind.DOCKER)])
        platform = FakeProvider(ServiceKind.SYSTEMD, [svc("same", name="from-systemd")])

        [record] = Aggregator(FakeResolver(), container=container, platform=platform).discover_all()
        assert record.name == "from-docker"

    def test_process_provider_covers_pids(self):
        process = FakeProvider(ServiceKind.PROCESS, [svc("200", name="gunicorn", kind=ServiceKind.PROCESS, pid=200)])
        resolver = FakeResolver([port(5000, pid=200)])

        services = Aggregator(resolver, process=process).discover_all()

        assert [s.id for s in services] == ["200"]
        assert services[0].ports == (5000,)

    def test_residual_and_global_caps(self):
        platform = FakeProvider(ServiceKind.SYSTEMD, [svc(f"u{i}") for i in range(100)])
        resolver = FakeResolver([port(10000 + pid, pid=pid) for pid in range(1, 61)])

        services = Aggregator(resolver, platform=platform).discover_all()

        assert len(services) == MAX_SERVICES
        assert len([s for s in services if s.id.startswith("process-")]) <= MAX_SYNTHESIZED

    def test_idempotent(self):
        platform = FakeProvider(ServiceKind.SYSTEMD, [
            svc("b.service", pid=2), svc("a.service", status=ServiceStatus.STOPPED),
        ])
        resolver = FakeResolver([port(80, pid=2), port(81, pid=3)])
        aggregator = Aggregator(resolver, platform=platform)

        assert aggregator.discover_all() == aggregator.discover_all()

    def test_runs_are_serialized(self):
        active = []
        peak = []
        lock = threading.Lock()

        class SlowResolver(FakeResolver):
            def get_port_usage(self):
                with lock:
                    active.append(1)
                    peak.append(len(active))
                threading.Event().wait(0.02)
                with lock:
                    active.pop()
                return []

        aggregator = Aggregator(SlowResolver())
        threads = [threading.Thread(target=aggregator.discover_all) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max(peak) == 1


class TestServiceLookup:

    def _aggregator(self):
        platform = FakeProvider(ServiceKind.SYSTEMD, [svc("nginx.service")])
        return Aggregator(FakeResolver(), platform=platform)

    def test_get_service(self):
        assert self._aggregator().get_service("nginx.service").id == "nginx.service"
        assert self._aggregator().get_service("missing") is None

    def test_require_service_raises(self):
        with pytest.raises(TargetNotFound):
            self._aggregator().require_service("missing")
