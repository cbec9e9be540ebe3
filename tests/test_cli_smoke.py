import json

import pytest

from portsight_core import cli
from portsight_core.config import ConfigCell, Settings
from portsight_core.context import AppContext
from portsight_core.discovery.aggregator import Aggregator
from portsight_core.ports.resolver import PortResolver
from portsight_core.ports.scanner import PortScanner
from portsight_core.security.scanner import SecurityScanner
from portsight_core.system.stats import CpuStats, MemoryStats, SystemStats

from conftest import FakeRunner, read_fixture


@pytest.fixture
def fake_context(monkeypatch, tmp_path):
    """AppContext wired to recorded ss output and no providers."""
    monkeypatch.setenv("PORTSIGHT_CONFIG_DIR", str(tmp_path))
    runner = FakeRunner({("ss",): (0, read_fixture("ss_tulnp.txt"), "")})
    resolver = PortResolver(system="Linux", runner=runner)
    aggregator = Aggregator(resolver)

    def create(settings=None, system=None):
        settings = settings or Settings()
        return AppContext(
            settings=settings,
            resolver=resolver,
            aggregator=aggregator,
            port_scanner=PortScanner(connector=lambda host, port, timeout: port == 22),
            security_scanner=SecurityScanner(resolver, aggregator=aggregator, is_posix=False),
            monitor_config=ConfigCell(settings.monitor),
        )

    monkeypatch.setattr(AppContext, "create", staticmethod(create))


def run(capsys, *argv):
    code = cli.main(list(argv))
    return code, capsys.readouterr().out


def test_services(fake_context, capsys):
    code, out = run(capsys, "services")
    assert code == 0
    ids = [s["id"] for s in json.loads(out)]
    assert "process-1001" in ids
    assert "process-3001" in ids


def test_show_known_and_unknown(fake_context, capsys):
    code, out = run(capsys, "show", "process-2001")
    assert code == 0
    assert json.loads(out)["name"] == "nginx"

    code, out = run(capsys, "show", "nope")
    assert code == 1
    assert out == ""


def test_ports(fake_context, capsys):
    code, out = run(capsys, "ports")
    assert code == 0
    assert {p["port"] for p in json.loads(out)} == {22, 53, 80, 5432, 6379}


def test_free_ports(fake_context, capsys):
    code, out = run(capsys, "free-ports", "--start", "20", "--end", "30", "--count", "3")
    assert code == 0
    assert json.loads(out) == [20, 21, 23]


def test_free_ports_bad_range(fake_context, capsys):
    code, _ = run(capsys, "free-ports", "--start", "30", "--end", "20")
    assert code == 2


def test_scan_range_and_common(fake_context, capsys):
    code, out = run(capsys, "scan", "--start", "1", "--end", "100")
    assert code == 0
    assert [r["port"] for r in json.loads(out)] == [22]

    code, out = run(capsys, "scan", "--common")
    assert [r["port"] for r in json.loads(out)] == [22]


def test_security(fake_context, capsys):
    code, out = run(capsys, "security")
    assert code == 0
    data = json.loads(out)
    assert data["ports_scanned"] == 5
    assert "public-db-6379" in [i["id"] for i in data["issues"]]


def test_monitor_bounded(fake_context, capsys):
    code, out = run(capsys, "monitor", "--ticks", "2", "--interval", "0.01")
    assert code == 0
    events = [json.loads(line) for line in out.strip().splitlines()]
    assert [e["type"] for e in events] == ["AllDiscovered"]


def test_stats(fake_context, capsys, monkeypatch):
    sampled = []

    def fake_stats(sample_interval):
        sampled.append(sample_interval)
        return SystemStats(
            cpu=CpuStats(usage_percent=12.5, core_count=2, per_core_usage=[10.0, 15.0]),
            memory=MemoryStats(100, 40, 60, 40.0, 0, 0),
            timestamp=1,
        )

    monkeypatch.setattr(cli, "get_system_stats", fake_stats)
    code, out = run(capsys, "stats", "--sample", "0.5")

    assert code == 0
    assert sampled == [0.5]
    data = json.loads(out)
    assert data["cpu"]["core_count"] == 2
    assert data["memory"]["used_bytes"] == 40


def test_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_context_wiring_from_settings():
    settings = Settings.model_validate({
        "scanner": {"timeout_ms": 500, "max_concurrent": 7},
        "commands": {"include_processes": True},
        "monitor": {"interval_seconds": 9},
    })
    ctx = AppContext.create(settings, system="Linux")

    assert ctx.port_scanner.timeout == 0.5
    assert ctx.port_scanner.max_concurrent == 7
    assert ctx.aggregator.platform.provider_name == "systemd"
    assert ctx.aggregator.process is not None
    assert ctx.monitor_config.get().interval_seconds == 9
    assert ctx.security_scanner.aggregator is ctx.aggregator
