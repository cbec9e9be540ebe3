import io
import json
import logging
import threading

import pytest
from pydantic import ValidationError

from portsight_core.config import ConfigCell, MonitorSettings, Settings, load_settings
from portsight_core.obs.logging import JsonFormatter, configure_logging
from portsight_core.utils import paths
from portsight_core.utils.paths import config_dir, config_file


def test_config_dir_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("PORTSIGHT_CONFIG_DIR", str(tmp_path / "cfg"))
    assert config_dir() == str(tmp_path / "cfg")
    assert config_file() == str(tmp_path / "cfg" / "portsight.yml")


def test_config_dir_follows_xdg(tmp_path, monkeypatch):
    monkeypatch.delenv("PORTSIGHT_CONFIG_DIR", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    monkeypatch.setattr(paths, "_is_root", lambda: False)
    assert config_dir() == str(tmp_path / "portsight")


def test_config_dir_as_root(monkeypatch):
    monkeypatch.delenv("PORTSIGHT_CONFIG_DIR", raising=False)
    monkeypatch.setattr(paths, "_is_root", lambda: True)
    assert config_dir() == "/etc/portsight"


class TestLoadSettings:

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "nope.yml"))
        assert settings == Settings()
        assert settings.monitor.interval_seconds == 5.0
        assert settings.scanner.timeout_ms == 200
        assert settings.scanner.max_concurrent == 100
        assert settings.commands.include_processes is False

    def test_reads_yaml(self, tmp_path):
        p = tmp_path / "portsight.yml"
        p.write_text(
            "monitor:\n  interval_seconds: 2.5\n  enabled: false\n"
            "scanner:\n  max_concurrent: 20\n"
            "log_level: DEBUG\n",
            encoding="utf-8",
        )
        settings = load_settings(str(p))
        assert settings.monitor.interval_seconds == 2.5
        assert settings.monitor.enabled is False
        assert settings.scanner.max_concurrent == 20
        assert settings.scanner.timeout_ms == 200
        assert settings.log_level == "DEBUG"

    def test_default_location(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PORTSIGHT_CONFIG_DIR", str(tmp_path))
        (tmp_path / "portsight.yml").write_text("json_logs: false\n", encoding="utf-8")
        assert load_settings().json_logs is False

    @pytest.mark.parametrize("text", [
        "monitor:\n  interval_seconds: -1\n",
        "monitor: [unclosed\n",
        "- just\n- a list\n",
    ])
    def test_invalid_file_gives_defaults(self, tmp_path, text):
        p = tmp_path / "portsight.yml"
        p.write_text(text, encoding="utf-8")
        assert load_settings(str(p)) == Settings()


class TestConfigCell:

    def test_update_swaps_snapshot(self):
        cell = ConfigCell()
        before = cell.get()
        after = cell.set_interval(10)

        assert before.interval_seconds == 5.0
        assert after.interval_seconds == 10
        assert cell.get() is after

    def test_invalid_update_keeps_old_value(self):
        cell = ConfigCell(MonitorSettings(interval_seconds=3))
        with pytest.raises(ValidationError):
            cell.set_interval(0)
        assert cell.get().interval_seconds == 3

    def test_concurrent_updates(self):
        cell = ConfigCell()

        def flip(n):
            for i in range(200):
                cell.update(enabled=bool(i % 2), interval_seconds=n)

        threads = [threading.Thread(target=flip, args=(n,)) for n in (1, 2, 3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cell.get().interval_seconds in (1, 2, 3)


class TestLogging:

    def test_json_formatter_includes_extras(self):
        record = logging.LogRecord("portsight.test", logging.INFO, __file__, 1, "hello", None, None)
        record.provider = "docker"
        record.count = 3

        payload = json.loads(JsonFormatter().format(record))

        assert payload["msg"] == "hello"
        assert payload["level"] == "info"
        assert payload["logger"] == "portsight.test"
        assert payload["provider"] == "docker"
        assert payload["count"] == 3

    def test_configure_logging_routes_package_loggers(self):
        stream = io.StringIO()
        configure_logging("DEBUG", json_output=True, stream=stream)

        logging.getLogger("portsight.discovery.aggregator").debug("x", extra={"duration_ms": 5})

        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["logger"] == "portsight.discovery.aggregator"
        assert line["duration_ms"] == 5
