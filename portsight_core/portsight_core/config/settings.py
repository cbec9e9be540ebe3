"""
Runtime settings loaded from <config>/portsight.yml.

Missing file -> defaults. Unreadable or invalid file -> defaults plus a warning;
discovery must still come up on a host with a broken config.
"""

from __future__ import annotations
import logging
import os
import threading
from typing import Any, Dict, Optional

import yaml  # type: ignore
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..utils.paths import config_file

logger = logging.getLogger("portsight.config")


class MonitorSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    interval_seconds: float = Field(default=5.0, gt=0)
    enabled: bool = True


class ScannerSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    timeout_ms: int = Field(default=200, gt=0)
    max_concurrent: int = Field(default=100, ge=1)


class CommandSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    # Applies to every external tool invocation (ss, docker, systemctl, ...)
    timeout_seconds: int = Field(default=30, gt=0)
    include_processes: bool = False


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    scanner: ScannerSettings = Field(default_factory=ScannerSettings)
    commands: CommandSettings = Field(default_factory=CommandSettings)
    log_level: str = "INFO"
    json_logs: bool = True


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML, falling back to defaults.

    Args:
        path: Explicit config path; defaults to <config_dir>/portsight.yml
    """
    path = path or config_file()
    if not os.path.exists(path):
        return Settings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
        if not isinstance(doc, dict):
            logger.warning(f"Ignoring config {path}: top level is not a mapping")
            return Settings()
        return Settings.model_validate(doc)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        logger.warning(f"Ignoring invalid config {path}: {e}")
        return Settings()


class ConfigCell:
    """
    Holder for the monitor settings shared between the polling loop and
    whoever reconfigures it.

    The settings object is immutable; updates build a new validated snapshot
    and swap the reference under a lock. Readers get whichever snapshot was
    current when they asked and never observe a half-applied change.
    """

    def __init__(self, initial: Optional[MonitorSettings] = None):
        self._lock = threading.Lock()
        self._value = initial or MonitorSettings()

    def get(self) -> MonitorSettings:
        with self._lock:
            return self._value

    def update(self, **changes: Any) -> MonitorSettings:
        """
        Replace fields of the current snapshot.

        Raises:
            pydantic.ValidationError: if the resulting settings are invalid
                (e.g. a non-positive interval). The old snapshot stays in place.
        """
        with self._lock:
            data: Dict[str, Any] = self._value.model_dump()
            data.update(changes)
            self._value = MonitorSettings.model_validate(data)
            return self._value

    def set_interval(self, seconds: float) -> MonitorSettings:
        return self.update(interval_seconds=seconds)

    def set_enabled(self, enabled: bool) -> MonitorSettings:
        return self.update(enabled=enabled)
