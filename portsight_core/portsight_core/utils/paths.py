"""
Where portsight looks for its configuration file.

1) PORTSIGHT_CONFIG_DIR if set
2) /etc/portsight when running as root
3) $XDG_CONFIG_HOME/portsight, or ~/.config/portsight
"""

from __future__ import annotations
import os
from pathlib import Path

CONFIG_FILENAME = "portsight.yml"


def _is_root() -> bool:
    try:
        return os.geteuid() == 0
    except AttributeError:
        # Windows has no geteuid
        return False


def config_dir() -> str:
    if os.environ.get("PORTSIGHT_CONFIG_DIR"):
        return os.environ["PORTSIGHT_CONFIG_DIR"]
    if _is_root():
        return "/etc/portsight"
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.join(Path.home(), ".config")
    return os.path.join(xdg, "portsight")


def config_file() -> str:
    return os.path.join(config_dir(), CONFIG_FILENAME)
