from .settings import (
    CommandSettings,
    ConfigCell,
    MonitorSettings,
    ScannerSettings,
    Settings,
    load_settings,
)

__all__ = [
    'CommandSettings',
    'ConfigCell',
    'MonitorSettings',
    'ScannerSettings',
    'Settings',
    'load_settings',
]
