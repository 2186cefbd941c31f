# src/durascope/core/__init__.py
"""Core infrastructure: configuration, logging, serialization, fan-out."""

from durascope.core.config import (
    ConcurrencySettings,
    DiagnosticsSettings,
    DurascopeSettings,
    LoggingSettings,
    ServerSettings,
    StorageSettings,
    load_settings,
    settings_from_env,
)
from durascope.core.logging import configure_logging, get_logger
from durascope.core.pooling import gather_cancelling, gather_ordered

__all__ = [
    "ConcurrencySettings",
    "DiagnosticsSettings",
    "DurascopeSettings",
    "LoggingSettings",
    "ServerSettings",
    "StorageSettings",
    "configure_logging",
    "gather_cancelling",
    "gather_ordered",
    "get_logger",
    "load_settings",
    "settings_from_env",
]
