"""
Shared Components
=================

Gemeinsame Bausteine für CLI und API:
- Logging: Einheitliche Logging-Konfiguration und Log-Datei pro Lauf
"""

from .logging_config import (
    deployment_run_log,
    log_shutdown_info,
    log_startup_info,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "log_startup_info",
    "log_shutdown_info",
    "deployment_run_log",
]
