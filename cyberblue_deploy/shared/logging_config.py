"""
Standardized Logging Configuration
===================================

Einheitliche Logging-Konfiguration für CLI und API des Deployment Controllers.

- `setup_logging()`: Konsole plus rotierende Prozess-Logs
- `deployment_run_log()`: zusätzliche Datei pro Deployment-Lauf, die nur die
  Einträge dieses Laufs enthält (auch die der Worker-Tasks)
"""

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger

RUN_CONTEXT_KEY = "deployment_run"

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[process]} | {message}"


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> "logger":
    """
    Konfiguriert das Logging für einen Prozess.

    Args:
        service_name: Name des Prozesses (für Log-Prefix und Dateiname)
        log_level: Log-Level der Konsole (DEBUG, INFO, WARNING, ERROR)
        log_dir: Verzeichnis für Log-Dateien (None = nur Konsole)
        rotation: Wann Log-Dateien rotiert werden
        retention: Wie lange Log-Dateien aufbewahrt werden

    Returns:
        Konfigurierter Logger
    """
    logger.remove()
    logger.configure(extra={"process": service_name.upper()})

    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[process]}</cyan> | "
            "<level>{message}</level>"
        ),
        level=log_level,
        colorize=True,
    )

    if not log_dir:
        return logger

    # Datei bekommt immer DEBUG, Fehler zusätzlich eine eigene Datei
    for suffix, level in (("", "DEBUG"), ("_errors", "ERROR")):
        logger.add(
            f"{log_dir}/{service_name}{suffix}_{{time}}.log",
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="gz",
        )

    return logger


@contextmanager
def deployment_run_log(log_dir: Optional[str], run_id: str) -> Iterator[Optional[Path]]:
    """
    Schreibt alle Log-Einträge eines Deployment-Laufs in `deployment_<run_id>.log`.

    Die Lauf-ID wird per `logger.contextualize` gesetzt; asyncio-Tasks, die
    innerhalb des Blocks erzeugt werden, erben sie.

    Args:
        log_dir: Verzeichnis für die Datei (None = nur Kontext, keine Datei)
        run_id: Eindeutige ID des Laufs

    Yields:
        Pfad der Log-Datei oder None
    """
    if not log_dir:
        with logger.contextualize(**{RUN_CONTEXT_KEY: run_id}):
            yield None
        return

    path = Path(log_dir) / f"deployment_{run_id}.log"
    sink_id = logger.add(
        path,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}",
        level="DEBUG",
        filter=lambda record: record["extra"].get(RUN_CONTEXT_KEY) == run_id,
    )
    try:
        with logger.contextualize(**{RUN_CONTEXT_KEY: run_id}):
            logger.info(f"Deployment run {run_id} started")
            yield path
            logger.info(f"Deployment run {run_id} finished")
    finally:
        logger.remove(sink_id)


def log_startup_info(service_name: str, version: str, services: int, target: str) -> None:
    """
    Loggt standardisierte Startup-Informationen.

    Args:
        service_name: Name des Prozesses
        version: Controller-Version
        services: Anzahl registrierter Services
        target: Compose-Projekt bzw. Port der API
    """
    logger.info("=" * 60)
    logger.info(f"  {service_name.upper()} v{version}")
    logger.info("=" * 60)
    logger.info(f"  Services: {services}")
    logger.info(f"  Target:   {target}")
    logger.info("=" * 60)


def log_shutdown_info(service_name: str) -> None:
    logger.info(f"  {service_name.upper()} SHUTDOWN")
