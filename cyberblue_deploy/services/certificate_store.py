"""Dateisystem-Collaborator für Zertifikats- und Datenverzeichnisse."""

import shutil
from pathlib import Path
from typing import Sequence

from loguru import logger

DIR_MODE = 0o755
FILE_MODE = 0o644
CERT_SUFFIXES = (".pem", ".key")


class CertificateDirectory:
    """
    Das TLS-Zertifikatsverzeichnis des Wazuh-Indexers.

    `recreate()` löscht das Verzeichnis immer vollständig und legt es leer neu
    an, daher ist ein wiederholter Aufruf unbedenklich.
    """

    def __init__(self, path: Path, required_files: Sequence[str] = ("admin.pem",)):
        self.path = Path(path)
        self.required_files = tuple(required_files)

    def recreate(self) -> None:
        if self.path.exists():
            shutil.rmtree(self.path)
        self.path.mkdir(parents=True)
        self.path.chmod(DIR_MODE)
        logger.info(f"Certificate directory {self.path} cleaned and recreated")

    def has_certificates(self) -> bool:
        return all((self.path / name).is_file() for name in self.required_files)

    def fix_permissions(self) -> None:
        """Entfernt Verzeichnis-Artefakte namens *.pem/*.key und setzt 644 auf Zertifikate."""
        if not self.path.is_dir():
            return
        for entry in sorted(self.path.iterdir()):
            if entry.suffix not in CERT_SUFFIXES:
                continue
            if entry.is_dir():
                logger.warning(f"Removing directory artefact {entry}")
                shutil.rmtree(entry)
            else:
                entry.chmod(FILE_MODE)
        self.path.chmod(DIR_MODE)


def clear_directory(path: Path, pattern: str = "*") -> int:
    """
    Entfernt alle passenden Einträge eines Verzeichnisses.

    Args:
        path: Verzeichnis (wird angelegt falls es fehlt)
        pattern: Glob-Pattern, z.B. "*.pcap"

    Returns:
        Anzahl entfernter Einträge
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    removed = 0
    for entry in path.glob(pattern):
        if entry.is_dir():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    if removed:
        logger.info(f"Removed {removed} entries from {path}")
    return removed
