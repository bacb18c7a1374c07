"""Fehlertypen des Deployment Controllers."""

from enum import Enum
from typing import Sequence


class ConfigErrorKind(str, Enum):
    """Ursache eines Konfigurationsfehlers beim Laden der Registry."""

    CYCLE_DETECTED = "CycleDetected"
    UNKNOWN_DEPENDENCY = "UnknownDependency"
    DUPLICATE_SERVICE = "DuplicateService"


class ConfigError(Exception):
    """Ungültige Service-Registry. Wird vor dem Start jedes Services ausgelöst."""

    def __init__(self, kind: ConfigErrorKind, message: str, services: Sequence[str] = ()):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.services = tuple(services)


class ContainerRuntimeError(Exception):
    """Ein Docker/Compose-Aufruf ist fehlgeschlagen oder hat das Timeout überschritten."""

    def __init__(self, command: Sequence[str], returncode: int | None, output: str = ""):
        rc = "timeout" if returncode is None else f"exit {returncode}"
        tail = output.strip().splitlines()[-1] if output.strip() else ""
        super().__init__(f"{' '.join(command)} failed ({rc}){': ' + tail if tail else ''}")
        self.command = tuple(command)
        self.returncode = returncode
        self.output = output


class RecoveryActionError(Exception):
    """Eine Recovery-Aktion konnte ihre Remediation nicht abschliessen."""


class DeploymentInProgressError(RuntimeError):
    """Es läuft bereits ein Deployment-Lauf."""
