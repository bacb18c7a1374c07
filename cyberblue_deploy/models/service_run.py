"""Laufzeit-Zustand eines Services während eines Deployment-Laufs."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from loguru import logger

from .service_descriptor import ServiceDescriptor


class RunState(str, Enum):
    """Zustand eines ServiceRun."""

    PENDING = "PENDING"
    STARTING = "STARTING"
    PROBING = "PROBING"
    RECOVERING = "RECOVERING"
    READY = "READY"
    DEGRADED = "DEGRADED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.READY, RunState.DEGRADED, RunState.FAILED)


class FailureReason(str, Enum):
    """Fehlerursachen, die im Report erscheinen."""

    PROBE_TIMEOUT = "ProbeTimeout"
    PROBE_FAILED = "ProbeFailed"
    START_FAILED = "StartFailed"
    RECOVERY_FAILED = "RecoveryFailed"
    RECOVERY_TIMEOUT = "RecoveryTimeout"
    RECOVERY_EXHAUSTED = "RecoveryExhausted"
    UPSTREAM_FAILURE = "UpstreamFailure"


@dataclass(frozen=True)
class FailureInfo:
    """Letzter aufgezeichneter Fehler eines Services."""

    reason: FailureReason
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.detail}" if self.detail else self.reason.value


@dataclass
class StateTransition:
    state: RunState
    at: datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ServiceRun:
    """
    Eine Instanz pro Service und Deployment-Lauf.

    Wird vom Scheduler im Zustand PENDING angelegt und nur von Scheduler und
    Recovery Executor verändert. Nach dem Lauf bleibt nur der Report erhalten.
    """

    descriptor: ServiceDescriptor
    state: RunState = RunState.PENDING
    attempts: int = 0
    last_error: Optional[FailureInfo] = None
    started_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    history: List[StateTransition] = field(default_factory=list)

    def __post_init__(self):
        self.history.append(StateTransition(self.state, _now()))

    @property
    def name(self) -> str:
        return self.descriptor.name

    def transition(self, new_state: RunState) -> None:
        """Setzt einen neuen Zustand. Terminale Zustände sind endgültig."""
        if self.state.is_terminal:
            raise RuntimeError(
                f"{self.name} is already {self.state.value}, cannot move to {new_state.value}"
            )
        if new_state == self.state:
            return

        old_state = self.state
        self.state = new_state
        at = _now()
        self.history.append(StateTransition(new_state, at))

        if new_state == RunState.STARTING and self.started_at is None:
            self.started_at = at
        if new_state == RunState.READY:
            self.ready_at = at
        if new_state.is_terminal:
            self.finished_at = at

        logger.info(f"{self.name}: {old_state.value} -> {new_state.value}")

    def mark_ready(self) -> None:
        self.transition(RunState.READY)
        logger.success(f"{self.name} is ready")

    def finish_unhealthy(self, failure: FailureInfo) -> None:
        """Endgültiger Fehler: Required -> FAILED, Optional -> DEGRADED."""
        self.last_error = failure
        if self.descriptor.is_required:
            self.transition(RunState.FAILED)
            logger.error(f"{self.name} failed: {failure}")
        else:
            self.transition(RunState.DEGRADED)
            logger.warning(f"{self.name} degraded (optional): {failure}")

    def mark_upstream_failure(self, upstream: str, upstream_state: RunState) -> None:
        """Markiert einen nie gestarteten Service wegen einer gescheiterten Abhängigkeit."""
        self.last_error = FailureInfo(
            FailureReason.UPSTREAM_FAILURE,
            f"dependency {upstream} ended {upstream_state.value}",
        )
        self.transition(RunState.FAILED)
        logger.warning(f"{self.name} skipped: {self.last_error}")

    def entered(self, state: RunState) -> Optional[datetime]:
        """Zeitpunkt, zu dem der Run zuerst `state` erreicht hat."""
        for step in self.history:
            if step.state == state:
                return step.at
        return None
