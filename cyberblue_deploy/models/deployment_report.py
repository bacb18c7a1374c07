"""Datenmodelle für den Deployment-Report."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel

from .service_descriptor import Criticality
from .service_run import RunState


class DeploymentOutcome(str, Enum):
    """Gesamtergebnis eines Deployment-Laufs."""

    SUCCESS = "SUCCESS"
    DEGRADED = "DEGRADED"
    FAILED = "FAILED"


class ServiceOutcome(BaseModel):
    """Endzustand eines einzelnen Services."""

    name: str
    criticality: Criticality
    state: RunState
    attempts: int = 0
    error_reason: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class DeploymentReport(BaseModel):
    """Zusammenfassung eines Deployment-Laufs."""

    started_at: datetime
    finished_at: datetime
    outcome: DeploymentOutcome
    ready_count: int
    degraded_count: int
    failed_count: int
    required_failed: List[str] = []
    services: Dict[str, ServiceOutcome]

    @property
    def total(self) -> int:
        return len(self.services)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def not_ready(self) -> List[ServiceOutcome]:
        return [s for s in self.services.values() if s.state != RunState.READY]
