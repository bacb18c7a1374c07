from .deployment_plan import DeploymentPlan
from .deployment_report import DeploymentOutcome, DeploymentReport, ServiceOutcome
from .errors import (
    ConfigError,
    ConfigErrorKind,
    ContainerRuntimeError,
    DeploymentInProgressError,
    RecoveryActionError,
)
from .service_descriptor import Action, Backoff, Criticality, ProbeKind, ProbeSpec, ServiceDescriptor
from .service_run import FailureInfo, FailureReason, RunState, ServiceRun

__all__ = [
    "Action",
    "Backoff",
    "ConfigError",
    "ConfigErrorKind",
    "ContainerRuntimeError",
    "Criticality",
    "DeploymentInProgressError",
    "DeploymentOutcome",
    "DeploymentPlan",
    "DeploymentReport",
    "FailureInfo",
    "FailureReason",
    "ProbeKind",
    "ProbeSpec",
    "RecoveryActionError",
    "RunState",
    "ServiceDescriptor",
    "ServiceOutcome",
    "ServiceRun",
]
