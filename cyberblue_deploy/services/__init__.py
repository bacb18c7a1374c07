from .container_runtime import ContainerRuntime, ContainerTarget, DockerComposeRuntime
from .health_probe import HealthProbe, ProbeResult
from .recovery_executor import RecoveryExecutor, RecoveryResult
from .registry import Registry, load
from .resource_locks import ResourceLocks
from .scheduler import DependencyScheduler
from .status_reporter import StatusReporter

__all__ = [
    "ContainerRuntime",
    "ContainerTarget",
    "DependencyScheduler",
    "DockerComposeRuntime",
    "HealthProbe",
    "ProbeResult",
    "RecoveryExecutor",
    "RecoveryResult",
    "Registry",
    "ResourceLocks",
    "StatusReporter",
    "load",
]
