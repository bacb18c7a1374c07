"""Statische Beschreibung eines Services und seiner Health-Probe."""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, FrozenSet, Optional, Sequence, Tuple

Action = Callable[[], Awaitable[None]]


class Criticality(str, Enum):
    """Ob ein endgültiger Fehler das ganze Deployment scheitern lässt."""

    REQUIRED = "required"
    OPTIONAL = "optional"


class ProbeKind(str, Enum):
    """Art der Health-Probe."""

    TCP_CONNECT = "tcp_connect"
    HTTP_STATUS = "http_status"
    PROCESS_RUNNING = "process_running"
    COMMAND_EXITS_ZERO = "command_exits_zero"
    FILE_EXISTS = "file_exists"


class Backoff(str, Enum):
    """Wartestrategie zwischen zwei Probe-Versuchen."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class ProbeSpec:
    """
    Parameter einer Health-Probe.

    `target` ist je nach Art der Host (TCP), die URL (HTTP), der Service-Name
    (Process) oder der Dateipfad (File). Kommandos stehen in `command`.
    """

    kind: ProbeKind
    target: str = ""
    port: Optional[int] = None
    command: Tuple[str, ...] = ()
    accepted_codes: FrozenSet[int] = frozenset({200})
    timeout: float = 5.0
    interval: float = 10.0
    max_interval: float = 60.0
    max_attempts: int = 3
    backoff: Backoff = Backoff.FIXED
    verify_tls: bool = True
    auth: Optional[Tuple[str, str]] = None

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError("probe timeout must be positive")
        if self.max_attempts < 1:
            raise ValueError("probe max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("probe interval must not be negative")
        if self.kind == ProbeKind.TCP_CONNECT and self.port is None:
            raise ValueError("tcp probe needs a port")
        if self.kind == ProbeKind.COMMAND_EXITS_ZERO and not self.command:
            raise ValueError("command probe needs a command")
        object.__setattr__(self, "command", tuple(self.command))
        object.__setattr__(self, "accepted_codes", frozenset(self.accepted_codes))

    @classmethod
    def tcp(cls, host: str, port: int, **kwargs) -> "ProbeSpec":
        return cls(kind=ProbeKind.TCP_CONNECT, target=host, port=port, **kwargs)

    @classmethod
    def http(cls, url: str, accepted_codes: Sequence[int] = (200,), **kwargs) -> "ProbeSpec":
        return cls(
            kind=ProbeKind.HTTP_STATUS,
            target=url,
            accepted_codes=frozenset(accepted_codes),
            **kwargs,
        )

    @classmethod
    def process(cls, name: str, **kwargs) -> "ProbeSpec":
        return cls(kind=ProbeKind.PROCESS_RUNNING, target=name, **kwargs)

    @classmethod
    def command_exits_zero(cls, command: Sequence[str], **kwargs) -> "ProbeSpec":
        return cls(kind=ProbeKind.COMMAND_EXITS_ZERO, command=tuple(command), **kwargs)

    @classmethod
    def file(cls, path: str, **kwargs) -> "ProbeSpec":
        return cls(kind=ProbeKind.FILE_EXISTS, target=str(path), **kwargs)

    def delay_after(self, attempt: int) -> float:
        """Wartezeit nach dem n-ten (1-basierten) fehlgeschlagenen Versuch."""
        if self.backoff == Backoff.EXPONENTIAL:
            return min(self.interval * (2 ** (attempt - 1)), self.max_interval)
        return self.interval

    def describe(self) -> str:
        if self.kind == ProbeKind.TCP_CONNECT:
            return f"tcp://{self.target}:{self.port}"
        if self.kind == ProbeKind.HTTP_STATUS:
            return f"GET {self.target}"
        if self.kind == ProbeKind.COMMAND_EXITS_ZERO:
            return " ".join(self.command)
        if self.kind == ProbeKind.FILE_EXISTS:
            return f"file {self.target}"
        return f"running {self.target}"


@dataclass(frozen=True)
class ServiceDescriptor:
    """Unveränderliche Beschreibung eines Services in der Registry."""

    name: str
    start_action: Action
    health_probe: ProbeSpec
    dependencies: Tuple[str, ...] = ()
    criticality: Criticality = Criticality.REQUIRED
    recovery_action: Optional[Action] = None
    recovery_resources: Tuple[str, ...] = ()
    max_recovery_attempts: int = 1
    recovery_timeout: float = 300.0
    recovery_backoff: float = 0.0
    start_timeout: float = 300.0
    description: str = ""
    port: Optional[int] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("service name must not be empty")
        if self.max_recovery_attempts < 0:
            raise ValueError("max_recovery_attempts must not be negative")
        if self.recovery_timeout <= 0 or self.start_timeout <= 0:
            raise ValueError("timeouts must be positive")
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "recovery_resources", tuple(str(r) for r in self.recovery_resources))

    @property
    def is_required(self) -> bool:
        return self.criticality == Criticality.REQUIRED
