"""
Test fixtures for the CyberBlue deployment controller tests.

Provides a simulated container runtime and builders for service descriptors.
"""
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from cyberblue_deploy.models.errors import ContainerRuntimeError
from cyberblue_deploy.models.service_descriptor import Criticality, ProbeSpec, ServiceDescriptor
from cyberblue_deploy.services.container_runtime import ContainerRuntime
from cyberblue_deploy.services.registry import Registry


class FakeRuntime(ContainerRuntime):
    """
    In-memory container runtime recording every call.

    - `broken`: services that never reach the running state
    - `heal_on_restart`: services that only run after one restart
    - `start_failures`: number of times `start` raises per service
    - `on_start`: hook called after a successful start
    """

    def __init__(
        self,
        broken: Iterable[str] = (),
        heal_on_restart: Iterable[str] = (),
        start_failures: Optional[Dict[str, int]] = None,
        on_start: Optional[Dict[str, Callable[[], None]]] = None,
        running: Iterable[str] = (),
    ):
        self.broken = set(broken)
        self.heal_on_restart = set(heal_on_restart)
        self.start_failures = dict(start_failures or {})
        self.on_start = dict(on_start or {})
        self.running = set(running)
        self.calls: List[Tuple[str, str]] = []
        self.start_times: Dict[str, List[float]] = {}

    async def start(self, name: str) -> None:
        self.calls.append(("start", name))
        self.start_times.setdefault(name, []).append(time.monotonic())
        if self.start_failures.get(name, 0) > 0:
            self.start_failures[name] -= 1
            raise ContainerRuntimeError(
                ["docker", "compose", "up", "-d", name], 1, "simulated start failure"
            )
        if name not in self.broken and name not in self.heal_on_restart:
            self.running.add(name)
        if name in self.on_start:
            self.on_start[name]()

    async def stop(self, name: str) -> None:
        self.calls.append(("stop", name))
        self.running.discard(name)

    async def restart(self, name: str) -> None:
        self.calls.append(("restart", name))
        self.heal_on_restart.discard(name)
        self.running.discard(name)
        if name not in self.broken:
            self.running.add(name)

    async def is_running(self, name: str) -> bool:
        return name in self.running

    async def logs(self, name: str, tail: int = 50) -> str:
        return "".join(f"{name} line {i}\n" for i in range(1, tail + 1))

    def count(self, action: str, name: str) -> int:
        return sum(1 for call in self.calls if call == (action, name))

    def started(self) -> List[str]:
        return [name for action, name in self.calls if action == "start"]


def make_service(
    runtime: FakeRuntime,
    name: str,
    dependencies: Sequence[str] = (),
    criticality: Criticality = Criticality.REQUIRED,
    recoverable: bool = True,
    **kwargs,
) -> ServiceDescriptor:
    """Descriptor driven by the fake runtime: start, process probe, restart recovery."""

    async def start() -> None:
        await runtime.start(name)

    async def recover() -> None:
        await runtime.restart(name)

    kwargs.setdefault("start_action", start)
    kwargs.setdefault(
        "health_probe", ProbeSpec.process(name, timeout=1.0, interval=0.0, max_attempts=1)
    )
    return ServiceDescriptor(
        name=name,
        dependencies=tuple(dependencies),
        criticality=criticality,
        recovery_action=recover if recoverable else None,
        **kwargs,
    )


def make_registry(runtime: FakeRuntime, spec: Dict[str, Sequence[str]], **kwargs) -> Registry:
    """Registry from {name: dependencies} in insertion order."""
    return Registry.load(
        make_service(runtime, name, dependencies, **kwargs) for name, dependencies in spec.items()
    )


async def noop() -> None:
    return None
