"""Service Descriptor Registry.

Hält den festen Katalog der Services und validiert ihn beim Laden:
unbekannte Abhängigkeiten, doppelte Namen und Zyklen sind Konfigurationsfehler.
"""

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from ..models.deployment_plan import DeploymentPlan
from ..models.errors import ConfigError, ConfigErrorKind
from ..models.service_descriptor import ServiceDescriptor


class Registry:
    """Schreibgeschützte, validierte Sammlung von ServiceDescriptors."""

    def __init__(self, descriptors: Sequence[ServiceDescriptor], _validated: bool = False):
        if not _validated:
            raise TypeError("use Registry.load() to build a registry")
        self._descriptors: Tuple[ServiceDescriptor, ...] = tuple(descriptors)
        self._by_name: Mapping[str, ServiceDescriptor] = MappingProxyType(
            {d.name: d for d in self._descriptors}
        )
        self._position: Mapping[str, int] = MappingProxyType(
            {d.name: i for i, d in enumerate(self._descriptors)}
        )
        dependents: Dict[str, List[str]] = {d.name: [] for d in self._descriptors}
        for descriptor in self._descriptors:
            for dependency in descriptor.dependencies:
                dependents[dependency].append(descriptor.name)
        self._direct_dependents: Mapping[str, Tuple[str, ...]] = MappingProxyType(
            {name: tuple(names) for name, names in dependents.items()}
        )
        self._plan = _build_plan(self._descriptors)

    @classmethod
    def load(cls, descriptors: Iterable[ServiceDescriptor]) -> "Registry":
        """
        Validiert und lädt die Service-Beschreibungen.

        Args:
            descriptors: Services in Registry-Reihenfolge

        Returns:
            Validierte Registry

        Raises:
            ConfigError: DuplicateService, UnknownDependency oder CycleDetected
        """
        items = list(descriptors)

        seen = set()
        for descriptor in items:
            if descriptor.name in seen:
                raise ConfigError(
                    ConfigErrorKind.DUPLICATE_SERVICE,
                    f"service '{descriptor.name}' is declared twice",
                    [descriptor.name],
                )
            seen.add(descriptor.name)

        for descriptor in items:
            for dependency in descriptor.dependencies:
                if dependency not in seen:
                    raise ConfigError(
                        ConfigErrorKind.UNKNOWN_DEPENDENCY,
                        f"'{descriptor.name}' depends on unregistered service '{dependency}'",
                        [descriptor.name, dependency],
                    )

        cycle = _find_cycle(items)
        if cycle:
            raise ConfigError(
                ConfigErrorKind.CYCLE_DETECTED,
                "dependency cycle " + " -> ".join(cycle),
                cycle,
            )

        registry = cls(items, _validated=True)
        logger.debug(
            f"Registry loaded: {len(registry)} services in {len(registry.plan().layers)} layers"
        )
        return registry

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def names(self) -> List[str]:
        return [d.name for d in self._descriptors]

    def get(self, name: str) -> ServiceDescriptor:
        return self._by_name[name]

    def position(self, name: str) -> int:
        """Index in der Registry (Tie-Break beim Dispatch)."""
        return self._position[name]

    def direct_dependents(self, name: str) -> Tuple[str, ...]:
        return self._direct_dependents[name]

    def dependents_of(self, name: str) -> List[str]:
        """Alle transitiven Dependents von `name` in Registry-Reihenfolge."""
        found = set()
        stack = list(self._direct_dependents[name])
        while stack:
            current = stack.pop()
            if current in found:
                continue
            found.add(current)
            stack.extend(self._direct_dependents[current])
        return sorted(found, key=self.position)

    def dependencies_of(self, name: str) -> List[str]:
        """Alle transitiven Abhängigkeiten von `name` in Registry-Reihenfolge."""
        found = set()
        stack = list(self._by_name[name].dependencies)
        while stack:
            current = stack.pop()
            if current in found:
                continue
            found.add(current)
            stack.extend(self._by_name[current].dependencies)
        return sorted(found, key=self.position)

    def plan(self) -> DeploymentPlan:
        return self._plan

    def subset(self, names: Iterable[str]) -> "Registry":
        """Registry aus den genannten Services plus ihren transitiven Abhängigkeiten."""
        wanted = set()
        for name in names:
            if name not in self._by_name:
                raise ConfigError(
                    ConfigErrorKind.UNKNOWN_DEPENDENCY,
                    f"unknown service '{name}'",
                    [name],
                )
            wanted.add(name)
            wanted.update(self.dependencies_of(name))
        return Registry([d for d in self._descriptors if d.name in wanted], _validated=True)


def load(descriptors: Iterable[ServiceDescriptor]) -> Registry:
    """Kurzform für Registry.load()."""
    return Registry.load(descriptors)


def _find_cycle(items: Sequence[ServiceDescriptor]) -> Optional[List[str]]:
    """Liefert einen Zyklus als Pfad (erster Knoten am Ende wiederholt) oder None."""
    graph = {d.name: d.dependencies for d in items}
    white, grey, black = 0, 1, 2
    color = {name: white for name in graph}

    for root in graph:
        if color[root] != white:
            continue
        path: List[str] = [root]
        iterators = [iter(graph[root])]
        color[root] = grey
        while iterators:
            child = next(iterators[-1], None)
            if child is None:
                color[path.pop()] = black
                iterators.pop()
                continue
            if color[child] == grey:
                start = path.index(child)
                return path[start:] + [child]
            if color[child] == white:
                color[child] = grey
                path.append(child)
                iterators.append(iter(graph[child]))
    return None


def _build_plan(items: Sequence[ServiceDescriptor]) -> DeploymentPlan:
    """Kahn-Schichten; innerhalb einer Schicht gilt die Registry-Reihenfolge."""
    in_degree = {d.name: len(d.dependencies) for d in items}
    dependents: Dict[str, List[str]] = {d.name: [] for d in items}
    for descriptor in items:
        for dependency in descriptor.dependencies:
            dependents[dependency].append(descriptor.name)
    position = {d.name: i for i, d in enumerate(items)}

    layers = []
    current = [d.name for d in items if in_degree[d.name] == 0]
    while current:
        layers.append(tuple(current))
        following = []
        for name in current:
            for dependent in dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    following.append(dependent)
        current = sorted(following, key=position.get)
    return DeploymentPlan(layers=tuple(layers))
