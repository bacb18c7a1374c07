"""Abgeleiteter, schreibgeschützter Ausführungsplan."""

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class DeploymentPlan:
    """
    Schichtweise topologische Ordnung der Registry.

    Services einer Schicht hängen nur von früheren Schichten ab und dürfen
    parallel starten. Innerhalb einer Schicht gilt die Registry-Reihenfolge.
    """

    layers: Tuple[Tuple[str, ...], ...]

    @property
    def order(self) -> List[str]:
        return [name for layer in self.layers for name in layer]

    def layer_of(self, name: str) -> int:
        for index, layer in enumerate(self.layers):
            if name in layer:
                return index
        raise KeyError(name)

    def describe(self) -> str:
        lines = []
        for index, layer in enumerate(self.layers, 1):
            lines.append(f"  {index:2d}. {', '.join(layer)}")
        return "\n".join(lines)
