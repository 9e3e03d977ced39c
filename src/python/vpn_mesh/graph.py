"""Explicit dependency graph for mesh provisioning steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Optional

from .errors import DependencyNotReadyError
from .models import Pair, PairState


@dataclass(frozen=True)
class Step:
    """One unit of work in the mesh plan.

    ``run`` receives the results of the steps named in ``depends_on`` and
    returns this step's result.  When the step belongs to a pair, ``state``
    is the pair state reached once it succeeds.
    """

    key: str
    run: Callable[[Mapping[str, Any]], Any] = field(compare=False, repr=False)
    depends_on: tuple[str, ...] = ()
    pair: Optional[Pair] = None
    state: Optional[PairState] = None


class DependencyGraph:
    """A DAG of steps, validated before anything is executed."""

    def __init__(self) -> None:
        self._steps: dict[str, Step] = {}

    def add(self, step: Step) -> Step:
        if step.key in self._steps:
            raise DependencyNotReadyError(f"Step '{step.key}' is defined twice")
        self._steps[step.key] = step
        return step

    def __contains__(self, key: str) -> bool:
        return key in self._steps

    def __getitem__(self, key: str) -> Step:
        return self._steps[key]

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)

    def steps_for(self, pair: Pair) -> list[Step]:
        return [step for step in self.order() if step.pair == pair]

    def validate(self) -> None:
        """Check every dependency exists and the graph is acyclic.

        Raises:
            DependencyNotReadyError: On an unknown dependency or a cycle
        """
        for step in self._steps.values():
            for dependency in step.depends_on:
                if dependency not in self._steps:
                    raise DependencyNotReadyError(
                        f"Step '{step.key}' depends on undefined step '{dependency}'"
                    )
        self.order()

    def order(self) -> list[Step]:
        """Topological order, stable with respect to insertion order.

        Raises:
            DependencyNotReadyError: If the graph has a cycle
        """
        remaining = {key: set(step.depends_on) & self._steps.keys() for key, step in self._steps.items()}
        ordered: list[Step] = []
        while remaining:
            ready = [key for key, deps in remaining.items() if not deps]
            if not ready:
                raise DependencyNotReadyError(
                    "Dependency cycle between steps: " + ", ".join(sorted(remaining))
                )
            for key in ready:
                ordered.append(self._steps[key])
                del remaining[key]
            for deps in remaining.values():
                deps.difference_update(ready)
        return ordered

    def descendants(self, key: str) -> set[str]:
        """All steps that depend, directly or not, on ``key``."""
        found: set[str] = set()
        frontier = [key]
        while frontier:
            current = frontier.pop()
            for step in self._steps.values():
                if current in step.depends_on and step.key not in found:
                    found.add(step.key)
                    frontier.append(step.key)
        return found
