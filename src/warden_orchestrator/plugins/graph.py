"""Deterministic plugin dependency graph."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from heapq import heappop, heappush

from warden_orchestrator.errors import CircularDependencyError


class PluginGraph:
    """Directed graph where an edge ``dependent -> requirement`` means the
    requirement must be activated first.

    Nodes remember insertion order; every traversal breaks ties by that rank
    so results are reproducible across runs.
    """

    __slots__ = ("_rank", "_requirements", "_dependents")

    def __init__(self, nodes: Iterable[str] | None = None) -> None:
        self._rank: dict[str, int] = {}
        self._requirements: dict[str, set[str]] = {}
        self._dependents: dict[str, set[str]] = {}
        for node in nodes or ():
            self.add_node(node)

    @property
    def nodes(self) -> tuple[str, ...]:
        """Node IDs in insertion order."""
        return tuple(self._rank)

    def add_node(self, node: str) -> None:
        if node in self._rank:
            return
        self._rank[node] = len(self._rank)
        self._requirements[node] = set()
        self._dependents[node] = set()

    def add_edge(self, dependent: str, requirement: str) -> None:
        self.add_node(dependent)
        self.add_node(requirement)
        self._requirements[dependent].add(requirement)
        self._dependents[requirement].add(dependent)

    def requirements_of(self, node: str) -> tuple[str, ...]:
        return self._ordered(self._requirements.get(node, ()))

    def dependents_of(self, node: str) -> tuple[str, ...]:
        return self._ordered(self._dependents.get(node, ()))

    def topological_order(self) -> tuple[str, ...]:
        """Requirements before dependents, or raise ``CircularDependencyError``."""
        pending: dict[str, int] = {
            node: len(requirements) for node, requirements in self._requirements.items()
        }
        ready: list[tuple[int, str]] = []
        for node, count in pending.items():
            if count == 0:
                heappush(ready, (self._rank[node], node))

        order: list[str] = []
        while ready:
            _, node = heappop(ready)
            order.append(node)
            for dependent in self._dependents[node]:
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    heappush(ready, (self._rank[dependent], dependent))

        if len(order) != len(self._rank):
            cycles = self.detect_cycles()
            raise CircularDependencyError(cycles[0] if cycles else ())
        return tuple(order)

    def detect_cycles(self) -> tuple[tuple[str, ...], ...]:
        """Return every distinct cycle as a closed path, e.g. ``("a", "b", "a")``.

        Each path is rotated to start at its earliest-registered node.
        """
        state: dict[str, int] = {}
        stack: list[str] = []
        stack_index: dict[str, int] = {}
        cycles: dict[tuple[str, ...], None] = {}

        for start in self._rank:
            if state.get(start, 0) != 0:
                continue

            state[start] = 1
            stack_index[start] = len(stack)
            stack.append(start)
            frames: list[tuple[str, Iterator[str]]] = [(start, iter(self.requirements_of(start)))]

            while frames:
                node, requirement_iter = frames[-1]
                try:
                    requirement = next(requirement_iter)
                except StopIteration:
                    frames.pop()
                    state[node] = 2
                    stack.pop()
                    del stack_index[node]
                    continue

                requirement_state = state.get(requirement, 0)
                if requirement_state == 0:
                    state[requirement] = 1
                    stack_index[requirement] = len(stack)
                    stack.append(requirement)
                    frames.append((requirement, iter(self.requirements_of(requirement))))
                elif requirement_state == 1:
                    path = stack[stack_index[requirement] :]
                    cycles[self._canonicalize(path)] = None

        return tuple(cycles)

    def _canonicalize(self, path: list[str]) -> tuple[str, ...]:
        pivot = min(range(len(path)), key=lambda index: self._rank[path[index]])
        rotated = path[pivot:] + path[:pivot]
        return (*rotated, rotated[0])

    def _ordered(self, nodes: Iterable[str]) -> tuple[str, ...]:
        return tuple(sorted(nodes, key=self._rank.__getitem__))


__all__ = ["PluginGraph"]
