"""Unit tests for the plugin dependency graph."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from warden_orchestrator.errors import CircularDependencyError
from warden_orchestrator.plugins.graph import PluginGraph


def test_requirements_come_before_dependents() -> None:
    graph = PluginGraph(["web", "composer", "core"])
    graph.add_edge("web", "composer")
    graph.add_edge("composer", "core")

    assert graph.topological_order() == ("core", "composer", "web")


def test_independent_nodes_keep_insertion_order() -> None:
    graph = PluginGraph(["zeta", "alpha", "mid"])

    assert graph.topological_order() == ("zeta", "alpha", "mid")


def test_two_node_cycle_is_named_in_full() -> None:
    graph = PluginGraph(["a", "b"])
    graph.add_edge("a", "b")
    graph.add_edge("b", "a")

    with pytest.raises(CircularDependencyError) as excinfo:
        graph.topological_order()

    assert excinfo.value.cycle == ("a", "b", "a")
    assert str(excinfo.value) == "Circular plugin dependency: a -> b -> a"


def test_three_node_cycle_is_named_in_full() -> None:
    graph = PluginGraph(["a", "b", "c", "standalone"])
    graph.add_edge("a", "b")
    graph.add_edge("b", "c")
    graph.add_edge("c", "a")

    with pytest.raises(CircularDependencyError) as excinfo:
        graph.topological_order()

    assert excinfo.value.cycle == ("a", "b", "c", "a")


def test_detect_cycles_rotates_to_earliest_node() -> None:
    graph = PluginGraph(["x", "y", "z"])
    graph.add_edge("z", "y")
    graph.add_edge("y", "z")

    assert graph.detect_cycles() == (("y", "z", "y"),)


def test_neighbour_queries_are_ordered_by_insertion() -> None:
    graph = PluginGraph(["app", "b", "a"])
    graph.add_edge("app", "a")
    graph.add_edge("app", "b")

    assert graph.requirements_of("app") == ("b", "a")
    assert graph.dependents_of("a") == ("app",)
    assert graph.nodes == ("app", "b", "a")


@st.composite
def _acyclic_edges(draw: st.DrawFn) -> tuple[int, list[tuple[int, int]]]:
    size = draw(st.integers(min_value=1, max_value=8))
    pairs = [(high, low) for high in range(size) for low in range(high)]
    edges = draw(st.lists(st.sampled_from(pairs), unique=True)) if pairs else []
    return size, edges


@settings(max_examples=25, derandomize=True, deadline=None)
@given(case=_acyclic_edges())
def test_every_edge_points_backwards_in_the_order(case: tuple[int, list[tuple[int, int]]]) -> None:
    size, edges = case
    graph = PluginGraph(f"n{index}" for index in reversed(range(size)))
    for dependent, requirement in edges:
        graph.add_edge(f"n{dependent}", f"n{requirement}")

    order = graph.topological_order()
    position = {node: index for index, node in enumerate(order)}

    assert sorted(order) == sorted(f"n{index}" for index in range(size))
    for dependent, requirement in edges:
        assert position[f"n{requirement}"] < position[f"n{dependent}"]
