from __future__ import annotations

import pytest

from mbuild.modules import toposort
from mbuild.modules.errors import CycleError


def test_consumers_come_before_providers():
    graph = {"app": ["core", "util"], "core": ["util"], "util": []}
    assert toposort.sort_descending(graph) == ["app", "core", "util"]
    assert toposort.sort_ascending(graph) == ["util", "core", "app"]


def test_ties_are_broken_by_name_not_insertion_order():
    assert toposort.sort_descending({"z": [], "x": [], "y": []}) == ["x", "y", "z"]
    graph_a = {"b": ["lib"], "a": ["lib"], "lib": []}
    graph_b = {"a": ["lib"], "lib": [], "b": ["lib"]}
    assert toposort.sort_descending(graph_a) == toposort.sort_descending(graph_b) == ["a", "b", "lib"]


def test_providers_missing_as_keys_are_included():
    assert toposort.sort_descending({"app": ["external"]}) == ["app", "external"]


def test_each_node_after_all_its_consumers():
    graph = {
        "web": ["ui", "core"],
        "desktop": ["ui", "core"],
        "ui": ["core"],
        "tools": [],
        "core": [],
    }
    order = toposort.sort_descending(graph)
    position = {n: i for i, n in enumerate(order)}
    for consumer, deps in graph.items():
        for d in deps:
            assert position[consumer] < position[d]


def test_cycle_names_every_member():
    graph = {"a": ["b"], "b": ["c"], "c": ["a"], "d": ["a"], "e": []}
    with pytest.raises(CycleError) as exc:
        toposort.sort_descending(graph)
    assert exc.value.members == ["a", "b", "c"]


def test_self_loop_is_a_cycle():
    with pytest.raises(CycleError) as exc:
        toposort.sort_descending({"a": ["a"]})
    assert exc.value.members == ["a"]


def test_find_cycles_separates_components():
    graph = {"a": ["b"], "b": ["a"], "c": ["d"], "d": ["c"], "e": ["a"]}
    cycles = sorted(sorted(c) for c in toposort.find_cycles(graph))
    assert cycles == [["a", "b"], ["c", "d"]]
