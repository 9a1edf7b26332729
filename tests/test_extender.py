import random

import pytest

from lstorage.extender import MAX_EXTENDER_PRIORITY, Predicate, Prioritize, lookup


def _node(name):
    return {"metadata": {"name": name}}


def test_lookup_is_case_insensitive():
    data = {"NodeNames": ["a"], "pod": {}}
    assert lookup(data, "nodenames") == ["a"]
    assert lookup(data, "Pod") == {}
    assert lookup(data, "nodes") is None


def test_predicate_without_pod_reports_error():
    result = Predicate(None).handler({"nodenames": ["n1"]})
    assert result == {"error": "localstorage pod is nil"}


def test_predicate_passes_all_nodes_through():
    nodes = {"items": [_node("n1"), _node("n2")]}
    args = {"pod": {"metadata": {"name": "p"}}, "nodes": nodes, "nodenames": ["n1", "n2"]}
    result = Predicate(None).handler(args)
    assert result["nodes"] == nodes
    assert result["nodenames"] == ["n1", "n2"]
    assert "error" not in result
    assert "failedNodes" not in result


def test_predicate_omits_missing_node_fields():
    result = Predicate(None).handler({"pod": {}})
    assert result == {}


def test_prioritize_scores_every_node_in_range():
    args = {"nodes": {"items": [_node("n1"), _node("n2"), _node("n3")]}}
    result = Prioritize(None, random.Random(7)).handler(args)
    assert [entry["host"] for entry in result] == ["n1", "n2", "n3"]
    assert all(0 <= entry["score"] <= MAX_EXTENDER_PRIORITY for entry in result)


def test_prioritize_is_reproducible_with_seeded_rng():
    args = {"nodes": {"items": [_node(f"n{i}") for i in range(20)]}}
    first = Prioritize(None, random.Random(42)).handler(args)
    second = Prioritize(None, random.Random(42)).handler(args)
    assert first == second


def test_prioritize_empty_items_gives_empty_list():
    assert Prioritize(None).handler({"nodes": {"items": []}}) == []


def test_prioritize_without_nodes_raises():
    with pytest.raises(ValueError):
        Prioritize(None).handler({"pod": {}})