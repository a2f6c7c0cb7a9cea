"""Tests for NodeTree: structure operations and word-count rollups."""

import dataclasses
import itertools
from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from folio.models import KIND_CHAPTER, KIND_GROUP, Node
from folio.tree import NodeTree

# =============================================================================
# Strategies
# =============================================================================

_specs = st.recursive(
    st.integers(min_value=0, max_value=500).map(lambda w: {"kind": KIND_CHAPTER, "words": w}),
    lambda children: st.lists(children, max_size=4).map(
        lambda cs: {"kind": KIND_GROUP, "words": 0, "children": cs}
    ),
    max_leaves=25,
)


def _assign_ids(specs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    counter = itertools.count()

    def visit(spec: dict[str, Any]) -> dict[str, Any]:
        d = {**spec, "id": f"n{next(counter)}", "title": ""}
        if "children" in spec:
            d["children"] = [visit(c) for c in spec["children"]]
        return d

    return [visit(s) for s in specs]


forests = st.lists(_specs, max_size=5).map(_assign_ids)


def _sample_tree() -> NodeTree:
    """part1(ch1=100, ch2=50, sub(ch3=7)), ch4=3"""
    return NodeTree.from_dicts([
        {"id": "part1", "title": "Part I", "kind": KIND_GROUP, "children": [
            {"id": "ch1", "title": "Ch1", "kind": KIND_CHAPTER, "words": 100},
            {"id": "ch2", "title": "Ch2", "kind": KIND_CHAPTER, "words": 50},
            {"id": "sub", "title": "Sub", "kind": KIND_GROUP, "children": [
                {"id": "ch3", "title": "Ch3", "kind": KIND_CHAPTER, "words": 7},
            ]},
        ]},
        {"id": "ch4", "title": "Ch4", "kind": KIND_CHAPTER, "words": 3},
    ])


# =============================================================================
# Properties
# =============================================================================


@given(forests)
def test_group_words_equal_sum_of_leaf_descendants(forest: list[dict[str, Any]]) -> None:
    tree = NodeTree.from_dicts(forest)

    tree.recompute_aggregates()

    for node, _ in tree.walk():
        if node.is_group:
            leaf_words = sum(tree.get(lid).words for lid in tree.collect_leaf_ids(node.id))
            assert node.words == leaf_words


@given(forests)
def test_flatten_then_insert_at_root_keeps_leaf_order(forest: list[dict[str, Any]]) -> None:
    tree = NodeTree.from_dicts(forest)
    leaves = tree.leaves()

    rebuilt = NodeTree()
    for leaf in leaves:
        assert rebuilt.insert(None, dataclasses.replace(leaf))

    assert [n.id for n in rebuilt.leaves()] == [n.id for n in leaves]


@given(forests, st.data())
def test_move_into_self_or_descendant_is_rejected(forest: list[dict[str, Any]], data: st.DataObject) -> None:
    tree = NodeTree.from_dicts(forest)
    nodes = [n for n, _ in tree.walk()]
    if not nodes:
        return
    node = data.draw(st.sampled_from(nodes))
    targets = [node, *(d for d, _ in tree.walk(node.id))]
    target = data.draw(st.sampled_from(targets))
    before = tree.to_dicts()

    assert tree.move(node.id, target.id) is False
    assert tree.to_dicts() == before


@given(forests)
def test_reorder_with_current_order_is_identity(forest: list[dict[str, Any]]) -> None:
    tree = NodeTree.from_dicts(forest)
    parents = [None, *(n.id for n, _ in tree.walk() if n.is_group)]

    for parent_id in parents:
        current = tree.child_ids(parent_id)
        assert tree.reorder_siblings(parent_id, current)
        assert tree.child_ids(parent_id) == current


@given(forests, st.data())
def test_partial_reorder_never_drops_children(forest: list[dict[str, Any]], data: st.DataObject) -> None:
    tree = NodeTree.from_dicts(forest)
    current = tree.child_ids(None)
    requested = data.draw(st.lists(st.sampled_from([*current, "stale-id"]), max_size=8)) if current else []

    tree.reorder_siblings(None, requested)

    assert sorted(tree.child_ids(None)) == sorted(current)


# =============================================================================
# Examples
# =============================================================================


def test_recompute_sums_nested_groups() -> None:
    tree = _sample_tree()

    changed = tree.recompute_aggregates()

    assert changed is True
    assert tree.get("sub").words == 7
    assert tree.get("part1").words == 157
    assert tree.total_words() == 160


def test_empty_group_has_zero_words() -> None:
    tree = NodeTree()
    tree.insert(None, Node(id="g", title="Empty", kind=KIND_GROUP, words=42))

    tree.recompute_aggregates()

    assert tree.get("g").words == 0


def test_leaves_are_in_document_order() -> None:
    assert [n.id for n in _sample_tree().leaves()] == ["ch1", "ch2", "ch3", "ch4"]


def test_find_returns_node_and_parent() -> None:
    tree = _sample_tree()

    node, parent = tree.find("ch3")

    assert node.id == "ch3"
    assert parent is not None and parent.id == "sub"
    assert tree.find("ch4")[1] is None
    assert tree.find("missing") is None


def test_insert_under_unknown_parent_fails() -> None:
    tree = _sample_tree()

    assert tree.insert("missing", Node(id="x", title="X")) is False
    assert "x" not in tree


def test_insert_under_chapter_fails() -> None:
    tree = _sample_tree()

    assert tree.insert("ch1", Node(id="x", title="X")) is False


def test_insert_rejects_duplicate_id() -> None:
    tree = _sample_tree()

    assert tree.insert(None, Node(id="ch1", title="Again")) is False
    assert len(tree.leaves()) == 4


def test_insert_appends_as_last_child() -> None:
    tree = _sample_tree()

    assert tree.insert("part1", Node(id="ch5", title="Ch5"))

    assert tree.child_ids("part1") == ["ch1", "ch2", "sub", "ch5"]


def test_remove_detaches_whole_subtree() -> None:
    tree = _sample_tree()

    subtree = tree.remove("part1")

    assert subtree is not None
    assert [n.id for n in subtree.roots] == ["part1"]
    assert {n.id for n, _ in subtree.walk()} == {"part1", "ch1", "ch2", "sub", "ch3"}
    assert [n.id for n, _ in tree.walk()] == ["ch4"]


def test_remove_unknown_returns_none() -> None:
    assert _sample_tree().remove("missing") is None


def test_collect_leaf_ids() -> None:
    tree = _sample_tree()

    assert tree.collect_leaf_ids("part1") == ["ch1", "ch2", "ch3"]
    assert tree.collect_leaf_ids("ch4") == ["ch4"]
    assert tree.collect_leaf_ids("missing") == []


def test_move_reparents_and_keeps_identity() -> None:
    tree = _sample_tree()
    node = tree.get("ch4")

    assert tree.move("ch4", "sub")

    assert tree.child_ids("sub") == ["ch3", "ch4"]
    assert tree.parent_id("ch4") == "sub"
    assert tree.get("ch4") is node
    assert tree.child_ids(None) == ["part1"]


def test_move_to_root_level() -> None:
    tree = _sample_tree()

    assert tree.move("ch3", None)

    assert tree.child_ids(None) == ["part1", "ch4", "ch3"]
    assert tree.child_ids("sub") == []


def test_move_into_descendant_is_rejected() -> None:
    tree = _sample_tree()

    assert tree.move("part1", "sub") is False
    assert tree.move("part1", "part1") is False
    assert tree.parent_id("sub") == "part1"


def test_move_under_chapter_is_rejected() -> None:
    tree = _sample_tree()

    assert tree.move("ch4", "ch1") is False


def test_reorder_puts_named_first_then_rest() -> None:
    tree = _sample_tree()

    assert tree.reorder_siblings("part1", ["sub", "gone", "ch1", "sub"])

    assert tree.child_ids("part1") == ["sub", "ch1", "ch2"]


def test_reorder_of_chapter_or_unknown_parent_fails() -> None:
    tree = _sample_tree()

    assert tree.reorder_siblings("ch1", []) is False
    assert tree.reorder_siblings("missing", []) is False


def test_round_trip_through_dicts() -> None:
    tree = _sample_tree()

    again = NodeTree.from_dicts(tree.to_dicts())

    assert again.to_dicts() == tree.to_dicts()
    assert "children" not in again.to_dicts()[1]


@pytest.mark.parametrize("node_id", ["", "../escape", "a/b", ".hidden"])
def test_node_rejects_ids_unusable_as_file_names(node_id: str) -> None:
    with pytest.raises(ValueError, match="Unsafe node id"):
        Node(id=node_id, title="X")


def test_from_dicts_rejects_unsafe_nested_id() -> None:
    with pytest.raises(ValueError, match="Unsafe node id"):
        NodeTree.from_dicts([
            {"id": "g1", "title": "Part I", "kind": KIND_GROUP, "children": [{"id": "../../x"}]},
        ])
