"""
Tests for mapping traversal and MessageTreeBuilder.
"""
import pytest

from chatgpt_exporter.core.models import ProcessedMessage
from chatgpt_exporter.core.source_schemas import NULL_PARENT_ID, ChatGPTConversation
from chatgpt_exporter.extractors import MessageTreeBuilder, traverse_mapping
from chatgpt_exporter.extractors.tree import find_roots

from fakes import branching_payload, conversation_payload, node


def _mapping(*nodes):
    return ChatGPTConversation.model_validate(conversation_payload("c", list(nodes))).mapping


def _message(message_id, parent_id=None):
    return ProcessedMessage(id=message_id, parent_id=parent_id, text=message_id)


def test_traversal_is_depth_first_in_declared_order():
    detail = ChatGPTConversation.model_validate(branching_payload())

    traversal = traverse_mapping(detail.mapping, detail.current_node)

    assert traversal.order == ("root", "A", "B", "C")
    assert traversal.total == 4
    assert traversal.visited == 4


def test_traversal_descends_branch_before_sibling():
    mapping = _mapping(
        node("root", children=["A"]),
        node("A", parent="root", children=["B", "C"], role="user"),
        node("B", parent="A", children=["B1"], role="assistant"),
        node("B1", parent="B", role="user"),
        node("C", parent="A", role="assistant"),
    )
    assert traverse_mapping(mapping).order == ("root", "A", "B", "B1", "C")


def test_unreachable_nodes_are_not_visited():
    """A node whose parent exists but does not list it as a child is skipped."""
    mapping = _mapping(
        node("root", children=["A"]),
        node("A", parent="root", role="user"),
        node("orphan", parent="A", role="assistant"),
    )
    traversal = traverse_mapping(mapping)
    assert traversal.order == ("root", "A")
    assert traversal.total == 3


def test_cycle_terminates_and_visits_each_node_once():
    mapping = _mapping(
        node("root", children=["A"]),
        node("A", parent="root", children=["B"], role="user"),
        node("B", parent="A", children=["A", "root"], role="assistant"),
    )
    assert traverse_mapping(mapping).order == ("root", "A", "B")


def test_rootless_cycle_terminates():
    mapping = _mapping(
        node("A", parent="B", children=["B"], role="user"),
        node("B", parent="A", children=["A"], role="assistant"),
    )
    assert traverse_mapping(mapping, current_node="B").order == ("B", "A")


def test_dangling_child_is_skipped():
    mapping = _mapping(
        node("root", children=["A", "missing"]),
        node("A", parent="root", role="user"),
    )
    assert traverse_mapping(mapping).order == ("root", "A")


def test_multiple_roots_current_path_first():
    mapping = _mapping(
        node("r1", children=["x"]),
        node("x", parent="r1", role="user"),
        node("r2", parent=NULL_PARENT_ID, children=["y"]),
        node("y", parent="r2", role="user"),
        node("r3", parent="gone", role="user"),
    )
    assert find_roots(mapping) == ["r1", "r2", "r3"]
    assert find_roots(mapping, current_node="y") == ["r2", "r1", "r3"]
    assert traverse_mapping(mapping, "y").order == ("r2", "y", "r1", "x", "r3")


def test_builder_groups_children_by_parent():
    """root -> A -> [B, C]: roots = [A], children of A = [B, C]."""
    messages = [_message("A", "root"), _message("B", "A"), _message("C", "A")]

    tree = MessageTreeBuilder().build(messages)

    assert [m.id for m in tree.roots] == ["A"]
    assert [m.id for m in tree.children("A")] == ["B", "C"]
    assert tree.children("B") == ()


def test_builder_result_is_immutable():
    tree = MessageTreeBuilder().build([_message("A"), _message("B", "A")])
    with pytest.raises(TypeError):
        tree.children_by_parent["A"] = ()


def test_iter_depth_first_depths_and_branch_labels():
    messages = [
        _message("A", "root"),
        _message("B", "A"),
        _message("B1", "B"),
        _message("C", "A"),
    ]

    entries = list(MessageTreeBuilder().build(messages).iter_depth_first())

    assert [(e.message.id, e.depth) for e in entries] == [("A", 0), ("B", 1), ("B1", 1), ("C", 1)]
    assert [(e.branch_index, e.branch_count) for e in entries] == [(0, 1), (0, 2), (0, 1), (1, 2)]
    assert [e.starts_branch for e in entries] == [False, True, False, True]


def test_linear_conversation_stays_flat():
    messages = [_message("A"), _message("B", "A"), _message("C", "B")]
    entries = list(MessageTreeBuilder().build(messages).iter_depth_first())
    assert [e.depth for e in entries] == [0, 0, 0]


def test_multiple_message_roots_are_branches():
    entries = list(MessageTreeBuilder().build([_message("A"), _message("B")]).iter_depth_first())
    assert [(e.message.id, e.depth, e.branch_count) for e in entries] == [("A", 1, 2), ("B", 1, 2)]
