"""Tests for the diff operation IR: parsing, shape validation, serialization.

Covers:
  - camelCase / snake_case wire parsing with a "type" discriminator
  - shape validation without a workflow (references are left to the engine)
  - code-fenced JSON from model output
  - batch splitting
"""

import json

import pytest

from n8n_dev_agent.workflow.diff_ops import (
    AddConnection,
    AddNode,
    AddTag,
    DiffOperationParseError,
    MoveNode,
    RemoveConnection,
    UpdateConnection,
    UpdateName,
    UpdateNode,
    batch_operations,
    node_ref,
    op_from_dict,
    op_to_dict,
    ops_from_json,
    ops_from_list,
    ops_to_json,
    validate_diff_ops,
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def test_parse_camel_case_connection():
    op = op_from_dict({
        "type": "addConnection", "source": "Webhook", "target": "Set",
        "sourceOutput": "main", "sourceIndex": 1, "targetIndex": 0,
    })
    assert op == AddConnection(source="Webhook", target="Set", source_index=1)


def test_parse_snake_case_and_op_type_key():
    op = op_from_dict({"op_type": "updateNode", "node_name": "Set", "changes": {"notes": "x"}})
    assert isinstance(op, UpdateNode)
    assert node_ref(op) == "Set"


def test_node_ref_prefers_id():
    assert node_ref(UpdateNode(node_id="abc", node_name="Set")) == "abc"
    assert node_ref(AddTag(tag="x")) is None


def test_unknown_keys_are_dropped():
    op = op_from_dict({"type": "updateName", "name": "W", "futureField": 1})
    assert op == UpdateName(name="W")


def test_unknown_type_raises():
    with pytest.raises(ValueError, match="Unknown operation type"):
        op_from_dict({"type": "renameEverything"})


def test_non_object_raises():
    with pytest.raises(ValueError):
        op_from_dict(["addNode"])


def test_ops_from_list_collects_every_error():
    with pytest.raises(DiffOperationParseError) as exc_info:
        ops_from_list([{"type": "nope"}, {"type": "addTag", "tag": "x"}, "bad"])
    errors = exc_info.value.errors
    assert len(errors) == 2
    assert errors[0].startswith("ops[0]")
    assert errors[1].startswith("ops[2]")


# ---------------------------------------------------------------------------
# Shape validation
# ---------------------------------------------------------------------------


def test_valid_ops_have_no_errors():
    ops = [
        AddNode(node={"name": "Set", "type": "n8n-nodes-base.set"}),
        AddConnection(source="Webhook", target="Set"),
        UpdateNode(node_name="Set", changes={"parameters.mode": "raw"}),
        MoveNode(node_name="Set", position=[10, 20]),
        AddTag(tag="x"),
    ]
    assert validate_diff_ops(ops) == []


def test_missing_fields_are_reported():
    errors = validate_diff_ops([
        AddNode(node={"type": "n8n-nodes-base.set"}),
        UpdateNode(node_name="Set"),
        AddConnection(source="A"),
        MoveNode(node_name="A", position=[1]),
        UpdateName(name="  "),
    ])
    assert errors == [
        "ops[0] addNode: node.name is required",
        "ops[1] updateNode: changes or remove is required",
        "ops[2] addConnection: target is required",
        "ops[3] moveNode: position must be [x, y]",
        "ops[4] updateName: name is required",
    ]


def test_negative_index_is_reported():
    errors = validate_diff_ops([AddConnection(source="A", target="B", source_index=-1)])
    assert errors == ["ops[0] addConnection: source_index must be a non-negative integer"]


def test_update_connection_needs_changes():
    errors = validate_diff_ops([UpdateConnection(source="A", target="B")])
    assert errors == ["ops[0] updateConnection: changes is required"]


def test_offset_shifts_labels():
    errors = validate_diff_ops([RemoveConnection(source="A")], offset=3)
    assert errors == ["ops[3] removeConnection: target is required"]


def test_references_are_not_resolved_here():
    assert validate_diff_ops([AddConnection(source="Nowhere", target="Nothing")]) == []


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def test_op_to_dict_is_camel_case_without_nones():
    d = op_to_dict(UpdateNode(node_name="Set", changes={"typeVersion": 2}))
    assert d == {"type": "updateNode", "nodeName": "Set", "changes": {"typeVersion": 2}, "remove": []}


def test_json_roundtrip():
    ops = [AddNode(node={"name": "Set", "type": "n8n-nodes-base.set"}), AddConnection(source="A", target="Set")]
    assert ops_from_json(ops_to_json(ops)) == ops


def test_ops_from_json_strips_code_fences():
    payload = "```json\n" + json.dumps([{"type": "addTag", "tag": "x"}]) + "\n```"
    assert ops_from_json(payload) == [AddTag(tag="x")]


def test_ops_from_json_requires_array():
    with pytest.raises(ValueError, match="Expected a JSON array"):
        ops_from_json('{"type": "addTag"}')


# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------


def test_batch_operations():
    ops = [AddTag(tag=str(i)) for i in range(11)]
    assert [len(b) for b in batch_operations(ops, 5)] == [5, 5, 1]
    assert batch_operations([], 5) == []
