"""Diff operations — typed, JSON-serializable edit instructions for n8n workflows.

Each op describes a single atomic change to a workflow:
  AddNode          — add a new node (name, type, typeVersion, position, parameters)
  RemoveNode       — remove a node and every connection to or from it
  UpdateNode       — patch node fields by dotted/bracketed path
  MoveNode         — set a node's canvas position
  EnableNode       — clear a node's disabled flag
  DisableNode      — set a node's disabled flag
  AddConnection    — connect source[output][index] → target[input][index]
  RemoveConnection — remove a connection
  UpdateConnection — re-point an existing connection to another port / index
  UpdateSettings   — merge keys into workflow settings
  UpdateName       — rename the workflow
  AddTag           — add a workflow tag (no duplicates)
  RemoveTag        — remove a workflow tag

Node references (node_id / node_name / source / target) may hold either a
node's stable id or its current name. They are resolved by the diff engine at
apply time, never here, because a batch may add a node and reference it by
name later in the same batch.

Wire format is camelCase with a "type" discriminator, e.g.
    {"type": "addConnection", "source": "Webhook", "target": "Set", "sourceOutput": "main"}
"""

from __future__ import annotations

import dataclasses
import json
import re
from dataclasses import dataclass, field
from typing import Any, Union


# ---------------------------------------------------------------------------
# Node operations
# ---------------------------------------------------------------------------


@dataclass
class AddNode:
    """Add a new node.

    node: the full node object. name and type are required; id is generated
          when absent, position is auto-placed when absent, typeVersion and
          parameters default to 1 and {}.
    """

    op_type: str = "addNode"
    node: dict[str, Any] = field(default_factory=dict)
    description: str | None = None


@dataclass
class RemoveNode:
    """Remove a node (by id or name) together with its connections."""

    op_type: str = "removeNode"
    node_id: str | None = None
    node_name: str | None = None
    description: str | None = None


@dataclass
class UpdateNode:
    """Patch fields on an existing node.

    changes: path → value. Paths address the node object, e.g.
             "parameters.url", "parameters.options.headers[0].value",
             "typeVersion", "name", "onError". Intermediate containers are
             created as needed.
    remove:  paths to delete (e.g. ["onError"]).
    """

    op_type: str = "updateNode"
    node_id: str | None = None
    node_name: str | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    remove: list[str] = field(default_factory=list)
    description: str | None = None


@dataclass
class MoveNode:
    op_type: str = "moveNode"
    node_id: str | None = None
    node_name: str | None = None
    position: list[float] = field(default_factory=list)
    description: str | None = None


@dataclass
class EnableNode:
    op_type: str = "enableNode"
    node_id: str | None = None
    node_name: str | None = None
    description: str | None = None


@dataclass
class DisableNode:
    op_type: str = "disableNode"
    node_id: str | None = None
    node_name: str | None = None
    description: str | None = None


# ---------------------------------------------------------------------------
# Connection operations
# ---------------------------------------------------------------------------


@dataclass
class AddConnection:
    """Connect source → target.

    source_output: output port type on the source ("main", "ai_tool", …).
    source_index:  output slot (0 = normal output, 1 = error output for main).
    target_input:  input port type on the target.
    target_index:  input index on the target.
    """

    op_type: str = "addConnection"
    source: str = ""
    target: str = ""
    source_output: str = "main"
    source_index: int = 0
    target_input: str = "main"
    target_index: int = 0
    description: str | None = None


@dataclass
class RemoveConnection:
    """Remove source → target. source_index None removes it from every slot.

    target_input None matches the target whatever input type it is wired to.
    """

    op_type: str = "removeConnection"
    source: str = ""
    target: str = ""
    source_output: str = "main"
    source_index: int | None = None
    target_input: str | None = None
    description: str | None = None


@dataclass
class UpdateConnection:
    """Re-point an existing source → target connection.

    changes may set sourceOutput, sourceIndex, targetInput, targetIndex.
    Applied as remove + add.
    """

    op_type: str = "updateConnection"
    source: str = ""
    target: str = ""
    source_output: str = "main"
    source_index: int | None = None
    target_input: str | None = None
    changes: dict[str, Any] = field(default_factory=dict)
    description: str | None = None


# ---------------------------------------------------------------------------
# Workflow metadata operations
# ---------------------------------------------------------------------------


@dataclass
class UpdateSettings:
    op_type: str = "updateSettings"
    settings: dict[str, Any] = field(default_factory=dict)
    description: str | None = None


@dataclass
class UpdateName:
    op_type: str = "updateName"
    name: str = ""
    description: str | None = None


@dataclass
class AddTag:
    op_type: str = "addTag"
    tag: str = ""
    description: str | None = None


@dataclass
class RemoveTag:
    op_type: str = "removeTag"
    tag: str = ""
    description: str | None = None


# Union type for all diff ops
DiffOp = Union[
    AddNode, RemoveNode, UpdateNode, MoveNode, EnableNode, DisableNode,
    AddConnection, RemoveConnection, UpdateConnection,
    UpdateSettings, UpdateName, AddTag, RemoveTag,
]

# Discriminator map: op_type string → dataclass
_OP_TYPE_MAP: dict[str, type] = {
    "addNode": AddNode,
    "removeNode": RemoveNode,
    "updateNode": UpdateNode,
    "moveNode": MoveNode,
    "enableNode": EnableNode,
    "disableNode": DisableNode,
    "addConnection": AddConnection,
    "removeConnection": RemoveConnection,
    "updateConnection": UpdateConnection,
    "updateSettings": UpdateSettings,
    "updateName": UpdateName,
    "addTag": AddTag,
    "removeTag": RemoveTag,
}

# Applied in the diff engine's first pass.
NODE_STRUCTURE_OPS: tuple[type, ...] = (AddNode, RemoveNode)

_NODE_REF_OPS: tuple[type, ...] = (RemoveNode, UpdateNode, MoveNode, EnableNode, DisableNode)
_CONNECTION_OPS: tuple[type, ...] = (AddConnection, RemoveConnection, UpdateConnection)


def node_ref(op: DiffOp) -> str | None:
    """The node reference carried by a node-scoped op (id preferred)."""
    return getattr(op, "node_id", None) or getattr(op, "node_name", None)


def batch_operations(ops: list[DiffOp], max_operations: int = 5) -> list[list[DiffOp]]:
    """Split ops into consecutive batches of at most max_operations."""
    size = max(1, max_operations)
    return [ops[i:i + size] for i in range(0, len(ops), size)]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class DiffOperationParseError(ValueError):
    """Raised when diff operations fail to parse or fail shape validation.

    errors: list of human-readable error strings, one per problem found.
    """

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


def validate_diff_ops(ops: list[DiffOp], offset: int = 0) -> list[str]:
    """Shape-check ops without a graph. Returns a list of errors.

    Reference resolution is the engine's job; this only catches ops that could
    never apply (missing required fields, wrong field types). offset shifts the
    reported op index when checking a slice of a larger batch.
    """
    errors: list[str] = []
    for i, op in enumerate(ops):
        label = f"ops[{i + offset}] {op.op_type}"
        if isinstance(op, AddNode):
            if not isinstance(op.node, dict):
                errors.append(f"{label}: node must be an object")
                continue
            if not isinstance(op.node.get("name"), str) or not op.node.get("name"):
                errors.append(f"{label}: node.name is required")
            if not isinstance(op.node.get("type"), str) or not op.node.get("type"):
                errors.append(f"{label}: node.type is required")
        elif isinstance(op, _NODE_REF_OPS):
            if not node_ref(op):
                errors.append(f"{label}: nodeId or nodeName is required")
            if isinstance(op, UpdateNode):
                if not isinstance(op.changes, dict) or not isinstance(op.remove, list):
                    errors.append(f"{label}: changes must be an object and remove a list")
                elif not op.changes and not op.remove:
                    errors.append(f"{label}: changes or remove is required")
            if isinstance(op, MoveNode) and (not isinstance(op.position, (list, tuple)) or len(op.position) != 2):
                errors.append(f"{label}: position must be [x, y]")
        elif isinstance(op, _CONNECTION_OPS):
            if not op.source:
                errors.append(f"{label}: source is required")
            if not op.target:
                errors.append(f"{label}: target is required")
            for attr in ("source_index", "target_index"):
                value = getattr(op, attr, None)
                if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                    errors.append(f"{label}: {attr} must be a non-negative integer")
            if isinstance(op, UpdateConnection) and not op.changes:
                errors.append(f"{label}: changes is required")
        elif isinstance(op, UpdateSettings):
            if not isinstance(op.settings, dict):
                errors.append(f"{label}: settings must be an object")
        elif isinstance(op, UpdateName):
            if not isinstance(op.name, str) or not op.name.strip():
                errors.append(f"{label}: name is required")
        elif isinstance(op, (AddTag, RemoveTag)):
            if not isinstance(op.tag, str) or not op.tag:
                errors.append(f"{label}: tag is required")
    return errors


# ---------------------------------------------------------------------------
# JSON serialization / deserialization
# ---------------------------------------------------------------------------

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def op_to_dict(op: DiffOp) -> dict[str, Any]:
    """Serialize a single op to its camelCase wire dict (None fields omitted)."""
    raw = dataclasses.asdict(op)
    out: dict[str, Any] = {"type": raw.pop("op_type")}
    for key, value in raw.items():
        if value is None:
            continue
        out[_camel(key)] = value
    return out


def op_from_dict(d: dict[str, Any]) -> DiffOp:
    """Deserialize a dict to a typed op.

    The discriminator may be "type" or "op_type"; field names may be camelCase
    or snake_case. Raises ValueError for unknown op types.
    Unknown keys are silently dropped (forward-compatibility).
    """
    if not isinstance(d, dict):
        raise ValueError(f"Operation must be an object, got {type(d).__name__}")
    op_type = d.get("op_type") or d.get("type")
    cls = _OP_TYPE_MAP.get(op_type)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(
            f"Unknown operation type: {op_type!r}. Valid types: {list(_OP_TYPE_MAP)}"
        )
    valid_fields = {f.name for f in dataclasses.fields(cls)} - {"op_type"}
    filtered: dict[str, Any] = {}
    for key, value in d.items():
        name = key if key in valid_fields else _snake(key)
        if name in valid_fields:
            filtered[name] = value
    return cls(**filtered)


def ops_from_list(raw_list: list[Any]) -> list[DiffOp]:
    """Parse a list of op dicts, collecting every problem before raising."""
    ops: list[DiffOp] = []
    errors: list[str] = []
    for i, item in enumerate(raw_list):
        try:
            ops.append(op_from_dict(item))
        except (TypeError, ValueError) as exc:
            errors.append(f"ops[{i}]: {exc}")
    if errors:
        raise DiffOperationParseError(errors)
    return ops


def ops_to_json(ops: list[DiffOp]) -> str:
    """Serialize a list of ops to a pretty-printed JSON string."""
    return json.dumps([op_to_dict(op) for op in ops], indent=2)


def ops_from_json(s: str) -> list[DiffOp]:
    """Deserialize a JSON string (or code-fenced block) to a list of ops.

    Tolerates LLM output that wraps the JSON array in ```json...``` fences.
    Raises ValueError if the string is not a valid JSON array or contains
    unknown operation types.
    """
    stripped = s.strip()
    if stripped.startswith("```"):
        lines = stripped.splitlines()
        inner = "\n".join(lines[1:])
        if inner.rstrip().endswith("```"):
            inner = inner.rstrip()[:-3].rstrip()
        stripped = inner.strip()

    raw_list = json.loads(stripped)
    if not isinstance(raw_list, list):
        raise ValueError(
            f"Expected a JSON array of operations, got {type(raw_list).__name__}"
        )
    return ops_from_list(raw_list)
