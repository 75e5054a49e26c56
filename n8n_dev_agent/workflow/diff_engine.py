"""Diff engine: applies a batch of diff operations to an n8n workflow.

Usage:
    engine = WorkflowDiffEngine(validator)
    result = engine.apply_operations(workflow, [
        {"type": "addNode", "node": {"name": "Set", "type": "n8n-nodes-base.set"}},
        {"type": "addConnection", "source": "Webhook", "target": "Set"},
    ])
    if result.success:
        save(result.workflow)

Rules
-----
- A batch holds at most settings.max_operations ops (default 5). Larger
  batches are rejected whole, never truncated.
- The batch is transactional. Ops run against a deep copy; the first failure
  discards the copy and the caller's workflow is left untouched.
- Two passes. Pass one applies addNode/removeNode in submission order, so
  later ops may reference a node added anywhere in the batch. Pass two applies
  every other op in submission order. When two ops touch the same field the
  later pass-two op wins.
- Node references resolve by id first, then by current name.
- Connections are keyed by node name, so a rename rewrites every connection
  key and target that used the old name.
"""

from __future__ import annotations

import copy
import json
import logging
import math
import re
import uuid
from dataclasses import dataclass, field
from typing import Any

from n8n_dev_agent.config import AgentSettings
from n8n_dev_agent.workflow.diff_ops import (
    NODE_STRUCTURE_OPS,
    AddConnection,
    AddNode,
    AddTag,
    DiffOp,
    DiffOperationParseError,
    DisableNode,
    EnableNode,
    MoveNode,
    RemoveConnection,
    RemoveNode,
    RemoveTag,
    UpdateConnection,
    UpdateName,
    UpdateNode,
    UpdateSettings,
    batch_operations,
    node_ref,
    ops_from_list,
    validate_diff_ops,
)
from n8n_dev_agent.workflow.expression import child_path
from n8n_dev_agent.workflow.model import MAIN, MalformedGraph, parse_graph
from n8n_dev_agent.workflow.result import ValidationResult

logger = logging.getLogger(__name__)

# Grid constants for auto-placing added nodes (n8n canvas coordinates)
_GRID_X: int = 220
_GRID_Y: int = 200
_START_X: int = 250
_START_Y: int = 300


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DiffError(Exception):
    """Base class for every diff failure.

    operation_index: position of the failing op in the submitted batch, or
                     None when the failure concerns the batch as a whole.
    details:         optional structured context for the caller.
    """

    def __init__(
        self,
        message: str,
        operation_index: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation_index = operation_index
        self.details = details


class UnknownNodeReferenceError(DiffError):
    """An op names a node that is neither an id nor a current name."""


class PathTraversalError(DiffError):
    """A change path runs through a scalar value."""


class MalformedPathError(DiffError):
    """A change path could not be parsed."""


class BatchTooLargeError(DiffError):
    """The batch exceeds the configured operation cap."""


class OperationConflictError(DiffError):
    """The op contradicts the workflow or an earlier op in the batch."""


class InvalidOperationError(DiffError):
    """The op is malformed or asks for something that is never allowed."""


class InvalidWorkflowError(DiffError):
    """The workflow the batch was applied to is not a usable graph."""


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiffErrorDetail:
    """A rejected batch: failing op index, message and exception class name."""

    operation: int | None
    message: str
    details: dict[str, Any] | None = None
    kind: str = "DiffError"

    @classmethod
    def from_error(cls, exc: DiffError) -> DiffErrorDetail:
        return cls(
            operation=exc.operation_index,
            message=exc.message,
            details=exc.details,
            kind=type(exc).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"operation": self.operation, "type": self.kind, "message": self.message}
        if self.details is not None:
            out["details"] = self.details
        return out


@dataclass
class DiffResult:
    """Outcome of apply_operations.

    workflow: the committed workflow on success; the caller's unmodified
              workflow on failure; None for a validate-only run.
    preview:  the scratch workflow of a validate-only run.
    changes:  human-readable change log, one line per effect.
    """

    success: bool
    workflow: dict[str, Any] | None = None
    preview: dict[str, Any] | None = None
    validation_result: ValidationResult | None = None
    operations_applied: int = 0
    errors: list[DiffErrorDetail] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": self.success,
            "operationsApplied": self.operations_applied,
            "message": self.message,
            "changes": self.changes,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.workflow is not None:
            out["workflow"] = self.workflow
        if self.preview is not None:
            out["preview"] = self.preview
        if self.validation_result is not None:
            out["validation"] = self.validation_result.to_dict()
        return out


# ---------------------------------------------------------------------------
# Path handling
# ---------------------------------------------------------------------------

_KEY_RE = re.compile(r"[^.\[\]]+")
_QUOTED_KEY_RE = re.compile(r'\["((?:[^"\\]|\\.)*)"\]')
_INDEX_RE = re.compile(r'\[([^\[\]"]*)\]')


def parse_path(path: Any) -> list[str | int]:
    """Split "parameters.items[0].name" into ["parameters", "items", 0, "name"].

    Keys that contain dots or brackets are written bracket-quoted, as in
    'parameters.assignments["a.b"]'. Raises MalformedPathError for empty
    segments, unbalanced brackets and non-integer indices.
    """
    if not isinstance(path, str) or not path:
        raise MalformedPathError(f"Malformed path {path!r}: path must be a non-empty string")
    match = _KEY_RE.match(path)
    if match is None:
        raise MalformedPathError(f"Malformed path {path!r}: empty segment")
    tokens: list[str | int] = [match.group()]
    pos = match.end()
    while pos < len(path):
        if path[pos] == ".":
            match = _KEY_RE.match(path, pos + 1)
            if match is None:
                raise MalformedPathError(f"Malformed path {path!r}: empty segment")
            tokens.append(match.group())
            pos = match.end()
            continue
        quoted = _QUOTED_KEY_RE.match(path, pos)
        if quoted is not None:
            try:
                tokens.append(json.loads(f'"{quoted.group(1)}"'))
            except ValueError as exc:
                raise MalformedPathError(f"Malformed path {path!r}: bad quoted key {quoted.group()}") from exc
            pos = quoted.end()
            continue
        index = _INDEX_RE.match(path, pos)
        if index is None:
            raise MalformedPathError(f"Malformed path {path!r}: unbalanced brackets at offset {pos}")
        raw = index.group(1)
        if not re.fullmatch(r"[0-9]+", raw):
            raise MalformedPathError(f"Malformed path {path!r}: index [{raw}] is not a non-negative integer")
        tokens.append(int(raw))
        pos = index.end()
    return tokens


def _render_path(tokens: list[str | int]) -> str:
    out = ""
    for token in tokens:
        if isinstance(token, int):
            out += f"[{token}]"
        else:
            out = child_path(out, token)
    return out or "<node>"


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _step(container: Any, tokens: list[str | int], pos: int) -> None:
    """Raise unless container can be indexed by tokens[pos]."""
    token = tokens[pos]
    if isinstance(token, int) and isinstance(container, list):
        return
    if isinstance(token, str) and isinstance(container, dict):
        return
    raise PathTraversalError(
        f"cannot traverse through {_json_type(container)} at "
        f"{_render_path(tokens[:pos])}",
        details={"path": _render_path(tokens), "at": _render_path(tokens[:pos])},
    )


def set_path(target: dict[str, Any], tokens: list[str | int], value: Any) -> None:
    """Assign value at tokens, creating dicts for keys and lists for indices."""
    current: Any = target
    for pos, token in enumerate(tokens):
        _step(current, tokens, pos)
        last = pos == len(tokens) - 1
        if isinstance(token, int):
            while len(current) <= token:
                current.append(None)
        if last:
            current[token] = value
            return
        child = current[token] if isinstance(token, int) else current.get(token)
        if child is None:
            child = [] if isinstance(tokens[pos + 1], int) else {}
            current[token] = child
        current = child


def delete_path(target: dict[str, Any], tokens: list[str | int]) -> bool:
    """Delete the value at tokens. Returns False when nothing was there."""
    current: Any = target
    for pos, token in enumerate(tokens):
        _step(current, tokens, pos)
        last = pos == len(tokens) - 1
        if isinstance(token, int):
            if token >= len(current):
                return False
            if last:
                current.pop(token)
                return True
            current = current[token]
        else:
            if token not in current:
                return False
            if last:
                del current[token]
                return True
            current = current[token]
        if current is None:
            return False
    return False


def _auto_position(index: int, existing_nodes: list[dict[str, Any]]) -> list[float]:
    """Compute a canvas position for the (index)th node added by a batch.

    Places new nodes to the right of the rightmost existing node, then wraps
    to a new row every 4 columns.
    """
    positions = [
        n["position"] for n in existing_nodes
        if isinstance(n.get("position"), list)
        and len(n["position"]) == 2
        and all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in n["position"])
    ]
    if positions:
        max_x = float(max(p[0] for p in positions))
        base_y = float(min(p[1] for p in positions))
    else:
        max_x = float(_START_X - _GRID_X)
        base_y = float(_START_Y)

    col = index % 4
    row = index // 4
    return [max_x + _GRID_X * (col + 1), base_y + _GRID_Y * row]


# ---------------------------------------------------------------------------
# Scratch state for one batch
# ---------------------------------------------------------------------------


class _Scratch:
    """Deep-copied workflow with nodes held in an id-keyed arena."""

    def __init__(self, raw: dict[str, Any]) -> None:
        self.workflow = copy.deepcopy(raw)
        connections = self.workflow.get("connections")
        self.connections: dict[str, Any] = connections if isinstance(connections, dict) else {}
        self.nodes: dict[str, dict[str, Any]] = {}
        for position, node in enumerate(self.workflow.get("nodes") or []):
            if not isinstance(node, dict):
                raise InvalidWorkflowError(f"Node at index {position} is not an object")
            node_id = node.get("id")
            if not isinstance(node_id, str) or not node_id:
                node_id = str(uuid.uuid4())
                node["id"] = node_id
            if node_id in self.nodes:
                raise InvalidWorkflowError(
                    f'Duplicate node id "{node_id}" in workflow', details={"nodeId": node_id}
                )
            self.nodes[node_id] = node
        self.by_name: dict[str, str] = {}
        self.removed: set[str] = set()
        self.added = 0
        self.rebuild_name_index()

    def rebuild_name_index(self) -> None:
        self.by_name = {
            node["name"]: node_id
            for node_id, node in self.nodes.items()
            if isinstance(node.get("name"), str)
        }

    def resolve(self, ref: Any, index: int, op: DiffOp) -> str:
        """Return the node id for a reference (id first, then current name)."""
        if isinstance(ref, str):
            if ref in self.nodes:
                return ref
            if ref in self.by_name:
                return self.by_name[ref]
            if ref in self.removed:
                raise OperationConflictError(
                    f"Operation {index} ({op.op_type}) references node \"{ref}\" which was removed earlier in this batch",
                    operation_index=index,
                    details={"reference": ref},
                )
        raise UnknownNodeReferenceError(
            f"Operation {index} ({op.op_type}): node \"{ref}\" not found. Available nodes: "
            + ", ".join(sorted(self.by_name)),
            operation_index=index,
            details={"reference": ref},
        )

    def name_of(self, node_id: str, index: int) -> str:
        """Return the node's name; connections are keyed by name, so one is required."""
        name = self.nodes[node_id].get("name")
        if not isinstance(name, str) or not name:
            raise InvalidWorkflowError(
                f"Operation {index}: node \"{node_id}\" has no name and cannot be connected",
                operation_index=index,
                details={"nodeId": node_id},
            )
        return name

    def label(self, node_id: str) -> str:
        name = self.nodes[node_id].get("name")
        return name if isinstance(name, str) and name else node_id

    def outputs_of(self, source: str, index: int) -> dict[str, Any] | None:
        """Return connections[source], rejecting entries that are not output maps."""
        outputs = self.connections.get(source)
        if outputs is not None and not isinstance(outputs, dict):
            raise InvalidWorkflowError(
                f"Operation {index}: connections of \"{source}\" must be an object keyed by output type, "
                f"got {_json_type(outputs)}",
                operation_index=index,
                details={"source": source},
            )
        return outputs

    def commit(self) -> dict[str, Any]:
        self.workflow["nodes"] = list(self.nodes.values())
        self.workflow["connections"] = self.connections
        return self.workflow


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class WorkflowDiffEngine:
    """Applies diff-operation batches transactionally.

    validator: optional WorkflowValidator; when attached, the resulting
               workflow of every successful batch is validated.
    """

    def __init__(self, validator: Any = None, settings: AgentSettings | None = None) -> None:
        self._validator = validator
        self._settings = settings or AgentSettings()

    @property
    def max_operations(self) -> int:
        return self._settings.max_operations

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def apply(self, graph: Any, operations: list[Any]) -> dict[str, Any]:
        """Apply a batch and return the new workflow. Raises DiffError."""
        workflow, _ = self._apply(graph, operations)
        return workflow

    def apply_operations(
        self,
        graph: Any,
        operations: list[Any],
        validate_only: bool = False,
    ) -> DiffResult:
        """Apply a batch and report the outcome instead of raising."""
        try:
            workflow, changes = self._apply(graph, operations)
        except DiffError as exc:
            return self._rejected(graph, exc)
        return self._accepted(workflow, changes, len(operations), validate_only)

    def apply_in_batches(
        self,
        graph: Any,
        operations: list[Any],
        validate_only: bool = False,
    ) -> DiffResult:
        """Apply any number of ops as consecutive capped batches, all or nothing.

        Used for auto-fix output, which may exceed one batch. A failure in any
        batch discards the earlier ones too.
        """
        if not operations:
            return DiffResult(success=True, workflow=None if validate_only else graph, message="No operations to apply")
        current = graph
        changes: list[str] = []
        try:
            for chunk in batch_operations(list(operations), self.max_operations):
                current, chunk_changes = self._apply(current, chunk)
                changes.extend(chunk_changes)
        except DiffError as exc:
            return self._rejected(graph, exc)
        return self._accepted(current, changes, len(operations), validate_only)

    @staticmethod
    def _rejected(graph: Any, exc: DiffError) -> DiffResult:
        logger.warning("[DiffEngine] Batch rejected: %s", exc.message)
        return DiffResult(
            success=False,
            workflow=graph if isinstance(graph, dict) else None,
            errors=[DiffErrorDetail.from_error(exc)],
            message=f"Diff rejected, no changes applied: {exc.message}",
        )

    def _accepted(self, workflow: dict[str, Any], changes: list[str], count: int, validate_only: bool) -> DiffResult:
        validation = self._validator.validate(workflow) if self._validator is not None else None
        if validate_only:
            message = f"Validation only: {count} operation(s) would apply cleanly"
        else:
            message = f"Applied {count} operation(s)"
        if validation is not None:
            message += f"; resulting workflow {validation.summary}"
        logger.info("[DiffEngine] %s", message)

        return DiffResult(
            success=True,
            workflow=None if validate_only else workflow,
            preview=workflow if validate_only else None,
            validation_result=validation,
            operations_applied=0 if validate_only else count,
            changes=changes,
            message=message,
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def _parse_operations(self, operations: Any) -> list[DiffOp]:
        if not isinstance(operations, list):
            raise InvalidOperationError("operations must be a list")
        if len(operations) > self.max_operations:
            raise BatchTooLargeError(
                f"Too many operations: {len(operations)}. Maximum {self.max_operations} "
                "operations per batch; split the change into smaller batches.",
                details={"count": len(operations), "max": self.max_operations},
            )
        if not operations:
            raise InvalidOperationError("No operations provided")

        raw_indices = [i for i, op in enumerate(operations) if isinstance(op, dict)]
        ops: list[Any] = list(operations)
        if raw_indices:
            try:
                parsed = ops_from_list([operations[i] for i in raw_indices])
            except DiffOperationParseError as exc:
                raise InvalidOperationError(str(exc), details={"errors": exc.errors}) from exc
            for i, op in zip(raw_indices, parsed):
                ops[i] = op

        for i, op in enumerate(ops):
            if not hasattr(op, "op_type"):
                raise InvalidOperationError(f"Operation {i} is not a diff operation", operation_index=i)
            problems = validate_diff_ops([op], offset=i)
            if problems:
                raise InvalidOperationError("; ".join(problems), operation_index=i, details={"errors": problems})
        return ops

    def _apply(self, graph: Any, operations: Any) -> tuple[dict[str, Any], list[str]]:
        ops = self._parse_operations(operations)
        parsed = parse_graph(graph)
        if isinstance(parsed, MalformedGraph):
            raise InvalidWorkflowError(f"Invalid workflow: {parsed.reason}")

        scratch = _Scratch(parsed.raw)
        changes: list[str] = []

        # Pass one: structural node ops
        for i, op in enumerate(ops):
            if isinstance(op, NODE_STRUCTURE_OPS):
                changes.append(self._apply_one(scratch, op, i))
        scratch.rebuild_name_index()

        # Pass two: everything else, submission order
        for i, op in enumerate(ops):
            if not isinstance(op, NODE_STRUCTURE_OPS):
                changes.append(self._apply_one(scratch, op, i))

        logger.debug("[DiffEngine] Applied %d op(s): %s", len(ops), changes)
        return scratch.commit(), changes

    def _apply_one(self, s: _Scratch, op: DiffOp, i: int) -> str:
        try:
            if isinstance(op, AddNode):
                return self._add_node(s, op, i)
            if isinstance(op, RemoveNode):
                return self._remove_node(s, op, i)
            if isinstance(op, UpdateNode):
                return self._update_node(s, op, i)
            if isinstance(op, MoveNode):
                return self._move_node(s, op, i)
            if isinstance(op, (EnableNode, DisableNode)):
                node_id = s.resolve(node_ref(op), i, op)
                node = s.nodes[node_id]
                if isinstance(op, DisableNode):
                    node["disabled"] = True
                    return f'NODE DISABLED: "{s.label(node_id)}"'
                node.pop("disabled", None)
                return f'NODE ENABLED: "{s.label(node_id)}"'
            if isinstance(op, AddConnection):
                return self._add_connection(s, op, i)
            if isinstance(op, RemoveConnection):
                return self._remove_connection(s, op, i)
            if isinstance(op, UpdateConnection):
                return self._update_connection(s, op, i)
            if isinstance(op, UpdateSettings):
                settings = s.workflow.get("settings")
                if not isinstance(settings, dict):
                    settings = s.workflow["settings"] = {}
                settings.update(copy.deepcopy(op.settings))
                return f"SETTINGS UPDATED: {', '.join(sorted(op.settings))}"
            if isinstance(op, UpdateName):
                s.workflow["name"] = op.name
                return f'WORKFLOW RENAMED: "{op.name}"'
            if isinstance(op, AddTag):
                tags = s.workflow.get("tags")
                if not isinstance(tags, list):
                    tags = s.workflow["tags"] = []
                if op.tag not in [_tag_name(t) for t in tags]:
                    tags.append(op.tag)
                return f'TAG ADDED: "{op.tag}"'
            if isinstance(op, RemoveTag):
                tags = s.workflow.get("tags")
                if isinstance(tags, list):
                    s.workflow["tags"] = [t for t in tags if _tag_name(t) != op.tag]
                return f'TAG REMOVED: "{op.tag}"'
        except DiffError as exc:
            if exc.operation_index is None:
                exc.operation_index = i
            raise
        raise InvalidOperationError(f"Operation {i}: unsupported operation type {op.op_type!r}", operation_index=i)

    # ------------------------------------------------------------------
    # Node ops
    # ------------------------------------------------------------------

    def _add_node(self, s: _Scratch, op: AddNode, i: int) -> str:
        node = copy.deepcopy(op.node)
        name = node["name"]
        node_type = node["type"]
        if "." not in node_type:
            raise InvalidOperationError(
                f'Operation {i} (addNode): node type "{node_type}" must include a package prefix, '
                'e.g. "n8n-nodes-base.set"',
                operation_index=i,
            )
        if name in s.by_name:
            raise OperationConflictError(
                f'Operation {i} (addNode): a node named "{name}" already exists',
                operation_index=i,
                details={"nodeName": name},
            )
        node_id = node.get("id")
        if isinstance(node_id, str) and node_id:
            if node_id in s.nodes:
                raise OperationConflictError(
                    f'Operation {i} (addNode): a node with id "{node_id}" already exists',
                    operation_index=i,
                    details={"nodeId": node_id},
                )
        else:
            node_id = node["id"] = str(uuid.uuid4())
        node.setdefault("typeVersion", 1)
        node.setdefault("parameters", {})
        if not node.get("position"):
            node["position"] = _auto_position(s.added, list(s.nodes.values()))
        s.added += 1

        s.nodes[node_id] = node
        s.by_name[name] = node_id
        s.removed.discard(name)
        s.removed.discard(node_id)
        return f'NODE ADDED: [{node_id}] "{name}" ({node_type})'

    def _remove_node(self, s: _Scratch, op: RemoveNode, i: int) -> str:
        node_id = s.resolve(node_ref(op), i, op)
        node = s.nodes.pop(node_id)
        name = node.get("name")
        s.removed.add(node_id)
        if not isinstance(name, str):
            return f'NODE REMOVED: [{node_id}]'
        s.by_name.pop(name, None)
        s.removed.add(name)

        s.connections.pop(name, None)
        for source in list(s.connections):
            outputs = s.connections[source]
            if not isinstance(outputs, dict):
                continue
            for port in list(outputs):
                slots = outputs[port]
                if not isinstance(slots, list):
                    continue
                outputs[port] = [
                    [t for t in slot if not (isinstance(t, dict) and t.get("node") == name)]
                    if isinstance(slot, list) else slot
                    for slot in slots
                ]
            _prune(s.connections, source)
        return f'NODE REMOVED: [{node_id}] "{name}"'

    def _update_node(self, s: _Scratch, op: UpdateNode, i: int) -> str:
        node_id = s.resolve(node_ref(op), i, op)
        node = s.nodes[node_id]
        touched: list[str] = []

        for path, value in op.changes.items():
            tokens = parse_path(path)
            if tokens[0] == "id":
                raise InvalidOperationError(
                    f"Operation {i} (updateNode): a node's id cannot be changed", operation_index=i
                )
            if tokens == ["name"]:
                self._rename(s, node_id, value, i)
            else:
                set_path(node, tokens, copy.deepcopy(value))
            touched.append(path)

        for path in op.remove:
            tokens = parse_path(path)
            if len(tokens) == 1 and tokens[0] in ("id", "name", "type"):
                raise InvalidOperationError(
                    f'Operation {i} (updateNode): required field "{tokens[0]}" cannot be removed',
                    operation_index=i,
                )
            if delete_path(node, tokens):
                touched.append(f"-{path}")

        return f'NODE MODIFIED: "{s.label(node_id)}" {", ".join(touched)}'

    @staticmethod
    def _rename(s: _Scratch, node_id: str, new_name: Any, i: int) -> None:
        if not isinstance(new_name, str) or not new_name.strip():
            raise InvalidOperationError(
                f"Operation {i} (updateNode): name must be a non-empty string", operation_index=i
            )
        old_name = s.nodes[node_id].get("name")
        if new_name == old_name:
            return
        if new_name in s.by_name:
            raise OperationConflictError(
                f'Operation {i} (updateNode): a node named "{new_name}" already exists',
                operation_index=i,
                details={"nodeName": new_name},
            )
        s.nodes[node_id]["name"] = new_name
        s.by_name.pop(old_name, None)
        s.by_name[new_name] = node_id
        if old_name is None:
            return

        if old_name in s.connections:
            s.connections = {
                (new_name if key == old_name else key): value for key, value in s.connections.items()
            }
        for outputs in s.connections.values():
            if not isinstance(outputs, dict):
                continue
            for slots in outputs.values():
                for slot in slots if isinstance(slots, list) else []:
                    for target in slot if isinstance(slot, list) else []:
                        if isinstance(target, dict) and target.get("node") == old_name:
                            target["node"] = new_name

    @staticmethod
    def _move_node(s: _Scratch, op: MoveNode, i: int) -> str:
        node_id = s.resolve(node_ref(op), i, op)
        x, y = op.position
        for coord in (x, y):
            if isinstance(coord, bool) or not isinstance(coord, (int, float)) or not math.isfinite(coord):
                raise InvalidOperationError(
                    f"Operation {i} (moveNode): position must be two finite numbers", operation_index=i
                )
        s.nodes[node_id]["position"] = [x, y]
        return f'NODE MOVED: "{s.label(node_id)}" to [{x}, {y}]'

    # ------------------------------------------------------------------
    # Connection ops
    # ------------------------------------------------------------------

    @staticmethod
    def _find(
        s: _Scratch,
        source: str,
        target: str,
        source_output: str,
        source_index: int | None,
        target_input: str | None,
        i: int,
    ) -> list[tuple[int, dict[str, Any]]]:
        slots = (s.outputs_of(source, i) or {}).get(source_output)
        found: list[tuple[int, dict[str, Any]]] = []
        for slot_index, slot in enumerate(slots if isinstance(slots, list) else []):
            if source_index is not None and slot_index != source_index:
                continue
            for t in slot if isinstance(slot, list) else []:
                if not isinstance(t, dict) or t.get("node") != target:
                    continue
                if target_input is None or t.get("type", MAIN) == target_input:
                    found.append((slot_index, t))
        return found

    def _connect(
        self,
        s: _Scratch,
        i: int,
        source: str,
        target: str,
        source_output: str,
        source_index: int,
        target_input: str,
        target_index: int,
    ) -> None:
        outputs = s.outputs_of(source, i)
        if outputs is None:
            outputs = s.connections[source] = {}
        slots = outputs.get(source_output)
        if not isinstance(slots, list):
            slots = outputs[source_output] = []
        while len(slots) <= source_index:
            slots.append([])
        if not isinstance(slots[source_index], list):
            slots[source_index] = []
        slot = slots[source_index]
        for t in slot:
            if (
                isinstance(t, dict)
                and t.get("node") == target
                and t.get("type", MAIN) == target_input
                and t.get("index", 0) == target_index
            ):
                raise OperationConflictError(
                    f'Operation {i}: connection "{source}" {source_output}[{source_index}] -> "{target}" already exists',
                    operation_index=i,
                )
        slot.append({"node": target, "type": target_input, "index": target_index})

    def _add_connection(self, s: _Scratch, op: AddConnection, i: int) -> str:
        source = s.name_of(s.resolve(op.source, i, op), i)
        target = s.name_of(s.resolve(op.target, i, op), i)
        self._connect(s, i, source, target, op.source_output, op.source_index, op.target_input, op.target_index)
        return f'CONNECTION ADDED: "{source}" {op.source_output}[{op.source_index}] -> "{target}"'

    def _remove_connection(self, s: _Scratch, op: RemoveConnection, i: int) -> str:
        source = s.name_of(s.resolve(op.source, i, op), i)
        target = s.name_of(s.resolve(op.target, i, op), i)
        found = self._find(s, source, target, op.source_output, op.source_index, op.target_input, i)
        if not found:
            raise OperationConflictError(
                f'Operation {i} (removeConnection): no connection from "{source}" to "{target}" '
                f"on {op.source_output}",
                operation_index=i,
            )
        _drop(s, source, op.source_output, found)
        return f'CONNECTION REMOVED: "{source}" {op.source_output} -> "{target}"'

    def _update_connection(self, s: _Scratch, op: UpdateConnection, i: int) -> str:
        source = s.name_of(s.resolve(op.source, i, op), i)
        target = s.name_of(s.resolve(op.target, i, op), i)
        found = self._find(s, source, target, op.source_output, op.source_index, op.target_input, i)
        if not found:
            raise OperationConflictError(
                f'Operation {i} (updateConnection): no connection from "{source}" to "{target}" '
                f"on {op.source_output}",
                operation_index=i,
            )
        slot_index, existing = found[0]
        changes = op.changes

        def _change(camel: str, snake: str, default: Any) -> Any:
            return changes.get(camel, changes.get(snake, default))

        new_output = _change("sourceOutput", "source_output", op.source_output)
        new_index = _change("sourceIndex", "source_index", slot_index)
        new_input = _change("targetInput", "target_input", existing.get("type", MAIN))
        new_target_index = _change("targetIndex", "target_index", existing.get("index", 0))
        for label, value in (("sourceIndex", new_index), ("targetIndex", new_target_index)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidOperationError(
                    f"Operation {i} (updateConnection): {label} must be a non-negative integer",
                    operation_index=i,
                )

        _drop(s, source, op.source_output, [found[0]])
        self._connect(s, i, source, target, new_output, new_index, new_input, new_target_index)
        return (
            f'CONNECTION UPDATED: "{source}" {new_output}[{new_index}] -> "{target}" '
            f"{new_input}[{new_target_index}]"
        )


# ---------------------------------------------------------------------------
# Connection helpers
# ---------------------------------------------------------------------------


def _tag_name(tag: Any) -> Any:
    return tag.get("name") if isinstance(tag, dict) else tag


def _drop(s: _Scratch, source: str, port: str, found: list[tuple[int, dict[str, Any]]]) -> None:
    slots = s.connections[source][port]
    for slot_index, entry in found:
        slots[slot_index] = [t for t in slots[slot_index] if t is not entry]
    _prune(s.connections, source)


def _prune(connections: dict[str, Any], source: str) -> None:
    """Trim empty trailing slots, then empty ports, then the empty source."""
    outputs = connections.get(source)
    if not isinstance(outputs, dict):
        return
    for port in list(outputs):
        slots = outputs[port]
        if not isinstance(slots, list):
            continue
        while slots and slots[-1] == []:
            slots.pop()
        if not slots:
            del outputs[port]
    if not outputs:
        del connections[source]
