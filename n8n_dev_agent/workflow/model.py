"""Workflow graph input boundary.

Workflow JSON arrives from outside (an LLM, an MCP client, a file) and is
never trusted. parse_graph() makes the single "is this even a graph" decision:

    GraphInput = WorkflowGraph | MalformedGraph

Everything downstream receives a WorkflowGraph whose top-level shape is known
(nodes is a list, connections is a mapping). Individual nodes and connection
entries are still raw JSON and are checked one by one by the validators.

Canonical n8n workflow shape:
  {
    "name": "My workflow",
    "nodes": [
      {"id": "…", "name": "Webhook", "type": "n8n-nodes-base.webhook",
       "typeVersion": 2, "position": [250, 300], "parameters": {…}}
    ],
    "connections": {
      "Webhook": {"main": [[{"node": "Set", "type": "main", "index": 0}]]}
    },
    "settings": {…}
  }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Union

MAIN = "main"
AI_TOOL = "ai_tool"

ON_ERROR_VALUES: tuple[str, ...] = ("continueRegularOutput", "continueErrorOutput", "stopWorkflow")
CONTINUE_ERROR_OUTPUT = "continueErrorOutput"


@dataclass
class WorkflowGraph:
    """A workflow whose top-level shape has been verified.

    raw keeps every other top-level key (settings, tags, pinData, …) so the
    diff engine can round-trip the document unchanged.
    """

    nodes: list[Any]
    connections: dict[str, Any]
    raw: dict[str, Any] = field(default_factory=dict)

    def iter_nodes(self) -> Iterator[dict[str, Any]]:
        """Yield only the node entries that are JSON objects."""
        for node in self.nodes:
            if isinstance(node, dict):
                yield node


@dataclass
class MalformedGraph:
    """Input that is not a workflow graph at all."""

    reason: str


GraphInput = Union[WorkflowGraph, MalformedGraph]


def parse_graph(raw: Any) -> GraphInput:
    """Classify raw input as a WorkflowGraph or a MalformedGraph. Never raises."""
    if isinstance(raw, WorkflowGraph):
        return raw
    if raw is None:
        return MalformedGraph("workflow is null or undefined")
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return MalformedGraph(f"workflow is not valid JSON ({exc})")
    if not isinstance(raw, dict):
        return MalformedGraph(f"workflow must be an object, got {type(raw).__name__}")

    nodes = raw.get("nodes")
    if not isinstance(nodes, list):
        return MalformedGraph("nodes must be an array")

    connections = raw.get("connections")
    if connections is None:
        connections = {}
    if not isinstance(connections, dict):
        return MalformedGraph("connections must be an object")

    return WorkflowGraph(nodes=nodes, connections=connections, raw=raw)


def slot_targets(slot: Any) -> list[Any]:
    """Return the entries of one output slot; a null slot is an empty slot."""
    if slot is None:
        return []
    if isinstance(slot, list):
        return slot
    return [slot]


def has_main_output(connections: dict[str, Any], source: str, index: int) -> bool:
    """True when source has at least one target at main[index]."""
    outputs = connections.get(source)
    if not isinstance(outputs, dict):
        return False
    main = outputs.get(MAIN)
    if not isinstance(main, list) or len(main) <= index:
        return False
    return any(isinstance(t, dict) for t in slot_targets(main[index]))
