"""Registry wiring for the n8n workflow MCP tools.

``TOOL_CATALOG`` is the single source of truth for tool metadata (name,
description, JSON schema). The MCP server consumes it, no duplication.

Adding a tool: append to ``TOOL_CATALOG`` and add the method to
``N8nMCPTools``. Two files, nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ToolDef:
    """Definition of a tool a client may call.

    parameters follows JSON Schema format:
        {"type": "object", "properties": {...}, "required": [...]}
    """

    name: str
    description: str
    parameters: dict[str, Any]


def _td(name: str, desc: str, props: dict[str, Any] | None = None, req: list[str] | None = None) -> ToolDef:
    return ToolDef(
        name=name,
        description=desc,
        parameters={"type": "object", "properties": props or {}, "required": req or []},
    )


def _str(description: str) -> dict:
    return {"type": "string", "description": description}


def _bool(description: str) -> dict:
    return {"type": "boolean", "description": description}


def _int(description: str) -> dict:
    return {"type": "integer", "description": description}


_WORKFLOW = {
    "type": ["object", "string"],
    "description": "n8n workflow JSON: {nodes: [...], connections: {...}}",
}

_OPERATION_TYPES = [
    "addNode", "removeNode", "updateNode", "moveNode", "enableNode", "disableNode",
    "addConnection", "removeConnection", "updateConnection",
    "updateSettings", "updateName", "addTag", "removeTag",
]


# ==================================================================
# TOOL_CATALOG: every tool the server exposes.
# Each entry: (method_name_on_N8nMCPTools, ToolDef)
# ==================================================================

TOOL_CATALOG: list[tuple[str, ToolDef]] = [
    # ── VALIDATION (3) ────────────────────────────────────────────
    ("validate_workflow", _td(
        "validate_workflow",
        "Validate an n8n workflow: structure, connections, node configuration and expressions",
        {
            "workflow": _WORKFLOW,
            "options": {
                "type": "object",
                "description": "Optional checks to run and strictness",
                "properties": {
                    "validateNodes": _bool("Check node types and configuration (default true)"),
                    "validateConnections": _bool("Check connections (default true)"),
                    "validateExpressions": _bool("Check {{ }} expressions (default true)"),
                    "profile": {
                        "type": "string",
                        "enum": ["minimal", "runtime", "ai-friendly", "strict"],
                        "description": "Node configuration strictness (default runtime)",
                    },
                },
            },
        },
        ["workflow"],
    )),
    ("validate_workflow_connections", _td(
        "validate_workflow_connections",
        "Validate only the connections of an n8n workflow",
        {"workflow": _WORKFLOW},
        ["workflow"],
    )),
    ("validate_workflow_expressions", _td(
        "validate_workflow_expressions",
        "Validate only the {{ }} expressions of an n8n workflow",
        {"workflow": _WORKFLOW},
        ["workflow"],
    )),

    # ── DIFF (1) ──────────────────────────────────────────────────
    ("n8n_update_partial_workflow", _td(
        "n8n_update_partial_workflow",
        "Apply up to 5 diff operations to a workflow atomically. Operation types: "
        + ", ".join(_OPERATION_TYPES),
        {
            "workflow": _WORKFLOW,
            "operations": {
                "type": "array",
                "description": "Diff operations, e.g. {\"type\": \"addConnection\", \"source\": \"A\", \"target\": \"B\"}",
                "items": {"type": "object"},
            },
            "validate_only": _bool("Only report whether the operations would apply"),
        },
        ["workflow", "operations"],
    )),

    # ── AUTOFIX (1) ───────────────────────────────────────────────
    ("n8n_autofix_workflow", _td(
        "n8n_autofix_workflow",
        "Generate (and optionally apply) fixes for common workflow errors",
        {
            "workflow": _WORKFLOW,
            "apply_fixes": _bool("Apply the fixes instead of previewing them (default false)"),
            "confidence_threshold": {
                "type": "string",
                "enum": ["high", "medium", "low"],
                "description": "Minimum fix confidence (default medium)",
            },
            "fix_types": {
                "type": "array",
                "items": {
                    "type": "string",
                    "enum": [
                        "expression-format", "typeversion-correction",
                        "error-output-config", "node-type-correction",
                    ],
                },
                "description": "Restrict to these fix types",
            },
            "max_fixes": _int("Maximum number of fixes (default 50)"),
        },
        ["workflow"],
    )),

    # ── NODE CATALOG (2) ──────────────────────────────────────────
    ("get_node_info", _td(
        "get_node_info",
        "Get schema, versions and capabilities for an n8n node type",
        {"node_type": _str("Full node type, e.g. n8n-nodes-base.httpRequest")},
        ["node_type"],
    )),
    ("list_node_types", _td(
        "list_node_types",
        "List known n8n node types",
        {"capability": {
            "type": "string",
            "enum": ["trigger", "tool", "agent"],
            "description": "Only list node types with this capability",
        }},
    )),
]
