"""Graph structural validator.

Checks run in this order and only the top-level shape check short-circuits:

  1. shape          — done by parse_graph(); a MalformedGraph never reaches here
  2. per-node pass  — name, uniqueness, position, type, typeVersion, node-level
                      execution-policy fields
  3. connection pass — referential integrity, port legality (ai_tool), index
                      sanity, error-output consistency, misplaced error handlers
  4. whole graph    — empty / single-node / no-connection / no-trigger rules

Statistics are written into the ResultCollector while the passes run.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from n8n_dev_agent.config import AgentSettings
from n8n_dev_agent.knowledge.catalog import SHORT_PREFIXES, NodeTypeCatalog, NodeTypeDescriptor, full_type_name
from n8n_dev_agent.workflow.model import (
    AI_TOOL,
    CONTINUE_ERROR_OUTPUT,
    MAIN,
    ON_ERROR_VALUES,
    WorkflowGraph,
    has_main_output,
    slot_targets,
)
from n8n_dev_agent.workflow.result import (
    ADVISORY,
    RANGE,
    REFERENTIAL,
    SEMANTIC,
    STRUCTURAL,
    ResultCollector,
)

logger = logging.getLogger(__name__)

STICKY_NOTE_TYPE = "n8n-nodes-base.stickyNote"

# Properties that belong on the node itself; n8n ignores them inside parameters.
NODE_LEVEL_PROPERTIES: tuple[str, ...] = (
    "onError", "continueOnFail", "retryOnFail", "maxTries", "waitBetweenTries",
    "alwaysOutputData", "executeOnce", "disabled", "notes", "notesInFlow", "credentials",
)
_BOOLEAN_NODE_FIELDS: tuple[str, ...] = ("retryOnFail", "alwaysOutputData", "executeOnce", "disabled")

_MAX_TRIES_WARN = 10
_WAIT_BETWEEN_TRIES_WARN_MS = 300_000

_ERROR_HANDLER_NAME_HINTS: tuple[str, ...] = ("error", "fail", "catch", "exception")
_ERROR_HANDLER_TYPE_HINTS: tuple[str, ...] = ("respondtowebhook",)


def format_version(value: Any) -> Any:
    """2.0 → 2, 2.1 → 2.1 (n8n writes integral versions without a fraction)."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


@dataclass
class NodeIndex:
    """Name / id lookups built during the per-node pass."""

    by_name: dict[str, dict[str, Any]] = field(default_factory=dict)
    by_id: dict[str, dict[str, Any]] = field(default_factory=dict)
    descriptors: dict[str, NodeTypeDescriptor] = field(default_factory=dict)
    triggers: set[str] = field(default_factory=set)

    def is_disabled(self, name: str) -> bool:
        node = self.by_name.get(name)
        return bool(node and node.get("disabled") is True)


class StructuralValidator:
    """Profile-invariant structural rules for one workflow graph."""

    def __init__(self, catalog: NodeTypeCatalog, settings: AgentSettings | None = None) -> None:
        self._catalog = catalog
        self._settings = settings or AgentSettings()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def validate(
        self,
        graph: WorkflowGraph,
        collector: ResultCollector,
        check_nodes: bool = True,
        check_connections: bool = True,
    ) -> NodeIndex:
        index = self._check_nodes(graph, collector, check_nodes)
        if check_connections:
            connected = self._check_connections(graph, index, collector)
            self._check_error_outputs(graph, index, collector)
            self._check_orphans(graph, index, connected, collector)
        self._check_whole_graph(graph, index, collector)
        return index

    # ------------------------------------------------------------------
    # Per-node pass
    # ------------------------------------------------------------------

    def _check_nodes(self, graph: WorkflowGraph, collector: ResultCollector, check_types: bool) -> NodeIndex:
        index = NodeIndex()
        max_len = self._settings.node_name_max_length

        for position, node in enumerate(graph.nodes):
            collector.total_nodes += 1
            if not isinstance(node, dict):
                collector.error(
                    f"Node at index {position} must be an object, got {type(node).__name__}",
                    code="invalid_node",
                    category=STRUCTURAL,
                )
                continue

            if node.get("disabled") is not True:
                collector.enabled_nodes += 1

            name = node.get("name")
            if not isinstance(name, str) or not name.strip():
                collector.error(
                    f"Node at index {position} must have a non-empty string name",
                    code="missing_name",
                    category=STRUCTURAL,
                    node=node,
                )
            else:
                if len(name) > max_len:
                    collector.warning(
                        f'Node name "{name[:40]}…" is {len(name)} characters long (limit {max_len}). '
                        "Consider a shorter name.",
                        code="name_too_long",
                        category=ADVISORY,
                        node=node,
                    )
                if name in index.by_name:
                    collector.error(
                        f'Duplicate node name: "{name}"',
                        code="duplicate_name",
                        category=STRUCTURAL,
                        node=node,
                    )
                else:
                    index.by_name[name] = node

            node_id = node.get("id")
            if node_id is None or node_id == "":
                collector.warning(
                    "Node has no id. n8n assigns one on import, but diff operations cannot address it by id.",
                    code="missing_id",
                    category=ADVISORY,
                    node=node,
                )
            elif not isinstance(node_id, str):
                collector.error(
                    f"Node id must be a string, got {type(node_id).__name__}",
                    code="invalid_id",
                    category=STRUCTURAL,
                    node=node,
                )
            elif node_id in index.by_id:
                collector.error(
                    f'Duplicate node ID: "{node_id}"',
                    code="duplicate_id",
                    category=STRUCTURAL,
                    node=node,
                )
            else:
                index.by_id[node_id] = node

            self._check_position(node, collector)

            node_type = node.get("type")
            desc = self._catalog.lookup(node_type) if isinstance(node_type, str) else None
            if desc is not None and isinstance(name, str):
                index.descriptors[name] = desc
            if isinstance(name, str) and self._is_trigger(node_type, desc):
                index.triggers.add(name)
                if node.get("disabled") is not True:
                    collector.trigger_nodes += 1

            if check_types:
                self._check_type(node, desc, collector)
                if node.get("disabled") is not True:
                    self._check_node_policy(node, collector)

        return index

    def _is_trigger(self, node_type: Any, desc: NodeTypeDescriptor | None) -> bool:
        if desc is not None:
            return desc.is_trigger or desc.is_webhook
        if not isinstance(node_type, str):
            return False
        lowered = node_type.lower()
        return "trigger" in lowered or "webhook" in lowered

    def _check_position(self, node: dict[str, Any], collector: ResultCollector) -> None:
        pos = node.get("position")
        if (
            isinstance(pos, (list, tuple))
            and len(pos) == 2
            and all(_is_finite_number(v) for v in pos)
        ):
            return
        collector.error(
            f"Node position must be an array of two finite numbers [x, y], got {pos!r}",
            code="invalid_position",
            category=RANGE,
            node=node,
        )

    def _check_type(self, node: dict[str, Any], desc: NodeTypeDescriptor | None, collector: ResultCollector) -> None:
        node_type = node.get("type")
        if not isinstance(node_type, str) or not node_type:
            collector.error("Node is missing a type", code="missing_type", category=REFERENTIAL, node=node)
            return

        if any(node_type.startswith(short) for short in SHORT_PREFIXES):
            full = full_type_name(node_type)
            collector.error(
                f'Invalid node type: "{node_type}". Use "{full}" instead. '
                "Node types in workflows must use the full package name.",
                code="invalid_type_prefix",
                category=REFERENTIAL,
                node=node,
                details={"currentType": node_type, "suggestedType": full, "knownType": desc is not None},
            )
            return

        if desc is None:
            similar = self._catalog.suggest(node_type)
            hint = ""
            if len(similar) == 1:
                hint = f' Did you mean "{similar[0]}"?'
            elif similar:
                hint = " Did you mean: " + ", ".join(f'"{s}"' for s in similar) + "?"
            collector.error(
                f'Unknown node type: "{node_type}".{hint} Node types must include the package prefix '
                '(e.g., "n8n-nodes-base.webhook", not "webhook" or "nodes-base.webhook").',
                code="unknown_node_type",
                category=REFERENTIAL,
                node=node,
                details={"currentType": node_type, "suggestions": similar},
            )
            if similar:
                collector.suggest(f'Replace node type "{node_type}" with "{similar[0]}"')
            return

        self._check_type_version(node, desc, collector)

    def _check_type_version(self, node: dict[str, Any], desc: NodeTypeDescriptor, collector: ResultCollector) -> None:
        if not desc.is_versioned:
            return
        max_version = format_version(desc.max_version)
        version = node.get("typeVersion")

        if version is None:
            collector.error(
                f"Missing required property 'typeVersion'. Add typeVersion: {max_version}",
                code="missing_typeversion",
                category=RANGE,
                node=node,
                details={"maxVersion": max_version},
            )
            return
        if not _is_finite_number(version) or version <= 0:
            collector.error(
                f"Invalid typeVersion: {version!r}. Must be a positive number",
                code="invalid_typeversion",
                category=RANGE,
                node=node,
                details={"currentVersion": version, "maxVersion": max_version},
            )
            return
        if version > desc.max_version:
            collector.error(
                f"typeVersion {format_version(version)} exceeds maximum supported version {max_version} "
                f"for {desc.node_type}",
                code="typeversion_exceeds_max",
                category=RANGE,
                node=node,
                details={"currentVersion": format_version(version), "maxVersion": max_version},
            )
            return
        if float(version) not in desc.versions:
            declared = ", ".join(str(format_version(v)) for v in desc.versions)
            collector.warning(
                f"typeVersion {format_version(version)} is not a declared version of {desc.node_type} "
                f"(declared: {declared})",
                code="unknown_typeversion",
                category=RANGE,
                node=node,
                details={"currentVersion": format_version(version), "maxVersion": max_version},
            )
        elif version < desc.max_version:
            collector.warning(
                f"Outdated typeVersion: {format_version(version)}. Latest is {max_version}",
                code="outdated_typeversion",
                category=ADVISORY,
                node=node,
                details={"currentVersion": format_version(version), "maxVersion": max_version},
            )

    def _check_node_policy(self, node: dict[str, Any], collector: ResultCollector) -> None:
        """Node-level execution-policy fields (onError, retries, …)."""
        params = node.get("parameters")
        if isinstance(params, dict):
            misplaced = [p for p in NODE_LEVEL_PROPERTIES if p in params]
            if misplaced:
                collector.error(
                    f"Node-level properties {', '.join(misplaced)} are in the wrong location. "
                    "They must be at the node level, not inside parameters.",
                    code="misplaced_node_property",
                    category=STRUCTURAL,
                    node=node,
                    details={"properties": misplaced},
                )
        elif params is not None:
            collector.error(
                f"Node parameters must be an object, got {type(params).__name__}",
                code="invalid_parameters",
                category=STRUCTURAL,
                node=node,
            )

        on_error = node.get("onError")
        if on_error is not None and on_error not in ON_ERROR_VALUES:
            collector.error(
                f'Invalid onError value: "{on_error}". Must be one of: {", ".join(ON_ERROR_VALUES)}',
                code="invalid_on_error",
                category=SEMANTIC,
                node=node,
            )

        continue_on_fail = node.get("continueOnFail")
        if continue_on_fail is not None:
            if not isinstance(continue_on_fail, bool):
                collector.error(
                    "continueOnFail must be a boolean value",
                    code="invalid_node_property",
                    category=STRUCTURAL,
                    node=node,
                )
            elif continue_on_fail:
                collector.warning(
                    "Using deprecated \"continueOnFail: true\". Use \"onError: 'continueRegularOutput'\" "
                    "instead for better control and UI compatibility.",
                    code="deprecated_continue_on_fail",
                    category=ADVISORY,
                    node=node,
                )
            if on_error is not None:
                collector.error(
                    'Cannot use both "continueOnFail" and "onError" properties. '
                    'Use only "onError" for modern workflows.',
                    code="conflicting_error_handling",
                    category=SEMANTIC,
                    node=node,
                )

        for prop in _BOOLEAN_NODE_FIELDS:
            value = node.get(prop)
            if value is not None and not isinstance(value, bool):
                collector.error(
                    f"{prop} must be a boolean value",
                    code="invalid_node_property",
                    category=STRUCTURAL,
                    node=node,
                )

        max_tries = node.get("maxTries")
        if max_tries is not None:
            if not _is_number(max_tries) or max_tries < 1 or max_tries != int(max_tries):
                collector.error(
                    "maxTries must be a positive integer",
                    code="invalid_node_property",
                    category=RANGE,
                    node=node,
                )
            elif max_tries > _MAX_TRIES_WARN:
                collector.warning(
                    f"maxTries is set to {max_tries}. Consider if this many retries is necessary.",
                    code="excessive_retries",
                    category=ADVISORY,
                    node=node,
                )
        elif node.get("retryOnFail") is True:
            collector.warning(
                "retryOnFail is enabled but maxTries is not specified. Default is 3 attempts.",
                code="retry_default_tries",
                category=ADVISORY,
                node=node,
            )

        wait = node.get("waitBetweenTries")
        if wait is not None:
            if not _is_finite_number(wait) or wait < 0:
                collector.error(
                    "waitBetweenTries must be a non-negative number (milliseconds)",
                    code="invalid_node_property",
                    category=RANGE,
                    node=node,
                )
            elif wait > _WAIT_BETWEEN_TRIES_WARN_MS:
                collector.warning(
                    f"waitBetweenTries is set to {wait}ms ({wait / 1000:.1f}s). This seems excessive.",
                    code="excessive_wait",
                    category=ADVISORY,
                    node=node,
                )

    # ------------------------------------------------------------------
    # Connection pass
    # ------------------------------------------------------------------

    def _check_connections(self, graph: WorkflowGraph, index: NodeIndex, collector: ResultCollector) -> set[str]:
        connected: set[str] = set()

        for source, outputs in graph.connections.items():
            if source not in index.by_name:
                collector.invalid_connections += 1
                by_id = index.by_id.get(source)
                if by_id is not None and isinstance(by_id.get("name"), str):
                    collector.error(
                        f'Connection uses node ID "{source}" instead of node name "{by_id["name"]}". '
                        "In n8n, connections must use node names, not IDs.",
                        code="connection_uses_id",
                        category=REFERENTIAL,
                        node=by_id,
                    )
                else:
                    collector.error(
                        f'Connection from non-existent node: "{source}"',
                        code="unknown_connection_source",
                        category=REFERENTIAL,
                        node_name=str(source),
                    )
                continue

            source_node = index.by_name[source]
            if not isinstance(outputs, dict):
                collector.invalid_connections += 1
                collector.error(
                    f'Connections for "{source}" must be an object keyed by output type',
                    code="malformed_connection",
                    category=STRUCTURAL,
                    node=source_node,
                )
                continue

            for port_type, slots in outputs.items():
                if slots is None:
                    continue
                if not isinstance(slots, list):
                    collector.invalid_connections += 1
                    collector.error(
                        f'Connections "{source}".{port_type} must be an array of output slots',
                        code="malformed_connection",
                        category=STRUCTURAL,
                        node=source_node,
                    )
                    continue
                for output_index, slot in enumerate(slots):
                    if slot is not None and not isinstance(slot, list):
                        collector.invalid_connections += 1
                        collector.error(
                            f'Connections "{source}".{port_type}[{output_index}] must be an array of targets',
                            code="malformed_connection",
                            category=STRUCTURAL,
                            node=source_node,
                        )
                        continue
                    for target in slot_targets(slot):
                        if self._check_target(source, source_node, port_type, output_index, target, index, collector):
                            collector.valid_connections += 1
                            connected.add(source)
                            connected.add(target["node"])
                        else:
                            collector.invalid_connections += 1

        return connected

    def _check_target(
        self,
        source: str,
        source_node: dict[str, Any],
        port_type: str,
        output_index: int,
        target: Any,
        index: NodeIndex,
        collector: ResultCollector,
    ) -> bool:
        """Validate one connection entry. Returns True when it counts as valid."""
        where = f'"{source}".{port_type}[{output_index}]'
        if not isinstance(target, dict) or not isinstance(target.get("node"), str):
            collector.error(
                f"Malformed connection entry in {where}: expected {{node, type, index}}, got {target!r}",
                code="malformed_connection",
                category=STRUCTURAL,
                node=source_node,
            )
            return False

        name = target["node"]
        if name not in index.by_name:
            by_id = index.by_id.get(name)
            if by_id is not None and isinstance(by_id.get("name"), str):
                collector.error(
                    f'Connection target uses node ID "{name}" instead of node name "{by_id["name"]}" '
                    f"(from \"{source}\"). In n8n, connections must use node names, not IDs.",
                    code="connection_uses_id",
                    category=REFERENTIAL,
                    node=source_node,
                    details={"target": name, "suggestedTarget": by_id["name"]},
                )
            else:
                collector.error(
                    f'Connection to non-existent node: "{name}" from "{source}"',
                    code="unknown_connection_target",
                    category=REFERENTIAL,
                    node=source_node,
                    details={"source": source, "target": name, "outputType": port_type, "outputIndex": output_index},
                )
            return False

        raw_index = target.get("index")
        if raw_index is not None and not (
            _is_number(raw_index) and math.isfinite(raw_index) and raw_index >= 0 and raw_index == int(raw_index)
        ):
            collector.error(
                f'Invalid connection index {raw_index!r} in {where} → "{name}". '
                "Index must be a non-negative integer.",
                code="invalid_connection_index",
                category=STRUCTURAL,
                node=source_node,
            )
            return False

        target_type = target.get("type", port_type)
        if not isinstance(target_type, str):
            collector.error(
                f'Invalid connection type {target_type!r} in {where} → "{name}"',
                code="malformed_connection",
                category=STRUCTURAL,
                node=source_node,
            )
            return False

        if name == source:
            collector.warning(
                f'Node "{source}" is connected to itself (self-referencing connection)',
                code="self_reference",
                category=SEMANTIC,
                node=source_node,
            )

        if index.is_disabled(name):
            collector.warning(
                f'Connection to disabled node: "{name}" from "{source}"',
                code="connection_to_disabled",
                category=SEMANTIC,
                node=source_node,
            )

        if port_type == AI_TOOL:
            return self._check_ai_tool(source, source_node, name, index, collector)
        return True

    def _check_ai_tool(
        self,
        source: str,
        source_node: dict[str, Any],
        target: str,
        index: NodeIndex,
        collector: ResultCollector,
    ) -> bool:
        target_desc = index.descriptors.get(target)
        if target_desc is not None and not target_desc.is_agent:
            collector.error(
                f'ai_tool connection from "{source}" targets "{target}" ({target_desc.node_type}), '
                "which is not an AI agent node. Tools must connect to an agent.",
                code="invalid_ai_tool_target",
                category=SEMANTIC,
                node=source_node,
                details={"target": target, "targetType": target_desc.node_type},
            )
            return False
        source_desc = index.descriptors.get(source)
        if source_desc is not None and not source_desc.is_tool:
            collector.warning(
                f'Node "{source}" ({source_desc.node_type}) is connected as an AI tool '
                "but its type is not tool-capable",
                code="source_not_tool_capable",
                category=SEMANTIC,
                node=source_node,
            )
        return True

    # ------------------------------------------------------------------
    # Error outputs
    # ------------------------------------------------------------------

    def _check_error_outputs(self, graph: WorkflowGraph, index: NodeIndex, collector: ResultCollector) -> None:
        for name, node in index.by_name.items():
            has_error_output = has_main_output(graph.connections, name, 1)
            on_error = node.get("onError")
            desc = index.descriptors.get(name)
            branching = desc is not None and desc.outputs > 1

            if on_error == CONTINUE_ERROR_OUTPUT and not has_error_output:
                collector.error(
                    f"Node has onError: '{CONTINUE_ERROR_OUTPUT}' but no error output connections in main[1]. "
                    "Add error handler connections to main[1] or change onError to "
                    "'continueRegularOutput' or 'stopWorkflow'.",
                    code="error_output_missing",
                    category=SEMANTIC,
                    node=node,
                )
            elif has_error_output and on_error != CONTINUE_ERROR_OUTPUT and not branching:
                collector.warning(
                    f"Node has error output connections in main[1] but missing onError: "
                    f"'{CONTINUE_ERROR_OUTPUT}'. Add this property to properly handle errors.",
                    code="error_output_without_on_error",
                    category=SEMANTIC,
                    node=node,
                )

            if not branching and not has_error_output:
                self._check_misplaced_error_handlers(graph, name, node, index, collector)

    def _check_misplaced_error_handlers(
        self,
        graph: WorkflowGraph,
        name: str,
        node: dict[str, Any],
        index: NodeIndex,
        collector: ResultCollector,
    ) -> None:
        outputs = graph.connections.get(name)
        main = outputs.get(MAIN) if isinstance(outputs, dict) else None
        if not isinstance(main, list) or not main or not isinstance(main[0], list):
            return
        targets = [t for t in main[0] if isinstance(t, dict) and isinstance(t.get("node"), str)]
        if len(targets) < 2:
            return

        handlers = [t for t in targets if self._looks_like_error_handler(t["node"], index)]
        regular = [t for t in targets if t not in handlers]
        if not handlers or not regular:
            return

        handler_names = ", ".join(f'"{t["node"]}"' for t in handlers)
        incorrect = {name: {MAIN: [targets]}}
        correct = {name: {MAIN: [regular, handlers]}}
        collector.error(
            f"Incorrect error output configuration. Nodes {handler_names} appear to be error handlers "
            "but are in main[0] (success output) along with other nodes.\n\n"
            "INCORRECT (current):\n"
            f"{_dump(incorrect)}\n\n"
            "CORRECT (should be):\n"
            f"{_dump(correct)}\n"
            "(main[0] = success output, main[1] = error output)\n\n"
            f"Also set onError: '{CONTINUE_ERROR_OUTPUT}' on \"{name}\".",
            code="misplaced_error_handler",
            category=SEMANTIC,
            node=node,
            details={"errorHandlers": [t["node"] for t in handlers], "regularTargets": [t["node"] for t in regular]},
        )

    @staticmethod
    def _looks_like_error_handler(name: str, index: NodeIndex) -> bool:
        lowered = name.lower()
        if any(hint in lowered for hint in _ERROR_HANDLER_NAME_HINTS):
            return True
        target = index.by_name.get(name) or {}
        node_type = target.get("type")
        return isinstance(node_type, str) and any(h in node_type.lower() for h in _ERROR_HANDLER_TYPE_HINTS)

    # ------------------------------------------------------------------
    # Orphans + whole graph
    # ------------------------------------------------------------------

    def _check_orphans(
        self,
        graph: WorkflowGraph,
        index: NodeIndex,
        connected: set[str],
        collector: ResultCollector,
    ) -> None:
        for name, node in index.by_name.items():
            if node.get("disabled") is True or name in index.triggers or _is_sticky(node):
                continue
            if name not in connected:
                collector.warning(
                    "Node is not connected to any other nodes",
                    code="orphaned_node",
                    category=ADVISORY,
                    node=node,
                )

    def _check_whole_graph(self, graph: WorkflowGraph, index: NodeIndex, collector: ResultCollector) -> None:
        executable = [n for n in graph.iter_nodes() if not _is_sticky(n)]

        if not graph.nodes:
            collector.warning(
                "Workflow is empty: it has no nodes",
                code="empty_workflow",
                category=ADVISORY,
            )
            return

        if len(executable) == 1:
            only = executable[0]
            name = only.get("name")
            if not (isinstance(name, str) and name in index.triggers):
                collector.error(
                    "Single-node workflows are only valid for trigger or webhook nodes. "
                    "Add at least one more connected node to create a functional workflow.",
                    code="single_node_workflow",
                    category=STRUCTURAL,
                    node=only,
                )
            elif _declared_target_count(graph.connections) == 0:
                collector.warning(
                    "Trigger node has no connections. Consider adding nodes to process its data.",
                    code="trigger_without_connections",
                    category=ADVISORY,
                    node=only,
                )
        elif len(executable) > 1:
            has_enabled = any(n.get("disabled") is not True for n in executable)
            if has_enabled and _declared_target_count(graph.connections) == 0:
                collector.error(
                    "Multi-node workflow has no connections. Nodes must be connected to create a workflow. "
                    'Use connections: { "Source Node Name": { "main": [[{ "node": "Target Node Name", '
                    '"type": "main", "index": 0 }]] } }',
                    code="empty_connections",
                    category=STRUCTURAL,
                )

        if executable and not index.triggers and any(n.get("disabled") is not True for n in executable):
            collector.warning(
                "Workflow has no trigger nodes. It can only be executed manually.",
                code="no_trigger",
                category=ADVISORY,
            )


def _is_sticky(node: dict[str, Any]) -> bool:
    return node.get("type") == STICKY_NOTE_TYPE


def _declared_target_count(connections: dict[str, Any]) -> int:
    count = 0
    for outputs in connections.values():
        if not isinstance(outputs, dict):
            continue
        for slots in outputs.values():
            if not isinstance(slots, list):
                continue
            for slot in slots:
                if isinstance(slot, list):
                    count += len(slot)
    return count


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2)
