"""Workflow validator — composes the structural, node-configuration and
expression checks into one ValidationResult.

Usage:
    validator = WorkflowValidator(NodeTypeCatalog())
    result = validator.validate(workflow_json)
    result = validator.validate(workflow_json, ValidationOptions(profile=ValidationProfile.STRICT))

The validator never raises for malformed input data. Anything that is not a
graph, and any unexpected failure while checking one, becomes a single
"Invalid workflow structure" error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from n8n_dev_agent.config import AgentSettings
from n8n_dev_agent.knowledge.catalog import NodeTypeCatalog
from n8n_dev_agent.workflow.expression import (
    ExpressionFormatIssue,
    check_leaf,
    find_expression_format_issues,
    iter_parameter_leaves,
    referenced_nodes,
)
from n8n_dev_agent.workflow.model import MalformedGraph, WorkflowGraph, parse_graph
from n8n_dev_agent.workflow.node_config import NodeConfigValidator, ValidationProfile
from n8n_dev_agent.workflow.result import (
    REFERENTIAL,
    SYNTACTIC,
    ResultCollector,
    ValidationResult,
    structural_failure,
)
from n8n_dev_agent.workflow.structural import NodeIndex, StructuralValidator

logger = logging.getLogger(__name__)

_CONNECTION_EXAMPLE = (
    'Example connection structure: { "Source Node": { "main": [[{ "node": "Target Node", '
    '"type": "main", "index": 0 }]] } }. Connections are keyed by node name, not id.'
)
_CONNECTION_ERROR_CODES = frozenset({
    "unknown_connection_source", "unknown_connection_target", "connection_uses_id",
    "empty_connections", "malformed_connection",
})
_EXPRESSION_ISSUE_CODES = {
    "missing-prefix": "expression_missing_prefix",
    "mixed-format": "expression_syntax",
}


@dataclass
class ValidationOptions:
    """Selects which dimensions run and the node-configuration profile.

    A disabled dimension reports zero in its statistics rather than being
    omitted from the result.
    """

    validate_nodes: bool = True
    validate_connections: bool = True
    validate_expressions: bool = True
    profile: ValidationProfile = ValidationProfile.RUNTIME

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None, default_profile: str = "runtime") -> ValidationOptions:
        """Accept snake_case or camelCase keys (MCP clients send camelCase)."""
        raw = raw or {}

        def _get(snake: str, camel: str, default: bool) -> bool:
            value = raw.get(snake, raw.get(camel, default))
            return bool(default if value is None else value)

        return cls(
            validate_nodes=_get("validate_nodes", "validateNodes", True),
            validate_connections=_get("validate_connections", "validateConnections", True),
            validate_expressions=_get("validate_expressions", "validateExpressions", True),
            profile=ValidationProfile(str(raw.get("profile") or default_profile).lower()),
        )


class WorkflowValidator:
    """Aggregating validator over an injected, read-only NodeTypeCatalog."""

    def __init__(self, catalog: NodeTypeCatalog, settings: AgentSettings | None = None) -> None:
        self._catalog = catalog
        self._settings = settings or AgentSettings()
        self._structural = StructuralValidator(catalog, self._settings)
        self._node_config = NodeConfigValidator()

    @property
    def catalog(self) -> NodeTypeCatalog:
        return self._catalog

    def default_options(self) -> ValidationOptions:
        return ValidationOptions(profile=ValidationProfile(self._settings.validation_profile))

    # ------------------------------------------------------------------
    # Validation API
    # ------------------------------------------------------------------

    def validate(self, graph: Any, options: ValidationOptions | None = None) -> ValidationResult:
        options = options or self.default_options()
        parsed = parse_graph(graph)
        if isinstance(parsed, MalformedGraph):
            logger.debug("[WorkflowValidator] Rejected malformed input: %s", parsed.reason)
            return structural_failure(parsed.reason)

        collector = ResultCollector()
        try:
            index = self._structural.validate(
                parsed,
                collector,
                check_nodes=options.validate_nodes,
                check_connections=options.validate_connections,
            )
            if options.validate_nodes:
                self._validate_node_configs(parsed, index, collector, options.profile)
            if options.validate_expressions:
                self._validate_expressions(parsed, index, collector)
            self._add_suggestions(collector)
        except Exception as exc:
            logger.exception("[WorkflowValidator] Validation failed unexpectedly")
            return structural_failure(f"{type(exc).__name__}: {exc}")

        result = collector.build()
        logger.debug("[WorkflowValidator] %s", result.summary)
        return result

    def validate_connections_only(self, graph: Any) -> ValidationResult:
        return self.validate(
            graph,
            ValidationOptions(validate_nodes=False, validate_connections=True, validate_expressions=False),
        )

    def validate_expressions_only(self, graph: Any) -> ValidationResult:
        return self.validate(
            graph,
            ValidationOptions(validate_nodes=False, validate_connections=False, validate_expressions=True),
        )

    def expression_findings(self, graph: Any) -> list[ExpressionFormatIssue]:
        """Expression-format issues for every enabled node, for the auto-fixer."""
        parsed = parse_graph(graph)
        if isinstance(parsed, MalformedGraph):
            return []
        findings: list[ExpressionFormatIssue] = []
        for node in parsed.iter_nodes():
            if node.get("disabled") is True or not isinstance(node.get("name"), str):
                continue
            node_id = node.get("id") if isinstance(node.get("id"), str) else None
            findings.extend(find_expression_format_issues(node.get("parameters") or {}, node["name"], node_id))
        return findings

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    def _validate_node_configs(
        self,
        graph: WorkflowGraph,
        index: NodeIndex,
        collector: ResultCollector,
        profile: ValidationProfile,
    ) -> None:
        for name, node in index.by_name.items():
            if node.get("disabled") is True:
                continue
            desc = index.descriptors.get(name)
            if desc is None:
                continue
            self._node_config.validate(node, desc, collector, profile)

    def _validate_expressions(self, graph: WorkflowGraph, index: NodeIndex, collector: ResultCollector) -> None:
        known = set(index.by_name)
        for node in graph.iter_nodes():
            name = node.get("name")
            if node.get("disabled") is True or not isinstance(name, str):
                continue
            params = node.get("parameters")
            if not isinstance(params, (dict, list)):
                continue
            for leaf in iter_parameter_leaves(params):
                text = leaf.value.get("value") if leaf.kind == "resource-locator" else leaf.value
                if leaf.kind != "too-deep" and not (isinstance(text, str) and ("{{" in text or "}}" in text)):
                    continue
                collector.expressions_validated += 1

                issue = check_leaf(leaf, name)
                if issue is not None:
                    report = collector.error if issue.severity == "error" else collector.warning
                    report(
                        f"Expression format {issue.severity} in field '{issue.field_path}': {issue.explanation}",
                        code=_EXPRESSION_ISSUE_CODES.get(issue.issue_type, "expression_syntax"),
                        category=SYNTACTIC,
                        node=node,
                        details=issue.to_dict(),
                    )

                for ref in referenced_nodes(text):
                    if ref not in known:
                        collector.error(
                            f"Expression in field '{leaf.path}' references non-existent node \"{ref}\"",
                            code="expression_unknown_node",
                            category=REFERENTIAL,
                            node=node,
                            details={"fieldPath": leaf.path, "reference": ref},
                        )

    @staticmethod
    def _add_suggestions(collector: ResultCollector) -> None:
        codes = {e.code for e in collector.errors} | {w.code for w in collector.warnings}
        if codes & _CONNECTION_ERROR_CODES:
            collector.suggest(_CONNECTION_EXAMPLE)
        if "no_trigger" in codes:
            collector.suggest(
                "Add a trigger node (e.g. n8n-nodes-base.manualTrigger, n8n-nodes-base.webhook or "
                "n8n-nodes-base.scheduleTrigger) so the workflow can start on its own"
            )
        if codes & {"error_output_missing", "misplaced_error_handler", "error_output_without_on_error"}:
            collector.suggest(
                "Error outputs: connect error handlers to main[1] and set onError: 'continueErrorOutput' "
                "on the source node (main[0] = success output, main[1] = error output)"
            )
        if codes & {"expression_missing_prefix", "expression_syntax"}:
            collector.suggest('Expressions must start with "=" to be evaluated, e.g. "={{ $json.field }}"')
        if codes & {"typeversion_exceeds_max", "missing_typeversion"}:
            collector.suggest("Use a typeVersion the node type declares; autofix can set it to the latest supported")
