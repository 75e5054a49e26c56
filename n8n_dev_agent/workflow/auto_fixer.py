"""Auto-fixer: turns validation findings into updateNode diff operations.

Fixes are keyed on ValidationIssue.code, never on message text.

  expression-format       high    add the missing "=" prefix (exact leaf paths)
  node-type-correction    high    expand a short prefix (nodes-base.x)
                          low     replace an unknown type with its closest match
  typeversion-correction  medium  clamp or fill typeVersion with the catalog max
  error-output-config     medium  drop onError when main[1] has no connections

Misplaced error handlers are reported by the validator and deliberately left
alone: moving connections between outputs changes what the workflow does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from n8n_dev_agent.config import AgentSettings
from n8n_dev_agent.knowledge.catalog import NodeTypeCatalog
from n8n_dev_agent.workflow.diff_ops import DiffOp, UpdateNode, op_to_dict
from n8n_dev_agent.workflow.expression import ExpressionFormatIssue
from n8n_dev_agent.workflow.model import MalformedGraph, parse_graph
from n8n_dev_agent.workflow.result import ValidationIssue, ValidationResult
from n8n_dev_agent.workflow.structural import format_version

logger = logging.getLogger(__name__)


class FixConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {FixConfidence.HIGH: 3, FixConfidence.MEDIUM: 2, FixConfidence.LOW: 1}


class FixType(str, Enum):
    EXPRESSION_FORMAT = "expression-format"
    TYPEVERSION_CORRECTION = "typeversion-correction"
    ERROR_OUTPUT_CONFIG = "error-output-config"
    NODE_TYPE_CORRECTION = "node-type-correction"


_SUMMARY_LABELS = {
    FixType.EXPRESSION_FORMAT: "expression format",
    FixType.TYPEVERSION_CORRECTION: "typeVersion",
    FixType.ERROR_OUTPUT_CONFIG: "error output",
    FixType.NODE_TYPE_CORRECTION: "node type",
}

# Sentinel for "delete this field" in FixSuggestion.after
REMOVE = None


@dataclass(frozen=True)
class FixSuggestion:
    """One proposed change to one node field.

    field: path on the node object, e.g. "parameters.url" or "typeVersion".
    after: the new value, or None to remove the field.
    issue: the ValidationIssue or ExpressionFormatIssue the fix answers.
    operations: diff ops that apply this fix on its own.
    """

    node_name: str
    field: str
    type: FixType
    before: Any
    after: Any
    confidence: FixConfidence
    description: str
    node_id: str | None = None
    issue: ValidationIssue | ExpressionFormatIssue | None = field(default=None, compare=False)
    operations: tuple[DiffOp, ...] = field(default=(), compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": self.node_name,
            "nodeId": self.node_id,
            "field": self.field,
            "type": self.type.value,
            "before": self.before,
            "after": self.after,
            "confidence": self.confidence.value,
            "description": self.description,
            "issue": self.issue.to_dict() if self.issue is not None else None,
            "operations": [op_to_dict(op) for op in self.operations],
        }


@dataclass
class AutoFixConfig:
    confidence_threshold: FixConfidence = FixConfidence.MEDIUM
    fix_types: list[FixType] | None = None
    max_fixes: int = 50

    @classmethod
    def from_settings(cls, settings: AgentSettings) -> AutoFixConfig:
        return cls(
            confidence_threshold=FixConfidence(settings.autofix_confidence),
            max_fixes=settings.autofix_max_fixes,
        )


@dataclass
class AutoFixResult:
    fixes: list[FixSuggestion] = field(default_factory=list)
    operations: list[DiffOp] = field(default_factory=list)
    summary: str = "No fixes available"
    stats: dict[str, Any] = field(default_factory=lambda: {"total": 0, "by_type": {}, "by_confidence": {}})

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "fixes": [f.to_dict() for f in self.fixes],
            "operations": [op_to_dict(op) for op in self.operations],
            "stats": {
                "total": self.stats["total"],
                "byType": self.stats["by_type"],
                "byConfidence": self.stats["by_confidence"],
            },
        }


class WorkflowAutoFixer:
    """Generates fix suggestions and updateNode operations for a workflow."""

    def __init__(self, catalog: NodeTypeCatalog, settings: AgentSettings | None = None) -> None:
        self._catalog = catalog
        self._settings = settings or AgentSettings()

    def default_config(self) -> AutoFixConfig:
        return AutoFixConfig.from_settings(self._settings)

    def generate_fixes(
        self,
        graph: Any,
        validation_result: ValidationResult | None,
        expression_findings: list[ExpressionFormatIssue] | None = None,
        config: AutoFixConfig | None = None,
    ) -> AutoFixResult:
        config = config or self.default_config()
        parsed = parse_graph(graph)
        if isinstance(parsed, MalformedGraph):
            logger.debug("[AutoFixer] Nothing to fix in malformed input: %s", parsed.reason)
            return AutoFixResult()

        nodes_by_name = {n["name"]: n for n in parsed.iter_nodes() if isinstance(n.get("name"), str)}
        candidates: list[FixSuggestion] = []

        for finding in expression_findings or []:
            fix = self._expression_fix(finding, nodes_by_name)
            if fix is not None:
                candidates.append(_with_source(fix, finding))

        issues: list[ValidationIssue] = []
        if validation_result is not None:
            issues = list(validation_result.errors) + list(validation_result.warnings)
        for issue in issues:
            node = nodes_by_name.get(issue.node_name) if issue.node_name else None
            if node is None:
                continue
            fix = self._issue_fix(issue, node)
            if fix is not None:
                candidates.append(_with_source(fix, issue))

        fixes = self._filter(candidates, config)
        result = AutoFixResult(
            fixes=fixes,
            operations=self._operations(fixes),
            summary=self._summary(fixes),
            stats=self._stats(fixes),
        )
        logger.info("[AutoFixer] %s", result.summary)
        return result

    # ------------------------------------------------------------------
    # Per-finding fixes
    # ------------------------------------------------------------------

    @staticmethod
    def _expression_fix(
        finding: ExpressionFormatIssue, nodes_by_name: dict[str, dict[str, Any]]
    ) -> FixSuggestion | None:
        if not finding.fixable or not finding.field_path or finding.node_name not in nodes_by_name:
            return None
        return FixSuggestion(
            node_name=finding.node_name,
            node_id=finding.node_id,
            field=_parameter_field(finding.field_path),
            type=FixType.EXPRESSION_FORMAT,
            before=finding.current_value,
            after=finding.corrected_value,
            confidence=FixConfidence.HIGH,
            description=finding.explanation,
        )

    def _issue_fix(self, issue: ValidationIssue, node: dict[str, Any]) -> FixSuggestion | None:
        details = issue.details or {}
        name = node["name"]
        node_id = node.get("id") if isinstance(node.get("id"), str) else None

        if issue.code in ("typeversion_exceeds_max", "missing_typeversion"):
            max_version = details.get("maxVersion")
            if max_version is None:
                desc = self._catalog.lookup(node.get("type"))
                if desc is None:
                    return None
                max_version = format_version(desc.max_version)
            before = node.get("typeVersion")
            verb = "Missing typeVersion" if before is None else f"typeVersion {before} exceeds maximum"
            return FixSuggestion(
                node_name=name,
                node_id=node_id,
                field="typeVersion",
                type=FixType.TYPEVERSION_CORRECTION,
                before=before,
                after=max_version,
                confidence=FixConfidence.MEDIUM,
                description=f"{verb}; set to {max_version}",
            )

        if issue.code == "error_output_missing":
            return FixSuggestion(
                node_name=name,
                node_id=node_id,
                field="onError",
                type=FixType.ERROR_OUTPUT_CONFIG,
                before=node.get("onError"),
                after=REMOVE,
                confidence=FixConfidence.MEDIUM,
                description="Remove onError: 'continueErrorOutput' because main[1] has no error connections",
            )

        if issue.code == "invalid_type_prefix" and details.get("suggestedType"):
            return FixSuggestion(
                node_name=name,
                node_id=node_id,
                field="type",
                type=FixType.NODE_TYPE_CORRECTION,
                before=node.get("type"),
                after=details["suggestedType"],
                confidence=FixConfidence.HIGH,
                description=f"Use the full package name \"{details['suggestedType']}\"",
            )

        if issue.code == "unknown_node_type" and details.get("suggestions"):
            suggested = details["suggestions"][0]
            return FixSuggestion(
                node_name=name,
                node_id=node_id,
                field="type",
                type=FixType.NODE_TYPE_CORRECTION,
                before=node.get("type"),
                after=suggested,
                confidence=FixConfidence.LOW,
                description=f"Unknown node type; closest known type is \"{suggested}\"",
            )

        return None

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    @staticmethod
    def _filter(candidates: list[FixSuggestion], config: AutoFixConfig) -> list[FixSuggestion]:
        threshold = FixConfidence(config.confidence_threshold).rank
        allowed = {FixType(t) for t in config.fix_types} if config.fix_types else None
        seen: set[tuple[str, str]] = set()
        fixes: list[FixSuggestion] = []
        for fix in candidates:
            key = (fix.node_name, fix.field)
            if key in seen:
                continue
            if fix.confidence.rank < threshold:
                continue
            if allowed is not None and fix.type not in allowed:
                continue
            seen.add(key)
            fixes.append(fix)
        return fixes[: max(0, config.max_fixes)]

    @staticmethod
    def _operations(fixes: list[FixSuggestion]) -> list[DiffOp]:
        """One updateNode per node, in first-fix order."""
        by_node: dict[str, UpdateNode] = {}
        for fix in fixes:
            op = by_node.get(fix.node_name)
            if op is None:
                op = by_node[fix.node_name] = UpdateNode(
                    node_name=fix.node_name,
                    description=f"Auto-fix {fix.node_name}",
                )
            _add_change(op, fix)
        return list(by_node.values())

    @staticmethod
    def _summary(fixes: list[FixSuggestion]) -> str:
        if not fixes:
            return "No fixes available"
        counts: dict[FixType, int] = {}
        for fix in fixes:
            counts[fix.type] = counts.get(fix.type, 0) + 1
        parts = [f"{n} {_SUMMARY_LABELS[t]} {'fix' if n == 1 else 'fixes'}" for t, n in counts.items()]
        return f"Found {len(fixes)} fix{'' if len(fixes) == 1 else 'es'}: " + ", ".join(parts)

    @staticmethod
    def _stats(fixes: list[FixSuggestion]) -> dict[str, Any]:
        by_type: dict[str, int] = {}
        by_confidence: dict[str, int] = {}
        for fix in fixes:
            by_type[fix.type.value] = by_type.get(fix.type.value, 0) + 1
            by_confidence[fix.confidence.value] = by_confidence.get(fix.confidence.value, 0) + 1
        return {"total": len(fixes), "by_type": by_type, "by_confidence": by_confidence}


def _parameter_field(field_path: str) -> str:
    # Quoted keys already carry their own bracket
    return f"parameters{field_path}" if field_path.startswith("[") else f"parameters.{field_path}"


def _add_change(op: UpdateNode, fix: FixSuggestion) -> None:
    if fix.after is REMOVE:
        op.remove.append(fix.field)
    else:
        op.changes[fix.field] = fix.after


def _with_source(fix: FixSuggestion, source: ValidationIssue | ExpressionFormatIssue) -> FixSuggestion:
    """Attach the originating finding and a standalone updateNode for the fix."""
    op = UpdateNode(node_name=fix.node_name, description=fix.description)
    _add_change(op, fix)
    return replace(fix, issue=source, operations=(op,))
