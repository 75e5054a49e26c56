"""ValidationResult value types and the collector that builds them.

ValidationResult is created fresh per validation call and never mutated after
it is returned (frozen dataclasses, tuples). Validators write into a
ResultCollector, which accumulates statistics as it goes so the whole run stays
linear in node + connection count, then freezes it with build().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Issue categories (error taxonomy)
STRUCTURAL = "structural"
REFERENTIAL = "referential"
SEMANTIC = "semantic"
RANGE = "range"
SYNTACTIC = "syntactic"
ADVISORY = "advisory"
CONFIGURATION = "configuration"

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    """One error or warning.

    code:     stable machine-readable identifier (e.g. "typeversion_exceeds_max").
              The auto-fixer keys on this, never on message text.
    category: one of the taxonomy constants above.
    details:  optional structured data (e.g. {"currentVersion": 3.5, "maxVersion": 2}).
    """

    severity: str
    message: str
    code: str = ""
    category: str = STRUCTURAL
    node_id: str | None = None
    node_name: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.severity, "message": self.message, "code": self.code, "category": self.category}
        if self.node_id is not None:
            out["nodeId"] = self.node_id
        if self.node_name is not None:
            out["nodeName"] = self.node_name
        if self.details is not None:
            out["details"] = self.details
        return out


@dataclass(frozen=True)
class ValidationStatistics:
    total_nodes: int = 0
    enabled_nodes: int = 0
    trigger_nodes: int = 0
    valid_connections: int = 0
    invalid_connections: int = 0
    expressions_validated: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "totalNodes": self.total_nodes,
            "enabledNodes": self.enabled_nodes,
            "triggerNodes": self.trigger_nodes,
            "validConnections": self.valid_connections,
            "invalidConnections": self.invalid_connections,
            "expressionsValidated": self.expressions_validated,
        }


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[ValidationIssue, ...] = ()
    statistics: ValidationStatistics = field(default_factory=ValidationStatistics)
    suggestions: tuple[str, ...] = ()

    def errors_with_code(self, code: str) -> list[ValidationIssue]:
        return [e for e in self.errors if e.code == code]

    def warnings_with_code(self, code: str) -> list[ValidationIssue]:
        return [w for w in self.warnings if w.code == code]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "statistics": self.statistics.to_dict(),
            "suggestions": list(self.suggestions),
        }

    @property
    def summary(self) -> str:
        state = "valid" if self.valid else "invalid"
        return (
            f"Workflow is {state}: {len(self.errors)} error(s), {len(self.warnings)} warning(s), "
            f"{self.statistics.total_nodes} node(s), {self.statistics.valid_connections} valid connection(s)"
        )


class ResultCollector:
    """Mutable accumulator used while a validation call is in flight."""

    def __init__(self) -> None:
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []
        self.suggestions: list[str] = []
        self.total_nodes = 0
        self.enabled_nodes = 0
        self.trigger_nodes = 0
        self.valid_connections = 0
        self.invalid_connections = 0
        self.expressions_validated = 0

    def error(
        self,
        message: str,
        code: str,
        category: str = STRUCTURAL,
        node: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
        node_id: str | None = None,
        node_name: str | None = None,
    ) -> None:
        self.errors.append(self._issue(ERROR, message, code, category, node, details, node_id, node_name))

    def warning(
        self,
        message: str,
        code: str,
        category: str = ADVISORY,
        node: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
        node_id: str | None = None,
        node_name: str | None = None,
    ) -> None:
        self.warnings.append(self._issue(WARNING, message, code, category, node, details, node_id, node_name))

    def suggest(self, text: str) -> None:
        if text not in self.suggestions:
            self.suggestions.append(text)

    @staticmethod
    def _issue(severity, message, code, category, node, details, node_id, node_name) -> ValidationIssue:
        if node is not None:
            raw_id = node.get("id")
            raw_name = node.get("name")
            if node_id is None and isinstance(raw_id, str):
                node_id = raw_id
            if node_name is None and isinstance(raw_name, str):
                node_name = raw_name
        return ValidationIssue(
            severity=severity,
            message=message,
            code=code,
            category=category,
            node_id=node_id,
            node_name=node_name,
            details=details,
        )

    def build(self) -> ValidationResult:
        return ValidationResult(
            valid=not self.errors,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            statistics=ValidationStatistics(
                total_nodes=self.total_nodes,
                enabled_nodes=self.enabled_nodes,
                trigger_nodes=self.trigger_nodes,
                valid_connections=self.valid_connections,
                invalid_connections=self.invalid_connections,
                expressions_validated=self.expressions_validated,
            ),
            suggestions=tuple(self.suggestions),
        )


def structural_failure(reason: str) -> ValidationResult:
    """Single fatal error result for input that is not a graph."""
    collector = ResultCollector()
    collector.error(f"Invalid workflow structure: {reason}", code="invalid_structure", category=STRUCTURAL)
    return collector.build()
