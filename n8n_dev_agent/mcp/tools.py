"""n8n workflow MCP tool surface.

Each method validates its arguments with a pydantic request model, calls the
synchronous workflow core and returns a ``ToolResult`` envelope. No business
logic beyond packaging the result; failures become ``ok=False`` envelopes and
never raise to the transport.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from n8n_dev_agent.config import AgentSettings
from n8n_dev_agent.knowledge import NodeTypeCatalog
from n8n_dev_agent.workflow import (
    AutoFixConfig,
    FixConfidence,
    FixType,
    ValidationOptions,
    WorkflowAutoFixer,
    WorkflowDiffEngine,
    WorkflowValidator,
)

logger = logging.getLogger("n8n_dev_agent.mcp.tools")


@dataclass
class ToolResult:
    """Normalized envelope for every tool execution result.

    ok:        True if the tool completed without error. A workflow that fails
               validation is still ok=True; the verdict lives in facts/data.
    summary:   Compact, one-line description for the calling model.
    facts:     Structured key→value highlights, e.g.
                 {"valid": False, "error_count": 2}
    data:      Full output (ValidationResult / DiffResult / AutoFixResult dict).
    error:     Present when ok=False. Dict with keys:
                 type:    Exception class name or error category.
                 message: Human-readable summary.
                 detail:  Original exception message or structured context.
    artifacts: Optional references produced by the tool (e.g. the fixed workflow).
    """

    ok: bool
    summary: str
    facts: dict
    data: Any
    error: dict | None
    artifacts: dict | None


def _ok(summary: str, data: Any, **facts: Any) -> ToolResult:
    return ToolResult(ok=True, summary=summary, facts=facts, data=data, error=None, artifacts=None)


def _fail(error_type: str, message: str, detail: Any = "", data: Any = None) -> ToolResult:
    return ToolResult(
        ok=False,
        summary=f"Failed: {message}",
        facts={},
        data=data,
        error={"type": error_type, "message": message, "detail": detail},
        artifacts=None,
    )


def _invalid_arguments(tool: str, exc: ValidationError) -> ToolResult:
    problems = [f"{'.'.join(str(p) for p in e['loc']) or '<root>'}: {e['msg']}" for e in exc.errors()]
    return _fail("ValidationError", f"Invalid arguments for {tool}", detail=problems)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ValidateRequest(BaseModel):
    workflow: dict[str, Any] | str = Field(..., description="Workflow JSON object or string.")
    options: dict[str, Any] | None = Field(
        None,
        description="validateNodes / validateConnections / validateExpressions / profile.",
    )


class DiffRequest(BaseModel):
    workflow: dict[str, Any] | str = Field(..., description="Workflow JSON object or string.")
    operations: list[dict[str, Any]] = Field(..., description="Diff operations, camelCase with a 'type' key.")
    validate_only: bool = Field(False, description="Apply to a scratch copy and only report the outcome.")


class AutofixRequest(BaseModel):
    workflow: dict[str, Any] | str = Field(..., description="Workflow JSON object or string.")
    apply_fixes: bool = Field(False, description="Apply the generated operations instead of previewing them.")
    confidence_threshold: Literal["high", "medium", "low"] | None = Field(
        None, description="Minimum confidence of fixes to include."
    )
    fix_types: list[FixType] | None = Field(None, description="Restrict to these fix types.")
    max_fixes: int | None = Field(None, ge=1, description="Cap on the number of fixes.")


class N8nMCPTools:
    """n8n workflow MCP tools returning ``ToolResult`` envelopes."""

    def __init__(
        self,
        catalog: NodeTypeCatalog | None = None,
        settings: AgentSettings | None = None,
    ) -> None:
        self._settings = settings or AgentSettings()
        self._catalog = catalog or NodeTypeCatalog.from_settings(self._settings)
        self._validator = WorkflowValidator(self._catalog, self._settings)
        self._engine = WorkflowDiffEngine(self._validator, self._settings)
        self._fixer = WorkflowAutoFixer(self._catalog, self._settings)

    # ==================================================================
    # VALIDATION
    # ==================================================================

    async def validate_workflow(self, workflow: Any = None, options: dict | None = None) -> ToolResult:
        try:
            req = ValidateRequest(workflow=workflow, options=options)
            opts = ValidationOptions.from_dict(req.options, self._settings.validation_profile)
        except ValidationError as exc:
            return _invalid_arguments("validate_workflow", exc)
        except ValueError as exc:
            return _fail("ValueError", str(exc))
        result = self._validator.validate(req.workflow, opts)
        return _ok(
            result.summary,
            result.to_dict(),
            valid=result.valid,
            error_count=len(result.errors),
            warning_count=len(result.warnings),
        )

    async def validate_workflow_connections(self, workflow: Any = None) -> ToolResult:
        try:
            req = ValidateRequest(workflow=workflow)
        except ValidationError as exc:
            return _invalid_arguments("validate_workflow_connections", exc)
        result = self._validator.validate_connections_only(req.workflow)
        stats = result.statistics
        return _ok(
            f"Connections {'valid' if result.valid else 'invalid'}: "
            f"{stats.valid_connections} valid, {stats.invalid_connections} invalid",
            result.to_dict(),
            valid=result.valid,
            error_count=len(result.errors),
        )

    async def validate_workflow_expressions(self, workflow: Any = None) -> ToolResult:
        try:
            req = ValidateRequest(workflow=workflow)
        except ValidationError as exc:
            return _invalid_arguments("validate_workflow_expressions", exc)
        result = self._validator.validate_expressions_only(req.workflow)
        return _ok(
            f"Expressions {'valid' if result.valid else 'invalid'}: "
            f"{result.statistics.expressions_validated} checked, {len(result.errors)} error(s)",
            result.to_dict(),
            valid=result.valid,
            expressions_validated=result.statistics.expressions_validated,
        )

    # ==================================================================
    # DIFF
    # ==================================================================

    async def n8n_update_partial_workflow(
        self,
        workflow: Any = None,
        operations: list | None = None,
        validate_only: bool = False,
    ) -> ToolResult:
        try:
            req = DiffRequest(workflow=workflow, operations=operations, validate_only=validate_only)
        except ValidationError as exc:
            return _invalid_arguments("n8n_update_partial_workflow", exc)

        result = self._engine.apply_operations(req.workflow, req.operations, validate_only=req.validate_only)
        if not result.success:
            first = result.errors[0]
            return _fail(first.kind, first.message, detail=first.to_dict(), data=result.to_dict())

        facts: dict[str, Any] = {"operations_applied": result.operations_applied}
        if result.validation_result is not None:
            facts["valid"] = result.validation_result.valid
        return _ok(result.message, result.to_dict(), **facts)

    # ==================================================================
    # AUTOFIX
    # ==================================================================

    async def n8n_autofix_workflow(
        self,
        workflow: Any = None,
        apply_fixes: bool = False,
        confidence_threshold: str | None = None,
        fix_types: list | None = None,
        max_fixes: int | None = None,
    ) -> ToolResult:
        try:
            req = AutofixRequest(
                workflow=workflow,
                apply_fixes=apply_fixes,
                confidence_threshold=confidence_threshold,
                fix_types=fix_types,
                max_fixes=max_fixes,
            )
        except ValidationError as exc:
            return _invalid_arguments("n8n_autofix_workflow", exc)

        config = self._fixer.default_config()
        if req.confidence_threshold is not None:
            config.confidence_threshold = FixConfidence(req.confidence_threshold)
        if req.fix_types:
            config.fix_types = list(req.fix_types)
        if req.max_fixes is not None:
            config.max_fixes = req.max_fixes

        validation = self._validator.validate(req.workflow)
        findings = self._validator.expression_findings(req.workflow)
        fixes = self._fixer.generate_fixes(req.workflow, validation, findings, config)
        data: dict[str, Any] = fixes.to_dict()

        if not req.apply_fixes or not fixes.operations:
            return _ok(fixes.summary, data, fix_count=len(fixes.fixes), applied=False)

        applied = self._engine.apply_in_batches(req.workflow, fixes.operations)
        data["diff"] = applied.to_dict()
        if not applied.success:
            first = applied.errors[0]
            return _fail(first.kind, f"Fixes could not be applied: {first.message}", detail=first.to_dict(), data=data)

        result = _ok(f"Applied: {fixes.summary}", data, fix_count=len(fixes.fixes), applied=True)
        result.artifacts = {"workflow": applied.workflow}
        return result

    # ==================================================================
    # NODE CATALOG
    # ==================================================================

    async def get_node_info(self, node_type: str = "") -> ToolResult:
        desc = self._catalog.lookup(node_type)
        if desc is None:
            suggestions = self._catalog.suggest(node_type)
            return _fail(
                "UnknownNodeType",
                f"Unknown node type: {node_type!r}",
                detail={"suggestions": suggestions},
            )
        return _ok(f"Node type {desc.node_type} (max typeVersion {desc.max_version})", desc.to_dict())

    async def list_node_types(self, capability: str | None = None) -> ToolResult:
        checks = {
            "trigger": self._catalog.is_trigger_capable,
            "tool": self._catalog.is_tool_capable,
            "agent": self._catalog.is_agent_capable,
        }
        if capability is not None and capability not in checks:
            return _fail("ValueError", f"Unknown capability {capability!r}. Valid: {sorted(checks)}")
        types = self._catalog.node_types()
        if capability is not None:
            types = [t for t in types if checks[capability](t)]
        rows = []
        for node_type in types:
            desc = self._catalog.lookup(node_type)
            rows.append({"nodeType": node_type, "displayName": desc.display_name, "maxVersion": desc.max_version})
        label = f"{capability} " if capability else ""
        return _ok(f"Listed {len(rows)} {label}node types", rows, count=len(rows))
