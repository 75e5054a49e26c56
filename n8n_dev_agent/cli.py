"""Command-line client for the n8n workflow validator, diff engine and auto-fixer.

Works on workflow JSON files exported from n8n (or produced by an agent);
no running n8n instance is needed.

Usage:
    n8n-dev-agent validate workflow.json
    n8n-dev-agent validate workflow.json --profile strict --json
    n8n-dev-agent diff workflow.json ops.json --output updated.json
    n8n-dev-agent autofix workflow.json --threshold high --apply --output fixed.json
    n8n-dev-agent node n8n-nodes-base.httpRequest

Exit status is 1 when the workflow is invalid, a diff is rejected or the
input cannot be read.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from argparse import ArgumentParser
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from n8n_dev_agent.config import AgentSettings
from n8n_dev_agent.knowledge import NodeTypeCatalog
from n8n_dev_agent.workflow import (
    AutoFixConfig,
    FixConfidence,
    ValidationOptions,
    ValidationProfile,
    ValidationResult,
    WorkflowAutoFixer,
    WorkflowDiffEngine,
    WorkflowValidator,
)


class CLIError(Exception):
    """Unreadable input; reported on stderr with exit status 1."""


# ---------------------------------------------------------------------------
# I/O helpers
# ---------------------------------------------------------------------------


def _load_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"Cannot read {path}: {exc.strerror or exc}") from exc
    except json.JSONDecodeError as exc:
        raise CLIError(f"{path} is not valid JSON: {exc}") from exc


def _write_json(data: Any, output: str | None) -> None:
    text = json.dumps(data, indent=2, default=str)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        print(f"Wrote {output}")
    else:
        print(text)


def _print_result(result: ValidationResult) -> None:
    print(result.summary)
    for issue in result.errors:
        where = f" [{issue.node_name}]" if issue.node_name else ""
        print(f"  ERROR {issue.code}{where}: {issue.message}")
    for issue in result.warnings:
        where = f" [{issue.node_name}]" if issue.node_name else ""
        print(f"  WARN  {issue.code}{where}: {issue.message}")
    for suggestion in result.suggestions:
        print(f"  hint: {suggestion}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_validate(args, validator: WorkflowValidator) -> int:
    workflow = _load_json(args.file)
    options = ValidationOptions(profile=ValidationProfile(args.profile)) if args.profile else None
    result = validator.validate(workflow, options)
    if args.json:
        _write_json(result.to_dict(), None)
    else:
        _print_result(result)
    return 0 if result.valid else 1


def _cmd_diff(args, engine: WorkflowDiffEngine) -> int:
    workflow = _load_json(args.file)
    operations = _load_json(args.ops_file)
    if isinstance(operations, dict) and "operations" in operations:
        operations = operations["operations"]

    result = engine.apply_operations(workflow, operations, validate_only=args.validate_only)
    if not result.success:
        for err in result.errors:
            op = f"operation {err.operation}" if err.operation is not None else "batch"
            print(f"REJECTED ({err.kind}, {op}): {err.message}", file=sys.stderr)
        return 1

    print(result.message)
    for line in result.changes:
        print(f"  {line}")
    if result.validation_result is not None and not result.validation_result.valid:
        _print_result(result.validation_result)
    if args.output and not args.validate_only:
        _write_json(result.workflow, args.output)
    return 0


def _cmd_autofix(args, validator: WorkflowValidator, engine: WorkflowDiffEngine, fixer: WorkflowAutoFixer) -> int:
    workflow = _load_json(args.file)
    config: AutoFixConfig = fixer.default_config()
    if args.threshold:
        config.confidence_threshold = FixConfidence(args.threshold)

    validation = validator.validate(workflow)
    fixes = fixer.generate_fixes(workflow, validation, validator.expression_findings(workflow), config)
    print(fixes.summary)
    for fix in fixes.fixes:
        print(f"  [{fix.confidence.value}] {fix.node_name}.{fix.field}: {fix.before!r} -> {fix.after!r}")

    if not args.apply or not fixes.operations:
        return 0

    applied = engine.apply_in_batches(workflow, fixes.operations)
    if not applied.success:
        for err in applied.errors:
            print(f"REJECTED ({err.kind}): {err.message}", file=sys.stderr)
        return 1
    if applied.validation_result is not None:
        print(applied.validation_result.summary)
    _write_json(applied.workflow, args.output)
    return 0


def _cmd_node(args, catalog: NodeTypeCatalog) -> int:
    desc = catalog.lookup(args.node_type)
    if desc is None:
        similar = catalog.suggest(args.node_type)
        hint = f" Did you mean: {', '.join(similar)}?" if similar else ""
        print(f"Unknown node type: {args.node_type}.{hint}", file=sys.stderr)
        return 1
    _write_json(desc.to_dict(), None)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="n8n-dev-agent",
        description="Validate, patch and auto-fix n8n workflow JSON",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    validate_p = sub.add_parser("validate", help="Validate a workflow file")
    validate_p.add_argument("file", help="Workflow JSON file")
    validate_p.add_argument(
        "--profile",
        choices=[p.value for p in ValidationProfile],
        help="node configuration strictness (default: N8N_VALIDATION_PROFILE or runtime)",
    )
    validate_p.add_argument("--json", action="store_true", help="print the full result as JSON")

    diff_p = sub.add_parser("diff", help="Apply a batch of diff operations to a workflow file")
    diff_p.add_argument("file", help="Workflow JSON file")
    diff_p.add_argument("ops_file", help="JSON array of diff operations (or {\"operations\": [...]})")
    diff_p.add_argument("--validate-only", action="store_true", help="check the batch without writing")
    diff_p.add_argument("--output", "-o", metavar="PATH", help="write the updated workflow here")

    autofix_p = sub.add_parser("autofix", help="Suggest (and optionally apply) fixes for a workflow file")
    autofix_p.add_argument("file", help="Workflow JSON file")
    autofix_p.add_argument(
        "--threshold",
        choices=[c.value for c in FixConfidence],
        help="minimum fix confidence (default: N8N_AUTOFIX_CONFIDENCE or medium)",
    )
    autofix_p.add_argument("--apply", action="store_true", help="apply the fixes")
    autofix_p.add_argument("--output", "-o", metavar="PATH", help="write the fixed workflow here (default: stdout)")

    node_p = sub.add_parser("node", help="Show catalog information for a node type")
    node_p.add_argument("node_type", help="e.g. n8n-nodes-base.httpRequest")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else os.environ.get("N8N_AGENT_LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = AgentSettings()
    catalog = NodeTypeCatalog.from_settings(settings)
    validator = WorkflowValidator(catalog, settings)
    engine = WorkflowDiffEngine(validator, settings)

    try:
        if args.command == "validate":
            code = _cmd_validate(args, validator)
        elif args.command == "diff":
            code = _cmd_diff(args, engine)
        elif args.command == "autofix":
            code = _cmd_autofix(args, validator, engine, WorkflowAutoFixer(catalog, settings))
        else:
            code = _cmd_node(args, catalog)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
