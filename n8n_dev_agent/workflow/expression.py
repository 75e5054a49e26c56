"""Expression syntax checks for n8n parameter values.

n8n evaluates a parameter as an expression only when the string starts with
the evaluation marker "=". A value such as "{{ $json.url }}" without it is
sent to the target service as literal text, which is the single most common
authoring mistake. These checks are purely syntactic and therefore carry a
fixed confidence of 1.0.

Two layers:
  check_expression()               — verdict for one configuration value.
  find_expression_format_issues()  — walk a node's parameter tree and report
                                     every leaf that fails check_expression(),
                                     with a dotted/bracketed field path.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterator

EXPRESSION_PREFIX = "="
MAX_RECURSION_DEPTH = 100

_EXPRESSION_RE = re.compile(r"\{\{[\s\S]+?\}\}")
# Also matches "{{}}" so empty expressions can be reported.
_ANY_EXPRESSION_RE = re.compile(r"\{\{([\s\S]*?)\}\}")
_NODE_REFERENCE_RES = (
    re.compile(r"""\$node\[\s*(["'])(?P<name>.+?)\1\s*\]"""),
    re.compile(r"""\$\(\s*(["'])(?P<name>.+?)\1\s*\)"""),
    re.compile(r"""\$items\(\s*(["'])(?P<name>.+?)\1"""),
)

RESOURCE_LOCATOR_MODES: frozenset[str] = frozenset({"id", "url", "expression", "name", "list"})

# Keys that cannot appear bare in a dotted path
_UNSAFE_KEY_RE = re.compile(r'[.\[\]"]')


# ---------------------------------------------------------------------------
# Single-value verdict
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpressionVerdict:
    """Result of checking one value.

    suggestion is only set when the problem is mechanically correctable
    (missing or doubled prefix).
    """

    is_valid: bool
    has_expression: bool
    needs_prefix: bool = False
    is_mixed_content: bool = False
    message: str = ""
    suggestion: str | None = None
    confidence: float = 1.0


def has_expression(value: Any) -> bool:
    return isinstance(value, str) and _EXPRESSION_RE.search(value) is not None


def _is_mixed_content(value: str) -> bool:
    content = value[1:] if value.startswith(EXPRESSION_PREFIX) else value
    return bool(_EXPRESSION_RE.sub("", content).strip())


def _syntax_problem(value: str) -> str | None:
    if "{{" not in value and "}}" not in value:
        return None
    open_count = value.count("{{")
    close_count = value.count("}}")
    if open_count != close_count:
        return f"Unmatched expression brackets: {open_count} opening, {close_count} closing"
    for body in _ANY_EXPRESSION_RE.findall(value):
        if not body.strip():
            return "Empty expression {{ }} is not valid"
    return None


def _pattern_problems(value: str) -> list[str]:
    problems: list[str] = []
    if value.startswith(EXPRESSION_PREFIX * 2) and has_expression(value):
        problems.append(f"Double prefix detected: {value}")
    for match in _EXPRESSION_RE.finditer(value):
        expr = match.group(0)
        body = expr[2:-2].strip()
        # `${}` inside a backtick string is a JS template literal, which is legal.
        if "${" in body and "}" in body and "`" not in body:
            problems.append(f"Template literal syntax ${{}} found - use n8n syntax instead: {expr}")
        if body.startswith(EXPRESSION_PREFIX):
            problems.append(f"Double prefix detected in expression: {expr}")
        if "{{" in body or "}}" in body:
            problems.append(f"Nested brackets detected: {expr}")
    return problems


def corrected_value(value: str) -> str:
    """Return value with its prefix problems repaired.

    Adds a missing "=" and collapses a doubled one. Values without an
    expression, and problems that are not mechanical, are returned unchanged.
    """
    if not has_expression(value):
        return value
    fixed = value
    while fixed.startswith(EXPRESSION_PREFIX * 2):
        fixed = fixed[1:]
    if not fixed.startswith(EXPRESSION_PREFIX):
        fixed = EXPRESSION_PREFIX + fixed
    fixed = re.sub(r"\{\{(\s*)=", r"{{\1", fixed)
    return fixed


def check_expression(value: Any) -> ExpressionVerdict:
    """Check one configuration value. Never raises.

    A value without interpolation markers (or that is not a string) is a
    valid result, not an error.
    """
    if not isinstance(value, str):
        return ExpressionVerdict(is_valid=True, has_expression=False, message="Not a string value")

    found = has_expression(value)
    mixed = found and _is_mixed_content(value)
    problems: list[str] = []
    needs_prefix = False

    if found and not value.startswith(EXPRESSION_PREFIX):
        needs_prefix = True
        problems.append(
            "Mixed literal text and expression requires = prefix for expression evaluation"
            if mixed
            else "Expression requires = prefix to be evaluated"
        )

    syntax = _syntax_problem(value)
    if syntax:
        problems.append(syntax)
    problems.extend(_pattern_problems(value))

    if not problems:
        return ExpressionVerdict(
            is_valid=True,
            has_expression=found,
            is_mixed_content=mixed,
            message="Expression is valid" if found else "No expression found",
        )

    fixed = corrected_value(value)
    if fixed == value or not check_expression(fixed).is_valid:
        fixed = None
    return ExpressionVerdict(
        is_valid=False,
        has_expression=found or "{{" in value,
        needs_prefix=needs_prefix,
        is_mixed_content=mixed,
        message="; ".join(problems),
        suggestion=fixed,
    )


def referenced_nodes(value: Any) -> list[str]:
    """Return node names referenced via $node["X"], $('X') or $items("X")."""
    if not isinstance(value, str):
        return []
    names: list[str] = []
    for match in _EXPRESSION_RE.finditer(value):
        for pattern in _NODE_REFERENCE_RES:
            for ref in pattern.finditer(match.group(0)):
                name = ref.group("name")
                if name not in names:
                    names.append(name)
    return names


# ---------------------------------------------------------------------------
# Parameter-tree walk
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParameterLeaf:
    """One checked position in a parameter tree.

    kind: "value" (plain leaf), "resource-locator" ({__rl: true, …} object),
          or "too-deep" (walk stopped at MAX_RECURSION_DEPTH).
    key:  nearest enclosing object key; list items inherit their list's key.
    """

    path: str
    value: Any
    kind: str = "value"
    key: str | None = None


def child_path(path: str, key: Any) -> str:
    """Append an object key to a field path, bracket-quoting keys such as "a.b"."""
    key = str(key)
    if key and not _UNSAFE_KEY_RE.search(key):
        return f"{path}.{key}" if path else key
    return f"{path}[{json.dumps(key)}]"


def is_resource_locator(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("__rl") is True
        and "value" in value
        and isinstance(value.get("mode"), str)
        and value["mode"] in RESOURCE_LOCATOR_MODES
    )


def iter_parameter_leaves(parameters: Any, max_depth: int = MAX_RECURSION_DEPTH) -> Iterator[ParameterLeaf]:
    """Yield every string leaf and resource locator under *parameters*.

    Keys starting with "__" are internal and skipped. A container that
    contains itself is visited once.
    """
    ancestors: set[int] = set()

    def _walk(obj: Any, path: str, depth: int, key: str | None) -> Iterator[ParameterLeaf]:
        if depth > max_depth:
            yield ParameterLeaf(path, obj, "too-deep", key)
            return
        if isinstance(obj, str):
            yield ParameterLeaf(path, obj, key=key)
            return
        if not isinstance(obj, (dict, list)):
            return
        if id(obj) in ancestors:
            return
        if is_resource_locator(obj):
            yield ParameterLeaf(path, obj, "resource-locator", key)
            return
        ancestors.add(id(obj))
        try:
            if isinstance(obj, list):
                for index, item in enumerate(obj):
                    yield from _walk(item, f"{path}[{index}]", depth + 1, key)
            else:
                for child_key, item in obj.items():
                    if str(child_key).startswith("__"):
                        continue
                    yield from _walk(item, child_path(path, child_key), depth + 1, str(child_key))
        finally:
            ancestors.discard(id(obj))

    yield from _walk(parameters, "", 0, None)


@dataclass(frozen=True)
class ExpressionFormatIssue:
    """An expression-format finding for one parameter leaf.

    issue_type: "missing-prefix" (mechanically fixable) or "mixed-format"
                (syntax problem, corrected_value equals current_value unless a
                doubled prefix could be collapsed).
    """

    node_name: str
    field_path: str
    current_value: Any
    corrected_value: Any
    issue_type: str
    severity: str
    explanation: str
    node_id: str | None = None

    @property
    def fixable(self) -> bool:
        return self.corrected_value != self.current_value

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeName": self.node_name,
            "nodeId": self.node_id,
            "fieldPath": self.field_path,
            "currentValue": self.current_value,
            "correctedValue": self.corrected_value,
            "issueType": self.issue_type,
            "severity": self.severity,
            "explanation": self.explanation,
        }


def check_leaf(leaf: ParameterLeaf, node_name: str, node_id: str | None = None) -> ExpressionFormatIssue | None:
    """Return the format issue for one leaf, or None when it is clean."""
    if leaf.kind == "too-deep":
        return ExpressionFormatIssue(
            node_name=node_name,
            node_id=node_id,
            field_path=leaf.path,
            current_value=leaf.value,
            corrected_value=leaf.value,
            issue_type="mixed-format",
            severity="warning",
            explanation=(
                f"Maximum recursion depth ({MAX_RECURSION_DEPTH}) exceeded. Object may have "
                "circular references or be too deeply nested."
            ),
        )

    if leaf.kind == "resource-locator":
        inner = leaf.value.get("value")
        verdict = check_expression(inner)
        if verdict.is_valid or not verdict.needs_prefix:
            return None
        return ExpressionFormatIssue(
            node_name=node_name,
            node_id=node_id,
            field_path=leaf.path,
            current_value=leaf.value,
            corrected_value={**leaf.value, "value": corrected_value(inner)},
            issue_type="missing-prefix",
            severity="error",
            explanation=f"Resource locator value: {verdict.message}",
        )

    verdict = check_expression(leaf.value)
    if verdict.is_valid:
        return None
    return ExpressionFormatIssue(
        node_name=node_name,
        node_id=node_id,
        field_path=leaf.path,
        current_value=leaf.value,
        corrected_value=verdict.suggestion if verdict.suggestion is not None else leaf.value,
        issue_type="missing-prefix" if verdict.needs_prefix else "mixed-format",
        severity="error",
        explanation=verdict.message,
    )


def find_expression_format_issues(
    parameters: Any,
    node_name: str,
    node_id: str | None = None,
) -> list[ExpressionFormatIssue]:
    """Walk a node's parameters and return every expression-format issue."""
    issues: list[ExpressionFormatIssue] = []
    for leaf in iter_parameter_leaves(parameters):
        issue = check_leaf(leaf, node_name, node_id)
        if issue is not None:
            issues.append(issue)
    return issues
