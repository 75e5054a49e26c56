"""Per-node configuration checks against the catalog's property schema.

Profiles tune strictness of these checks only; the structural rules in
structural.py are profile-invariant.

  minimal     — missing required properties only, no warnings
  runtime     — required + invalid values + hardcoded-secret warnings
  ai-friendly — runtime + advisory warnings (undeclared parameters)
  strict      — everything, plus error-handling hints for nodes that call
                external services
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from n8n_dev_agent.knowledge.catalog import NodeTypeDescriptor
from n8n_dev_agent.workflow.expression import EXPRESSION_PREFIX, iter_parameter_leaves
from n8n_dev_agent.workflow.result import ADVISORY, CONFIGURATION, ResultCollector

logger = logging.getLogger(__name__)


class ValidationProfile(str, Enum):
    MINIMAL = "minimal"
    RUNTIME = "runtime"
    AI_FRIENDLY = "ai-friendly"
    STRICT = "strict"


_SECRET_HINTS: tuple[str, ...] = ("apikey", "api_key", "password", "secret", "token", "credential")
# Display-only property types that never carry a value.
_VALUELESS_TYPES: frozenset[str] = frozenset({"notice", "hidden", "button"})


def _is_expression(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EXPRESSION_PREFIX)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == {} or value == []


class NodeConfigValidator:
    """Validate one node's parameters against its NodeTypeDescriptor."""

    def validate(
        self,
        node: dict[str, Any],
        desc: NodeTypeDescriptor,
        collector: ResultCollector,
        profile: ValidationProfile = ValidationProfile.RUNTIME,
    ) -> None:
        params = node.get("parameters")
        if not isinstance(params, dict):
            params = {}

        for prop in desc.properties:
            name = prop.get("name")
            if not name or prop.get("type") in _VALUELESS_TYPES:
                continue
            if not self._is_visible(prop, params, desc):
                continue
            if name not in params:
                if prop.get("required") and _is_empty(prop.get("default")):
                    label = prop.get("displayName") or name
                    collector.error(
                        f'Required property "{label}" ({name}) is missing',
                        code="missing_required",
                        category=CONFIGURATION,
                        node=node,
                        details={"property": name},
                    )
                continue
            if profile is ValidationProfile.MINIMAL:
                continue
            value = params[name]
            if prop.get("required") and _is_empty(value) and _is_empty(prop.get("default")):
                label = prop.get("displayName") or name
                collector.error(
                    f'Required property "{label}" ({name}) is empty',
                    code="missing_required",
                    category=CONFIGURATION,
                    node=node,
                    details={"property": name},
                )
                continue
            self._check_value(node, prop, value, collector)

        if profile is ValidationProfile.MINIMAL:
            return

        self._check_secrets(node, params, collector)

        if profile in (ValidationProfile.AI_FRIENDLY, ValidationProfile.STRICT) and desc.properties:
            declared = {p.get("name") for p in desc.properties}
            for key in params:
                if key not in declared and not str(key).startswith("__"):
                    collector.warning(
                        f'Parameter "{key}" is not a property of {desc.node_type} and will be ignored',
                        code="unknown_parameter",
                        category=ADVISORY,
                        node=node,
                        details={"property": key},
                    )

        if profile is ValidationProfile.STRICT and desc.is_external:
            if not (node.get("onError") or node.get("retryOnFail") or node.get("continueOnFail")):
                short = desc.node_type.rsplit(".", 1)[-1]
                collector.warning(
                    f"{short} node interacts with external services but has no error handling configured. "
                    "Consider adding \"onError: 'continueRegularOutput'\" or \"retryOnFail: true\".",
                    code="missing_error_handling",
                    category=ADVISORY,
                    node=node,
                )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _current(field: str, params: dict[str, Any], desc: NodeTypeDescriptor) -> Any:
        if field in params:
            return params[field]
        other = desc.get_property(field)
        return other.get("default") if other else None

    def _is_visible(self, prop: dict[str, Any], params: dict[str, Any], desc: NodeTypeDescriptor) -> bool:
        display = prop.get("displayOptions")
        if not isinstance(display, dict):
            return True
        show = display.get("show") or {}
        for field, allowed in show.items():
            if not isinstance(allowed, list):
                allowed = [allowed]
            if self._current(field, params, desc) not in allowed:
                return False
        hide = display.get("hide") or {}
        for field, blocked in hide.items():
            if not isinstance(blocked, list):
                blocked = [blocked]
            if self._current(field, params, desc) in blocked:
                return False
        return True

    @staticmethod
    def _check_value(node: dict[str, Any], prop: dict[str, Any], value: Any, collector: ResultCollector) -> None:
        if _is_expression(value):
            return
        name = prop["name"]
        prop_type = prop.get("type")
        expected = None
        if prop_type == "string" and not isinstance(value, str):
            expected = "string"
        elif prop_type == "number" and (isinstance(value, bool) or not isinstance(value, (int, float))):
            expected = "number"
        elif prop_type == "boolean" and not isinstance(value, bool):
            expected = "boolean"
        elif prop_type == "json" and not isinstance(value, (str, dict, list)):
            expected = "JSON string or object"

        if expected is not None:
            collector.error(
                f'Invalid value for "{name}": expected {expected}, got {type(value).__name__}',
                code="invalid_value",
                category=CONFIGURATION,
                node=node,
                details={"property": name, "expected": expected},
            )
            return

        if prop_type == "options" and prop.get("options"):
            allowed = [o.get("value") for o in prop["options"] if isinstance(o, dict)]
            if value not in allowed:
                collector.error(
                    f'Invalid value "{value}" for "{name}". Must be one of: '
                    + ", ".join(str(a) for a in allowed),
                    code="invalid_value",
                    category=CONFIGURATION,
                    node=node,
                    details={"property": name, "allowed": allowed},
                )

    @staticmethod
    def _check_secrets(node: dict[str, Any], params: dict[str, Any], collector: ResultCollector) -> None:
        for leaf in iter_parameter_leaves(params):
            if leaf.kind != "value" or not leaf.value or "{{" in leaf.value:
                continue
            key = (leaf.key or "").lower()
            if any(hint in key for hint in _SECRET_HINTS):
                collector.warning(
                    f'Hardcoded secret in "{leaf.path}". Use n8n credentials or an expression instead.',
                    code="hardcoded_secret",
                    category=CONFIGURATION,
                    node=node,
                    details={"property": leaf.path},
                )
