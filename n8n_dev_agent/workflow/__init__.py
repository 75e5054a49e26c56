"""n8n workflow core — validation, diff application and auto-fix.

Public surface:
    WorkflowValidator   — structural + node-config + expression checks → ValidationResult.
    ValidationOptions   — which dimensions run, and the ValidationProfile.
    WorkflowDiffEngine  — transactional, two-pass application of diff-op batches.
    WorkflowAutoFixer   — validation findings → confidence-rated updateNode ops.
    Diff ops            — AddNode, RemoveNode, UpdateNode, MoveNode, EnableNode,
                          DisableNode, AddConnection, RemoveConnection,
                          UpdateConnection, UpdateSettings, UpdateName, AddTag,
                          RemoveTag (+ ops_from_json / ops_to_json).
    DiffError hierarchy — raised by WorkflowDiffEngine.apply().

Everything here is synchronous and pure; the node-type catalog is injected.
"""

from n8n_dev_agent.workflow.auto_fixer import (
    AutoFixConfig,
    AutoFixResult,
    FixConfidence,
    FixSuggestion,
    FixType,
    WorkflowAutoFixer,
)
from n8n_dev_agent.workflow.diff_engine import (
    BatchTooLargeError,
    DiffError,
    DiffErrorDetail,
    DiffResult,
    InvalidOperationError,
    InvalidWorkflowError,
    MalformedPathError,
    OperationConflictError,
    PathTraversalError,
    UnknownNodeReferenceError,
    WorkflowDiffEngine,
)
from n8n_dev_agent.workflow.diff_ops import (
    AddConnection,
    AddNode,
    AddTag,
    DiffOp,
    DiffOperationParseError,
    DisableNode,
    EnableNode,
    MoveNode,
    RemoveConnection,
    RemoveNode,
    RemoveTag,
    UpdateConnection,
    UpdateName,
    UpdateNode,
    UpdateSettings,
    batch_operations,
    op_from_dict,
    op_to_dict,
    ops_from_json,
    ops_from_list,
    ops_to_json,
    validate_diff_ops,
)
from n8n_dev_agent.workflow.expression import ExpressionFormatIssue, check_expression
from n8n_dev_agent.workflow.node_config import ValidationProfile
from n8n_dev_agent.workflow.result import ValidationIssue, ValidationResult, ValidationStatistics
from n8n_dev_agent.workflow.validator import ValidationOptions, WorkflowValidator

__all__ = [
    # Validation
    "WorkflowValidator",
    "ValidationOptions",
    "ValidationProfile",
    "ValidationResult",
    "ValidationIssue",
    "ValidationStatistics",
    "ExpressionFormatIssue",
    "check_expression",
    # Diff ops
    "DiffOp",
    "AddNode",
    "RemoveNode",
    "UpdateNode",
    "MoveNode",
    "EnableNode",
    "DisableNode",
    "AddConnection",
    "RemoveConnection",
    "UpdateConnection",
    "UpdateSettings",
    "UpdateName",
    "AddTag",
    "RemoveTag",
    "DiffOperationParseError",
    "batch_operations",
    "op_from_dict",
    "op_to_dict",
    "ops_from_json",
    "ops_from_list",
    "ops_to_json",
    "validate_diff_ops",
    # Diff engine
    "WorkflowDiffEngine",
    "DiffResult",
    "DiffErrorDetail",
    "DiffError",
    "UnknownNodeReferenceError",
    "PathTraversalError",
    "MalformedPathError",
    "BatchTooLargeError",
    "OperationConflictError",
    "InvalidOperationError",
    "InvalidWorkflowError",
    # Auto-fix
    "WorkflowAutoFixer",
    "AutoFixConfig",
    "AutoFixResult",
    "FixConfidence",
    "FixSuggestion",
    "FixType",
]
