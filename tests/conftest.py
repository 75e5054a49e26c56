"""Shared fixtures: an in-memory node-type catalog and the core services over it.

The catalog is built with NodeTypeCatalog.from_descriptors so tests never
depend on the bundled snapshot (test_catalog.py covers that separately).
"""

from __future__ import annotations

import pytest

from n8n_dev_agent.config import AgentSettings
from n8n_dev_agent.knowledge import NodeTypeCatalog
from n8n_dev_agent.workflow import WorkflowAutoFixer, WorkflowDiffEngine, WorkflowValidator

_DESCRIPTORS = [
    {
        "node_type": "n8n-nodes-base.manualTrigger",
        "display_name": "Manual Trigger",
        "versions": [1],
        "is_trigger": True,
    },
    {
        "node_type": "n8n-nodes-base.webhook",
        "display_name": "Webhook",
        "versions": [1, 1.1, 2],
        "is_trigger": True,
        "is_webhook": True,
        "properties": [
            {"name": "path", "displayName": "Path", "type": "string", "default": "webhook"},
            {
                "name": "httpMethod",
                "displayName": "HTTP Method",
                "type": "options",
                "default": "GET",
                "options": [{"name": "GET", "value": "GET"}, {"name": "POST", "value": "POST"}],
            },
        ],
    },
    {
        "node_type": "n8n-nodes-base.set",
        "display_name": "Edit Fields (Set)",
        "versions": [1, 2, 3, 3.4],
        "properties": [
            {
                "name": "mode",
                "displayName": "Mode",
                "type": "options",
                "default": "manual",
                "options": [{"name": "Manual Mapping", "value": "manual"}, {"name": "JSON", "value": "raw"}],
            },
            {"name": "assignments", "displayName": "Fields to Set", "type": "assignmentCollection", "default": {}},
            {
                "name": "jsonOutput",
                "displayName": "JSON",
                "type": "json",
                "required": True,
                "default": "",
                "displayOptions": {"show": {"mode": ["raw"]}},
            },
            {"name": "includeOtherFields", "displayName": "Include Other Fields", "type": "boolean", "default": False},
        ],
    },
    {
        "node_type": "n8n-nodes-base.httpRequest",
        "display_name": "HTTP Request",
        "versions": [1, 2, 3, 4, 4.1, 4.2],
        "is_external": True,
        "properties": [
            {
                "name": "method",
                "displayName": "Method",
                "type": "options",
                "default": "GET",
                "options": [{"name": "GET", "value": "GET"}, {"name": "POST", "value": "POST"}],
            },
            {"name": "url", "displayName": "URL", "type": "string", "required": True, "default": ""},
            {"name": "sendBody", "displayName": "Send Body", "type": "boolean", "default": False},
            {"name": "timeout", "displayName": "Timeout", "type": "number", "default": 10000},
        ],
    },
    {"node_type": "n8n-nodes-base.code", "display_name": "Code", "versions": [1, 2]},
    {"node_type": "n8n-nodes-base.if", "display_name": "If", "versions": [1, 2], "outputs": 2},
    {"node_type": "n8n-nodes-base.noOp", "display_name": "No Operation", "versions": [1]},
    {"node_type": "n8n-nodes-base.respondToWebhook", "display_name": "Respond to Webhook", "versions": [1, 1.1]},
    {"node_type": "n8n-nodes-base.stickyNote", "display_name": "Sticky Note", "versions": [1], "outputs": 0},
    {
        "node_type": "@n8n/n8n-nodes-langchain.agent",
        "display_name": "AI Agent",
        "versions": [1, 1.7],
        "is_agent": True,
    },
    {
        "node_type": "@n8n/n8n-nodes-langchain.toolCode",
        "display_name": "Code Tool",
        "versions": [1, 1.1],
        "is_tool": True,
    },
]


@pytest.fixture
def settings() -> AgentSettings:
    return AgentSettings(max_operations=5, validation_profile="runtime", autofix_confidence="medium")


@pytest.fixture
def catalog() -> NodeTypeCatalog:
    return NodeTypeCatalog.from_descriptors(_DESCRIPTORS)


@pytest.fixture
def validator(catalog, settings) -> WorkflowValidator:
    return WorkflowValidator(catalog, settings)


@pytest.fixture
def engine(validator, settings) -> WorkflowDiffEngine:
    return WorkflowDiffEngine(validator, settings)


@pytest.fixture
def fixer(catalog, settings) -> WorkflowAutoFixer:
    return WorkflowAutoFixer(catalog, settings)
