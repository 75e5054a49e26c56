"""MCP server and tool surface.

Tests for the registry-driven MCP server, single dispatch, serialization,
and the N8nMCPTools envelopes over the in-memory catalog.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from n8n_dev_agent.mcp.registry import TOOL_CATALOG
from n8n_dev_agent.mcp.server import _serialize, create_server
from n8n_dev_agent.mcp.tools import N8nMCPTools, ToolResult

_WORKFLOW = {
    "nodes": [
        {"id": "a", "name": "A", "type": "n8n-nodes-base.webhook", "typeVersion": 2,
         "position": [250, 300], "parameters": {"path": "hook"}},
        {"id": "b", "name": "B", "type": "n8n-nodes-base.set", "typeVersion": 3.4,
         "position": [470, 300], "parameters": {}},
    ],
    "connections": {"A": {"main": [[{"node": "B", "type": "main", "index": 0}]]}},
}


def _broken_workflow():
    wf = json.loads(json.dumps(_WORKFLOW))
    wf["connections"]["A"]["main"][0].append({"node": "C", "type": "main", "index": 0})
    return wf


@pytest.fixture
def tools(catalog, settings):
    return N8nMCPTools(catalog=catalog, settings=settings)


# ---------------------------------------------------------------------------
# Catalog integrity
# ---------------------------------------------------------------------------


def test_catalog_has_7_tools():
    assert len(TOOL_CATALOG) == 7


def test_catalog_method_names_match_tools_class():
    for method_name, _td in TOOL_CATALOG:
        assert hasattr(N8nMCPTools, method_name), (
            f"TOOL_CATALOG references '{method_name}' but N8nMCPTools has no such method"
        )


def test_catalog_entries_have_required_fields():
    for method_name, td in TOOL_CATALOG:
        assert td.name, f"{method_name}: ToolDef.name is empty"
        assert td.description, f"{method_name}: ToolDef.description is empty"
        assert td.parameters["type"] == "object", f"{method_name}: parameters is not an object schema"


def test_diff_tool_declares_required_arguments():
    td = dict(TOOL_CATALOG)["n8n_update_partial_workflow"]
    assert td.parameters["required"] == ["workflow", "operations"]


# ---------------------------------------------------------------------------
# list_tools handler
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_tools_returns_mcp_types():
    from mcp import types

    server = create_server(MagicMock(spec=N8nMCPTools))

    handler = server.request_handlers[types.ListToolsRequest]
    server_result = await handler(types.ListToolsRequest(method="tools/list"))
    tool_list = server_result.root.tools

    assert len(tool_list) == 7
    assert all(isinstance(t, types.Tool) for t in tool_list)
    assert tool_list[0].name == "validate_workflow"
    assert tool_list[0].inputSchema is not None


# ---------------------------------------------------------------------------
# call_tool handler dispatch
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_tools():
    tools = MagicMock(spec=N8nMCPTools)
    tools.validate_workflow = AsyncMock(return_value=ToolResult(
        ok=True, summary="Workflow is valid", facts={"valid": True}, data={"valid": True},
        error=None, artifacts=None,
    ))
    tools.list_node_types = AsyncMock(side_effect=TypeError("unexpected keyword argument 'bogus'"))
    return tools


async def _call(server, name, arguments):
    from mcp import types

    handler = server.request_handlers[types.CallToolRequest]
    server_result = await handler(types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    ))
    content = server_result.root.content
    assert len(content) == 1
    return json.loads(content[0].text)


@pytest.mark.asyncio
async def test_call_tool_dispatches_by_name(mock_tools):
    server = create_server(mock_tools)
    parsed = await _call(server, "validate_workflow", {"workflow": _WORKFLOW})

    mock_tools.validate_workflow.assert_awaited_once_with(workflow=_WORKFLOW)
    assert parsed["ok"] is True
    assert parsed["summary"] == "Workflow is valid"


@pytest.mark.asyncio
async def test_call_tool_unknown_name(mock_tools):
    parsed = await _call(create_server(mock_tools), "nonexistent_tool", {})
    assert parsed["ok"] is False
    assert "Unknown tool" in parsed["error"]


@pytest.mark.asyncio
async def test_call_tool_bad_arguments(mock_tools):
    parsed = await _call(create_server(mock_tools), "list_node_types", {})
    assert parsed["ok"] is False
    assert parsed["error"].startswith("Invalid arguments for list_node_types")


@pytest.mark.asyncio
async def test_call_tool_end_to_end(tools):
    parsed = await _call(create_server(tools), "validate_workflow", {"workflow": _broken_workflow()})
    assert parsed["ok"] is True
    assert parsed["data"]["valid"] is False
    assert parsed["data"]["statistics"]["validConnections"] == 1


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def test_serialize_ok_result():
    r = ToolResult(ok=True, summary="Listed 3 node types", facts={}, data=[1, 2, 3], error=None, artifacts=None)
    parsed = json.loads(_serialize(r))
    assert parsed["ok"] is True
    assert parsed["summary"] == "Listed 3 node types"
    assert parsed["data"] == [1, 2, 3]
    assert parsed["error"] is None


def test_serialize_error_result():
    r = ToolResult(
        ok=False, summary="Failed", facts={}, data=None,
        error={"type": "BatchTooLargeError", "detail": "6 > 5"}, artifacts=None,
    )
    parsed = json.loads(_serialize(r))
    assert parsed["ok"] is False
    assert parsed["error"]["type"] == "BatchTooLargeError"


# ---------------------------------------------------------------------------
# N8nMCPTools
# ---------------------------------------------------------------------------


class TestValidationTools:
    @pytest.mark.asyncio
    async def test_validate_workflow_facts(self, tools):
        result = await tools.validate_workflow(workflow=_broken_workflow())
        assert result.ok is True
        assert result.facts == {"valid": False, "error_count": 1, "warning_count": 0}
        assert "non-existent node" in result.data["errors"][0]["message"]

    @pytest.mark.asyncio
    async def test_validate_workflow_accepts_json_string(self, tools):
        result = await tools.validate_workflow(workflow=json.dumps(_WORKFLOW))
        assert result.facts["valid"] is True

    @pytest.mark.asyncio
    async def test_validate_workflow_bad_profile(self, tools):
        result = await tools.validate_workflow(workflow=_WORKFLOW, options={"profile": "lenient"})
        assert result.ok is False
        assert result.error["type"] == "ValueError"

    @pytest.mark.asyncio
    async def test_validate_workflow_missing_argument(self, tools):
        result = await tools.validate_workflow()
        assert result.ok is False
        assert result.error["type"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_connections_only(self, tools):
        result = await tools.validate_workflow_connections(workflow=_broken_workflow())
        assert result.summary == "Connections invalid: 1 valid, 1 invalid"

    @pytest.mark.asyncio
    async def test_expressions_only(self, tools):
        wf = json.loads(json.dumps(_WORKFLOW))
        wf["nodes"][1]["parameters"] = {"jsonOutput": "{{ $json.body }}", "mode": "raw"}
        result = await tools.validate_workflow_expressions(workflow=wf)
        assert result.facts == {"valid": False, "expressions_validated": 1}


class TestDiffTool:
    @pytest.mark.asyncio
    async def test_applies_operations(self, tools):
        result = await tools.n8n_update_partial_workflow(
            workflow=_WORKFLOW,
            operations=[{"type": "updateNode", "nodeName": "B", "changes": {"notes": "hi"}}],
        )
        assert result.ok is True
        assert result.facts == {"operations_applied": 1, "valid": True}
        assert result.data["workflow"]["nodes"][1]["notes"] == "hi"

    @pytest.mark.asyncio
    async def test_rejection_uses_error_kind(self, tools):
        result = await tools.n8n_update_partial_workflow(
            workflow=_WORKFLOW,
            operations=[{"type": "addTag", "tag": str(i)} for i in range(6)],
        )
        assert result.ok is False
        assert result.error["type"] == "BatchTooLargeError"
        assert result.data["success"] is False

    @pytest.mark.asyncio
    async def test_validate_only(self, tools):
        result = await tools.n8n_update_partial_workflow(
            workflow=_WORKFLOW,
            operations=[{"type": "updateName", "name": "Renamed"}],
            validate_only=True,
        )
        assert result.ok is True
        assert "workflow" not in result.data
        assert result.data["preview"]["name"] == "Renamed"

    @pytest.mark.asyncio
    async def test_malformed_connections_become_a_failed_result(self, tools):
        wf = json.loads(json.dumps(_WORKFLOW))
        wf["connections"]["A"] = ["oops"]
        result = await tools.n8n_update_partial_workflow(
            workflow=wf,
            operations=[{"type": "removeConnection", "source": "A", "target": "B"}],
        )
        assert result.ok is False
        assert result.error["type"] == "InvalidWorkflowError"


class TestAutofixTool:
    def _workflow(self):
        wf = json.loads(json.dumps(_WORKFLOW))
        wf["nodes"][1] = {
            "id": "b", "name": "B", "type": "n8n-nodes-base.code", "typeVersion": 3.5,
            "position": [470, 300], "parameters": {},
        }
        return wf

    @pytest.mark.asyncio
    async def test_preview(self, tools):
        result = await tools.n8n_autofix_workflow(workflow=self._workflow())
        assert result.ok is True
        assert result.facts == {"fix_count": 1, "applied": False}
        assert result.data["operations"][0]["changes"] == {"typeVersion": 2}

    @pytest.mark.asyncio
    async def test_threshold_high_finds_nothing(self, tools):
        result = await tools.n8n_autofix_workflow(workflow=self._workflow(), confidence_threshold="high")
        assert result.summary == "No fixes available"

    @pytest.mark.asyncio
    async def test_apply(self, tools):
        result = await tools.n8n_autofix_workflow(workflow=self._workflow(), apply_fixes=True)
        assert result.ok is True
        assert result.summary.startswith("Applied: ")
        assert result.artifacts["workflow"]["nodes"][1]["typeVersion"] == 2
        assert result.data["diff"]["validation"]["valid"] is True

    @pytest.mark.asyncio
    async def test_invalid_threshold(self, tools):
        result = await tools.n8n_autofix_workflow(workflow=self._workflow(), confidence_threshold="certain")
        assert result.ok is False
        assert result.error["type"] == "ValidationError"


class TestCatalogTools:
    @pytest.mark.asyncio
    async def test_get_node_info(self, tools):
        result = await tools.get_node_info(node_type="n8n-nodes-base.httpRequest")
        assert result.ok is True
        assert result.data["maxVersion"] == 4.2

    @pytest.mark.asyncio
    async def test_get_node_info_unknown(self, tools):
        result = await tools.get_node_info(node_type="n8n-nodes-base.httpRequst")
        assert result.ok is False
        assert result.error["type"] == "UnknownNodeType"
        assert "n8n-nodes-base.httpRequest" in result.error["detail"]["suggestions"]

    @pytest.mark.asyncio
    async def test_list_node_types_by_capability(self, tools):
        result = await tools.list_node_types(capability="tool")
        assert result.facts == {"count": 1}
        assert result.data[0]["nodeType"] == "@n8n/n8n-nodes-langchain.toolCode"

    @pytest.mark.asyncio
    async def test_list_node_types_unknown_capability(self, tools):
        result = await tools.list_node_types(capability="robot")
        assert result.ok is False
