"""n8n workflow MCP tool surface + stdio server."""

from n8n_dev_agent.mcp.registry import TOOL_CATALOG, ToolDef
from n8n_dev_agent.mcp.server import create_server
from n8n_dev_agent.mcp.tools import N8nMCPTools, ToolResult

__all__ = ["N8nMCPTools", "TOOL_CATALOG", "ToolDef", "ToolResult", "create_server"]
