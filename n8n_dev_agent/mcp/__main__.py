"""Entry point: ``python -m n8n_dev_agent.mcp``

Starts the n8n workflow MCP server over stdio so MCP clients (Cursor IDE,
Claude Desktop) can discover the validation, diff and autofix tools.

Environment variables
---------------------
N8N_AGENT_LOG_LEVEL      Python log level (default ``WARNING``).
N8N_CATALOG_PATH         Node-type catalog snapshot (default: bundled snapshot).
N8N_DIFF_MAX_OPERATIONS  Max operations per diff batch (default ``5``).
N8N_VALIDATION_PROFILE   Default validation profile (default ``runtime``).
MCP_TRANSPORT            ``stdio`` (default) or ``sse`` (not yet implemented).
"""

from __future__ import annotations

import asyncio
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.environ.get("N8N_AGENT_LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

from n8n_dev_agent.config import AgentSettings  # noqa: E402
from n8n_dev_agent.mcp.server import create_server  # noqa: E402
from n8n_dev_agent.mcp.tools import N8nMCPTools  # noqa: E402


async def main() -> None:
    settings = AgentSettings.from_env()
    tools = N8nMCPTools(settings=settings)
    server = create_server(tools)

    transport = os.environ.get("MCP_TRANSPORT", "stdio")
    if transport == "sse":
        raise NotImplementedError("SSE transport not yet wired; use stdio")

    from mcp.server.stdio import stdio_server  # noqa: E402

    async with stdio_server() as (read_stream, write_stream):
        init_options = server.create_initialization_options()
        await server.run(read_stream, write_stream, init_options)


if __name__ == "__main__":
    asyncio.run(main())
