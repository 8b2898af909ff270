"""MCP server exposing the registered tools over stdio."""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from src import runtime
from src.config import settings
from src.integrations.google_auth import GoogleAuthManager
from src.tools import registry

logger = logging.getLogger(__name__)

SERVER_NAME = "google-calendar-tasks-mcp"


def create_server() -> Server:
    """Build the MCP server and wire it to the tool registry."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=schema["name"],
                description=schema["description"],
                inputSchema=schema["input_schema"],
            )
            for schema in registry.get_schemas()
        ]

    # Arguments are validated by the registry so bad input comes back as a
    # structured VALIDATION_ERROR rather than a transport-level error.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        result = await registry.execute(name, arguments or {})
        return [types.TextContent(type="text", text=result.to_content())]

    return server


def _log_startup() -> None:
    if settings.test_mode:
        logger.info("Running in TEST MODE with in-memory Google APIs")
    elif not GoogleAuthManager.get().enabled:
        logger.warning(
            "No Google token at %s, every tool call will fail with AUTH_MISSING",
            settings.token_path,
        )

    guardrails = runtime.get_guardrails()
    logger.info(
        "Guardrails: %d writes/day, %d sends/day, %d label changes/day",
        guardrails.config.daily_write_limit,
        guardrails.config.mail_policy.daily_send_limit,
        guardrails.config.mail_policy.daily_modify_limit,
    )
    runtime.get_audit_logger()
    logger.info("Registered %d tools", len(registry.tool_names))


async def serve() -> None:
    """Run the server until stdin closes."""
    _log_startup()
    server = create_server()
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
