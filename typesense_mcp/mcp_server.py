"""MCP stdio server entrypoint.

Registers the Typesense handlers on the MCP Python SDK's low-level server and
serves them over stdio.

Run (stdio):
    python -m typesense_mcp.mcp_server --api-key KEY [--host H] [--port P]
        [--protocol http|https]
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from typing import Any, Optional, Sequence

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from pydantic import AnyUrl

from . import __version__, handlers
from .client import make_client
from .config import AppConfig, load_config, resolve_connection
from .errors import ServiceError, TypesenseMCPError
from .handlers import TypesenseContext
from .logs import setup_logging

logger = logging.getLogger(__name__)

SERVER_NAME = "typesense-mcp-server"


def create_context(
    argv: Sequence[str], app: Optional[AppConfig] = None
) -> TypesenseContext:
    """Resolve configuration and build the client before serving anything."""
    app = app or load_config()
    connection = resolve_connection(argv)
    logger.info(
        "Typesense configuration: %s",
        dataclasses.replace(connection, api_key="***"),
    )
    client = make_client(connection, app.http)
    logger.info("Typesense client initialized")
    return TypesenseContext(connection=connection, client=client, app=app)


def check_health(ctx: TypesenseContext) -> bool:
    try:
        health = ctx.client.retrieve_health()
    except ServiceError:
        logger.error("Typesense connection test failed", exc_info=True)
        return False
    logger.info("Typesense connection test successful: %s", health)
    return True


def build_server(ctx: TypesenseContext) -> Server:
    server = Server(SERVER_NAME, version=__version__)

    @server.list_resources()
    async def _list_resources() -> list[types.Resource]:
        return await asyncio.to_thread(handlers.list_resources, ctx)

    @server.read_resource()
    async def _read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
        logger.info("Read resource %s", uri)
        text = await asyncio.to_thread(handlers.read_resource, ctx, str(uri))
        return [ReadResourceContents(content=text, mime_type=handlers.JSON_MIME)]

    @server.list_resource_templates()
    async def _list_resource_templates() -> list[types.ResourceTemplate]:
        return handlers.list_resource_templates()

    @server.list_tools()
    async def _list_tools() -> list[types.Tool]:
        return handlers.list_tools()

    # Arguments are validated by the handlers, not the SDK.
    @server.call_tool(validate_input=False)
    async def _call_tool(
        name: str, arguments: dict[str, Any] | None
    ) -> list[types.TextContent]:
        return await asyncio.to_thread(handlers.call_tool, ctx, name, arguments)

    @server.list_prompts()
    async def _list_prompts() -> list[types.Prompt]:
        return handlers.list_prompts()

    @server.get_prompt()
    async def _get_prompt(
        name: str, arguments: dict[str, str] | None
    ) -> types.GetPromptResult:
        logger.info("Get prompt %s with %s", name, arguments)
        return await asyncio.to_thread(handlers.get_prompt, ctx, name, arguments)

    return server


async def serve(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        logger.info("MCP server connected and ready")
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        app = load_config()
        setup_logging(app.logging)
        logger.info("Starting Typesense MCP Server...")
        ctx = create_context(argv, app)
    except (TypesenseMCPError, OSError) as exc:
        logger.error("Error running MCP server", exc_info=True)
        print(f"typesense-mcp: {exc}", file=sys.stderr)
        return 1

    check_health(ctx)
    server = build_server(ctx)
    logger.info("Connecting to stdio transport...")
    try:
        asyncio.run(serve(server))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
