"""Base class for schema-validated MCP tool servers.

Pattern: Validated Tool Registry
---------------------------------
Each tool is registered with a Pydantic model describing its arguments.  The
model is the single source for both halves of the contract:

  - ``list_tools`` advertises the model's JSON Schema as ``inputSchema``.
  - ``call_tool`` validates incoming arguments against the model *before*
    the handler runs, so a handler never sees out-of-domain input and no
    network call is made for it.

Handlers receive the validated model instance and return a list of
``TextContent`` blocks.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Awaitable, Callable

import pydantic
from mcp.server import Server
from mcp.types import TextContent, Tool

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any], Awaitable[list[TextContent]]]


class ToolInputError(ValueError):
    """Raised when a tool is unknown or its arguments fail validation."""


@dataclasses.dataclass(frozen=True)
class RegisteredTool:
    tool: Tool
    input_model: type[pydantic.BaseModel]
    handler: ToolHandler


class BaseMCPServer:
    """Scaffolding shared by the tool servers in this package.

    Subclasses must:
      1. Call ``super().__init__(server_name)`` to set up the MCP ``Server``.
      2. Register tools via ``self._register_tool(name, description, model, handler)``.
      3. Call ``self.run()`` to start the stdio event loop.
    """

    def __init__(self, server_name: str) -> None:
        self._server = Server(server_name)
        self._tools: dict[str, RegisteredTool] = {}
        logger.info("MCP server '%s' created", server_name)

    # -- tool registration (called by subclasses) ----------------------------

    def _register_tool(
        self,
        name: str,
        description: str,
        input_model: type[pydantic.BaseModel],
        handler: ToolHandler,
    ) -> None:
        self._tools[name] = RegisteredTool(
            tool=Tool(
                name=name,
                description=description,
                inputSchema=input_model.model_json_schema(),
            ),
            input_model=input_model,
            handler=handler,
        )

    def list_tools(self) -> list[Tool]:
        return [registered.tool for registered in self._tools.values()]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """Validate *arguments* for tool *name* and run its handler.

        Raises ``ToolInputError`` for unknown tools and invalid arguments.
        """
        registered = self._tools.get(name)
        if registered is None:
            raise ToolInputError(f"Unknown tool: {name}")
        try:
            args = registered.input_model.model_validate(arguments or {})
        except pydantic.ValidationError as exc:
            logger.info("Rejected arguments for tool %s: %s", name, exc.errors(include_url=False))
            raise ToolInputError(f"Invalid arguments for {name}: {exc}") from exc

        logger.debug("Calling tool %s", name)
        return await registered.handler(args)

    # -- lifecycle ------------------------------------------------------------

    def setup_handlers(self) -> None:
        """Wire up MCP protocol handlers.  Call after all tools are registered."""
        server = self._server

        @server.list_tools()
        async def list_tools() -> list[Tool]:
            return self.list_tools()

        @server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            return await self.dispatch(name, arguments)

    async def run(self) -> None:
        """Start the MCP server on stdio."""
        from mcp.server.stdio import stdio_server

        self.setup_handlers()
        async with stdio_server() as (read_stream, write_stream):
            await self._server.run(
                read_stream,
                write_stream,
                self._server.create_initialization_options(),
            )


def text_result(text: str) -> list[TextContent]:
    """Wrap *text* in the single-block envelope every tool returns."""
    return [TextContent(type="text", text=text)]
