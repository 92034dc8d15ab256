"""
Tools Bridge for MCP

Converts MCP tool definitions into the function declarations the LLM's
function-calling interface expects, and tool results into function
response payloads.
"""

import logging
from typing import Any, Dict, Iterable, List, Tuple

from .models import MCPTool

logger = logging.getLogger(__name__)


class ToolsBridge:
    """Converts between MCP tools and LLM function declarations."""

    @staticmethod
    def to_function_declaration(tool: MCPTool) -> Dict[str, Any]:
        """Convert one MCP tool to a function declaration.

        Missing ``properties`` or ``required`` default to empty.
        """
        schema = tool.input_schema or {}
        return {
            "name": tool.name,
            "description": tool.description or "",
            "parameters": {
                "type": "object",
                "properties": schema.get("properties") or {},
                "required": list(schema.get("required") or []),
            },
        }

    @staticmethod
    def build_tool_index(
        server_tools: Iterable[Tuple[str, List[MCPTool]]],
    ) -> Tuple[List[Dict[str, Any]], Dict[str, str]]:
        """Merge tools from several servers.

        Args:
            server_tools: ``(server_id, tools)`` pairs in registration order

        Returns:
            Tuple of (function declarations, tool name -> server id). When two
            servers expose the same tool name the later one wins.
        """
        declarations: Dict[str, Dict[str, Any]] = {}
        tool_to_server: Dict[str, str] = {}

        for server_id, tools in server_tools:
            for tool in tools:
                previous = tool_to_server.get(tool.name)
                if previous is not None and previous != server_id:
                    logger.warning(
                        f"Tool name collision: '{tool.name}' from '{server_id}' replaces '{previous}'"
                    )
                declarations[tool.name] = ToolsBridge.to_function_declaration(tool)
                tool_to_server[tool.name] = server_id

        return list(declarations.values()), tool_to_server

    @staticmethod
    def to_function_response(result: Any) -> Dict[str, Any]:
        """Wrap a tool result as a function response payload.

        Objects pass through; anything else is placed under ``result``.
        """
        if isinstance(result, dict):
            return result
        return {"result": result}

    @staticmethod
    def create_tool_summary(server_id: str, tools: List[MCPTool]) -> str:
        """Human-readable listing of a server's tools, used in logs."""
        if not tools:
            return f"No tools available from {server_id}"

        lines = [f"{server_id} ({len(tools)} tools):"]
        for tool in tools:
            desc = tool.description or "No description"
            if len(desc) > 80:
                desc = desc[:77] + "..."
            lines.append(f"  - {tool.name}: {desc}")
        return "\n".join(lines)
