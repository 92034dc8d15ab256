"""
MCP Capability Client

Per-server tool, prompt and resource operations. Every call resolves the
session through ``MCPClientManager.get_client`` and does not hold on to
it afterwards.
"""

import logging
from typing import Any, Dict, List, Optional

from mcp.shared.exceptions import McpError
from mcp.types import METHOD_NOT_FOUND
from pydantic import AnyUrl

from .client_manager import MCPClientManager
from .errors import CapabilityUnsupportedError
from .models import ExtractedImage, MCPPrompt, MCPResource, MCPTool, PromptArgument

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/webp"


def is_method_not_found(error: BaseException) -> bool:
    """True for the JSON-RPC "method not found" error a server returns for a capability it lacks."""
    if isinstance(error, CapabilityUnsupportedError):
        return True
    if isinstance(error, McpError) and getattr(error.error, "code", None) == METHOD_NOT_FOUND:
        return True
    return str(METHOD_NOT_FOUND) in str(error)


def _content_item_to_dict(item: Any) -> Dict[str, Any]:
    item_type = getattr(item, "type", None)
    if item_type == "text":
        return {"type": "text", "text": item.text}
    if item_type in ("image", "audio"):
        return {"type": item_type, "data": item.data, "mimeType": item.mimeType}
    if item_type == "resource":
        return {"type": "resource", "resource": item.resource.model_dump(mode="json", exclude_none=True)}
    if item_type == "resource_link":
        return {"type": "resource_link", "uri": str(item.uri), "name": item.name}
    return {"type": item_type or "unknown"}


def extract_images(result: Any) -> List[ExtractedImage]:
    """Pull inline image payloads out of a normalized tool result.

    Pure function; items without data are skipped and a missing mime type
    defaults to image/webp.
    """
    if not isinstance(result, dict):
        return []
    content = result.get("content")
    if not isinstance(content, list):
        return []

    images = []
    for item in content:
        if not isinstance(item, dict) or item.get("type") != "image":
            continue
        data = item.get("data")
        if not data:
            continue
        images.append(ExtractedImage(
            data=data,
            mime_type=item.get("mimeType") or DEFAULT_IMAGE_MIME_TYPE,
        ))
    return images


def result_error_text(result: Dict[str, Any]) -> str:
    """Join the text content of an error result into one message."""
    texts = [
        item.get("text", "")
        for item in result.get("content", [])
        if isinstance(item, dict) and item.get("type") == "text"
    ]
    return "\n".join(t for t in texts if t) or "Tool reported an error"


class CapabilityClient:
    """Tool, prompt and resource operations against connected servers."""

    def __init__(self, manager: MCPClientManager):
        self.manager = manager

    async def list_tools(self, server_id: str) -> List[MCPTool]:
        session = self.manager.get_client(server_id)
        try:
            result = await session.list_tools()
        except Exception as e:
            if is_method_not_found(e):
                logger.info(f"Server '{server_id}' does not support tools/list")
                return []
            raise
        return [
            MCPTool(
                name=tool.name,
                description=tool.description,
                input_schema=dict(tool.inputSchema or {}),
            )
            for tool in result.tools
        ]

    async def list_prompts(self, server_id: str) -> List[MCPPrompt]:
        session = self.manager.get_client(server_id)
        try:
            result = await session.list_prompts()
        except Exception as e:
            if is_method_not_found(e):
                logger.info(f"Server '{server_id}' does not support prompts/list")
                return []
            raise
        return [
            MCPPrompt(
                name=prompt.name,
                description=prompt.description,
                arguments=[
                    PromptArgument(
                        name=arg.name,
                        description=arg.description,
                        required=bool(arg.required),
                    )
                    for arg in (prompt.arguments or [])
                ],
            )
            for prompt in result.prompts
        ]

    async def list_resources(self, server_id: str) -> List[MCPResource]:
        session = self.manager.get_client(server_id)
        try:
            result = await session.list_resources()
        except Exception as e:
            if is_method_not_found(e):
                logger.info(f"Server '{server_id}' does not support resources/list")
                return []
            raise
        return [
            MCPResource(
                uri=str(resource.uri),
                name=resource.name,
                description=resource.description,
                mime_type=resource.mimeType,
            )
            for resource in result.resources
        ]

    async def call_tool(
        self,
        server_id: str,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute a tool and return ``{"content": [...], "isError": bool}``."""
        session = self.manager.get_client(server_id)
        logger.debug(f"Calling tool {server_id}/{name} with {arguments}")
        result = await session.call_tool(name, arguments=arguments or {})
        return {
            "content": [_content_item_to_dict(item) for item in result.content],
            "isError": bool(result.isError),
        }

    async def get_prompt(
        self,
        server_id: str,
        name: str,
        arguments: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        session = self.manager.get_client(server_id)
        result = await session.get_prompt(name, arguments=arguments or {})
        return {
            "description": result.description,
            "messages": [
                {
                    "role": message.role,
                    "content": message.content.model_dump(mode="json", exclude_none=True),
                }
                for message in result.messages
            ],
        }

    async def read_resource(self, server_id: str, uri: str) -> Dict[str, Any]:
        session = self.manager.get_client(server_id)
        result = await session.read_resource(AnyUrl(uri))
        return {
            "contents": [
                {
                    "uri": str(content.uri),
                    "mimeType": content.mimeType,
                    "text": getattr(content, "text", None),
                    "blob": getattr(content, "blob", None),
                }
                for content in result.contents
            ]
        }
