"""
Capability descriptors

Tools, prompts and resources arrive from arbitrary external servers at
runtime, so their schemas are carried as plain property bags rather
than typed per server.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MCPTool(BaseModel):
    """A tool exposed by an MCP server."""
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class PromptArgument(BaseModel):
    name: str
    description: Optional[str] = None
    required: bool = False


class MCPPrompt(BaseModel):
    """A prompt template exposed by an MCP server."""
    name: str
    description: Optional[str] = None
    arguments: List[PromptArgument] = Field(default_factory=list)

    def to_wire(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [arg.model_dump() for arg in self.arguments],
        }


class MCPResource(BaseModel):
    """A readable resource exposed by an MCP server."""
    uri: str
    name: str
    description: Optional[str] = None
    mime_type: Optional[str] = None

    def to_wire(self) -> dict:
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


class ExtractedImage(BaseModel):
    """Inline image payload pulled out of a tool result."""
    type: str = "image"
    data: str
    mime_type: str = "image/webp"
