"""
MCP (Model Context Protocol) Module

Connects to external MCP servers and exposes their tools, prompts and
resources to the chat orchestration loop.

Components:
- create_transport / ServerChannel: builds stdio, streamable-http and sse channels
- MCPClientManager: process-wide registry of live connections
- CapabilityClient: list/call tools, prompts and resources on one server
- ToolsBridge: converts MCP tools to LLM function declarations
"""

from .capabilities import CapabilityClient, extract_images
from .client_manager import MCPClientManager
from .config import ConnectionStatus, MCPServerConfig, MCPServerStatus, TransportType
from .errors import (
    CapabilityUnsupportedError,
    ConfigurationError,
    MCPChatError,
    NotConnectedError,
    ProviderError,
    RateLimitError,
    ToolExecutionError,
    TransportError,
)
from .models import ExtractedImage, MCPPrompt, MCPResource, MCPTool
from .tools_bridge import ToolsBridge
from .transport import ServerChannel, create_transport, open_channel

__all__ = [
    'CapabilityClient',
    'extract_images',
    'MCPClientManager',
    'ConnectionStatus',
    'MCPServerConfig',
    'MCPServerStatus',
    'TransportType',
    'MCPChatError',
    'ConfigurationError',
    'TransportError',
    'NotConnectedError',
    'CapabilityUnsupportedError',
    'ToolExecutionError',
    'ProviderError',
    'RateLimitError',
    'ExtractedImage',
    'MCPPrompt',
    'MCPResource',
    'MCPTool',
    'ToolsBridge',
    'ServerChannel',
    'create_transport',
    'open_channel',
]
