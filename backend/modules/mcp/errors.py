"""
Error taxonomy for the MCP chat core.

Connection-level errors are reported as structured results by the
client manager; the classes below are what the individual layers raise.
"""

from typing import Optional


class MCPChatError(Exception):
    """Base class for every error raised by the chat core."""


class ConfigurationError(MCPChatError):
    """A server configuration is missing fields its transport requires."""


class TransportError(MCPChatError):
    """Channel construction or the protocol handshake failed."""


class NotConnectedError(MCPChatError):
    """An operation was attempted against a server that is not connected."""

    def __init__(self, server_id: str):
        self.server_id = server_id
        super().__init__(f"Server '{server_id}' is not connected")


class CapabilityUnsupportedError(MCPChatError):
    """The remote server does not implement an optional capability."""


class ToolExecutionError(MCPChatError):
    """A single tool invocation failed or reported an error result."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(message)


class ProviderError(MCPChatError):
    """The LLM provider rejected or failed a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(ProviderError):
    """The LLM provider reported rate limiting or quota exhaustion."""

    def __init__(self, message: str, status_code: Optional[int] = 429):
        super().__init__(message, status_code=status_code)
