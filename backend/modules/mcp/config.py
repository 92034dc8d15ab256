"""
MCP Configuration and Status Models

Defines the server configuration consumed by the connection layer and
the status/result shapes it reports back to callers. Server
configurations themselves are owned by the client; nothing here
persists them.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class TransportType(str, Enum):
    """MCP transport types."""
    STDIO = "stdio"
    STREAMABLE_HTTP = "streamable-http"
    SSE = "sse"


class ConnectionStatus(str, Enum):
    """Lifecycle state of one server connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class MCPServerConfig(BaseModel):
    """Configuration for an external MCP server."""
    id: str = Field(..., min_length=1, description="Unique server identifier")
    name: str = Field(..., min_length=1, description="Display name")
    transport: TransportType = Field(..., description="stdio, streamable-http or sse")

    # Stdio transport configuration
    command: Optional[str] = Field(None, description="Command to run for stdio transport")
    args: List[str] = Field(default_factory=list, description="Arguments for the command")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment variables")

    # HTTP / SSE transport configuration
    url: Optional[str] = Field(None, description="Endpoint URL for streamable-http and sse")

    class Config:
        frozen = True

    def validation_error(self) -> Optional[str]:
        """Return why this config cannot be connected, or None if it can."""
        if self.transport == TransportType.STDIO and not self.command:
            return "Stdio transport requires 'command'"
        if self.transport in (TransportType.STREAMABLE_HTTP, TransportType.SSE) and not self.url:
            return f"{self.transport.value} transport requires 'url'"
        return None


class MCPServerStatus(BaseModel):
    """Read-only snapshot of a server connection."""
    server_id: str
    status: ConnectionStatus
    error: Optional[str] = None
    connected_at: Optional[int] = None

    def to_wire(self) -> dict:
        payload = {"serverId": self.server_id, "status": self.status.value}
        if self.error is not None:
            payload["error"] = self.error
        if self.connected_at is not None:
            payload["connectedAt"] = self.connected_at
        return payload


class ConnectResult(BaseModel):
    success: bool
    error: Optional[str] = None


class DisconnectResult(BaseModel):
    success: bool
    error: Optional[str] = None
