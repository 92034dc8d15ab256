"""
MCP API Routes

REST endpoints for connecting to MCP servers and for listing and
invoking their tools, prompts and resources. Server configurations are
owned by the client and sent with each connect request.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from modules.mcp.capabilities import CapabilityClient
from modules.mcp.config import MCPServerConfig, TransportType
from modules.mcp.errors import NotConnectedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/mcp", tags=["mcp"])


# Request/Response Models

class ConnectRequest(BaseModel):
    """Server configuration sent by the client to open a connection."""
    id: Optional[str] = Field(None, description="Unique server identifier")
    name: Optional[str] = Field(None, description="Display name")
    transport: Optional[str] = Field(None, description="stdio, streamable-http or sse")
    # Stdio fields
    command: Optional[str] = Field(None, description="Command for stdio transport")
    args: List[str] = Field(default_factory=list, description="Command arguments")
    env: Dict[str, str] = Field(default_factory=dict, description="Environment variables")
    # HTTP / SSE fields
    url: Optional[str] = Field(None, description="URL for streamable-http and sse")


class DisconnectRequest(BaseModel):
    server_id: Optional[str] = Field(None, alias="serverId")

    class Config:
        populate_by_name = True


class CallToolRequest(BaseModel):
    """Request to execute an MCP tool."""
    server_id: Optional[str] = Field(None, alias="serverId")
    name: Optional[str] = None
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Tool arguments")

    class Config:
        populate_by_name = True


class GetPromptRequest(BaseModel):
    """Request to render an MCP prompt."""
    server_id: Optional[str] = Field(None, alias="serverId")
    name: Optional[str] = None
    arguments: Dict[str, str] = Field(default_factory=dict, description="Prompt arguments")

    class Config:
        populate_by_name = True


class ReadResourceRequest(BaseModel):
    server_id: Optional[str] = Field(None, alias="serverId")
    uri: Optional[str] = None

    class Config:
        populate_by_name = True


# Helper functions

def get_mcp_components(request: Request):
    """Get the MCP client manager from app state."""
    mcp_client = getattr(request.app.state, 'mcp_client_manager', None)
    if not mcp_client:
        raise HTTPException(status_code=503, detail="MCP module not initialized")
    return mcp_client


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _capability_failure(action: str, error: Exception) -> JSONResponse:
    if isinstance(error, NotConnectedError):
        return _bad_request(str(error))
    logger.error(f"{action} failed: {error}")
    return JSONResponse(status_code=500, content={"error": str(error) or error.__class__.__name__})


# Connection lifecycle

@router.post("/connect")
async def connect_server(request: Request, body: ConnectRequest):
    """Connect to an MCP server described by the request body."""
    mcp_client = get_mcp_components(request)

    def rejected(message: str) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "serverId": body.id, "error": message},
        )

    if not body.id or not body.name or not body.transport:
        return rejected("Missing required fields: id, name, transport")

    try:
        transport = TransportType(body.transport)
    except ValueError:
        return rejected(f"Invalid transport: {body.transport}")

    config = MCPServerConfig(
        id=body.id,
        name=body.name,
        transport=transport,
        command=body.command,
        args=body.args,
        env=body.env,
        url=body.url,
    )
    problem = config.validation_error()
    if problem:
        return rejected(problem)

    result = await mcp_client.connect(config)
    response = {"success": result.success, "serverId": config.id}
    if result.error:
        response["error"] = result.error
    return response


@router.post("/disconnect")
async def disconnect_server(request: Request, body: DisconnectRequest):
    """Disconnect from an MCP server."""
    mcp_client = get_mcp_components(request)

    if not body.server_id:
        return _bad_request("serverId is required")

    result = await mcp_client.disconnect(body.server_id)
    return result.model_dump(exclude_none=True)


@router.get("/status")
async def get_mcp_status(request: Request):
    """Get the connection status of every known server."""
    mcp_client = get_mcp_components(request)
    return {"servers": [status.to_wire() for status in mcp_client.get_status()]}


# Tools

@router.get("/tools")
async def list_tools(request: Request, server_id: Optional[str] = Query(None, alias="serverId")):
    """List tools available from a connected server."""
    if not server_id:
        return _bad_request("serverId is required")

    capabilities = CapabilityClient(get_mcp_components(request))
    try:
        tools = await capabilities.list_tools(server_id)
    except Exception as e:
        return _capability_failure(f"Listing tools on '{server_id}'", e)

    return {"tools": [tool.to_wire() for tool in tools]}


@router.post("/tools")
async def call_tool(request: Request, body: CallToolRequest):
    """Execute a tool on a connected server."""
    if not body.server_id or not body.name:
        return _bad_request("serverId and name are required")

    capabilities = CapabilityClient(get_mcp_components(request))
    try:
        return await capabilities.call_tool(body.server_id, body.name, body.arguments)
    except Exception as e:
        return _capability_failure(f"Tool execution {body.server_id}/{body.name}", e)


# Prompts

@router.get("/prompts")
async def list_prompts(request: Request, server_id: Optional[str] = Query(None, alias="serverId")):
    """List prompts available from a connected server."""
    if not server_id:
        return _bad_request("serverId is required")

    capabilities = CapabilityClient(get_mcp_components(request))
    try:
        prompts = await capabilities.list_prompts(server_id)
    except Exception as e:
        return _capability_failure(f"Listing prompts on '{server_id}'", e)

    return {"prompts": [prompt.to_wire() for prompt in prompts]}


@router.post("/prompts")
async def get_prompt(request: Request, body: GetPromptRequest):
    """Render a prompt on a connected server."""
    if not body.server_id or not body.name:
        return _bad_request("serverId and name are required")

    capabilities = CapabilityClient(get_mcp_components(request))
    try:
        return await capabilities.get_prompt(body.server_id, body.name, body.arguments)
    except Exception as e:
        return _capability_failure(f"Prompt {body.server_id}/{body.name}", e)


# Resources

@router.get("/resources")
async def list_resources(request: Request, server_id: Optional[str] = Query(None, alias="serverId")):
    """List resources available from a connected server."""
    if not server_id:
        return _bad_request("serverId is required")

    capabilities = CapabilityClient(get_mcp_components(request))
    try:
        resources = await capabilities.list_resources(server_id)
    except Exception as e:
        return _capability_failure(f"Listing resources on '{server_id}'", e)

    return {"resources": [resource.to_wire() for resource in resources]}


@router.post("/resources")
async def read_resource(request: Request, body: ReadResourceRequest):
    """Read a resource from a connected server."""
    if not body.server_id or not body.uri:
        return _bad_request("serverId and uri are required")

    capabilities = CapabilityClient(get_mcp_components(request))
    try:
        return await capabilities.read_resource(body.server_id, body.uri)
    except Exception as e:
        return _capability_failure(f"Reading resource {body.uri} on '{body.server_id}'", e)
