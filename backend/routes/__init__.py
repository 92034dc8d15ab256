"""
Route modules for the MCP Chat API.
Each module contains a FastAPI APIRouter for a specific feature area.
"""

from .chat import router as chat_router
from .mcp import router as mcp_router

__all__ = [
    'chat_router',
    'mcp_router',
]
