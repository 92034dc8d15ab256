"""
Chat API Routes

Streams one chat turn as plain text. When MCP servers are enabled for
the turn, the stream carries tool-call progress frames ahead of the
final answer.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from modules.chat.models import HistoryMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["chat"])


class ChatRequest(BaseModel):
    message: Optional[str] = None
    history: List[HistoryMessage] = Field(default_factory=list)
    model: Optional[str] = None
    enabled_servers: List[str] = Field(default_factory=list, alias="enabledServers")

    class Config:
        populate_by_name = True


@router.post("/chat")
async def chat(request: Request, body: ChatRequest):
    """Run one chat turn and stream the response."""
    if not body.message:
        return JSONResponse(status_code=400, content={"error": "message is required"})

    orchestrator = getattr(request.app.state, 'chat_orchestrator', None)
    if orchestrator is None:
        logger.error("Chat requested but GEMINI_API_KEY is not configured")
        return JSONResponse(status_code=500, content={"error": "GEMINI_API_KEY is not configured"})

    logger.info(
        f"Chat turn: model={body.model or 'default'}, "
        f"history={len(body.history)}, servers={body.enabled_servers}"
    )

    return StreamingResponse(
        orchestrator.stream_turn(
            body.message,
            history=body.history,
            model=body.model,
            enabled_servers=body.enabled_servers,
        ),
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
