"""
FastAPI backend for the MCP Chat API
Streams Gemini chat turns and bridges them to external MCP servers
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware
import os
import time
from datetime import datetime
from pathlib import Path
from contextlib import asynccontextmanager

# Import enhanced logger
from enhanced_logger import enhanced_logger as logger

from modules.chat import MAX_TOOL_ITERATIONS, ChatOrchestrator, LocalImageStore
from modules.llm import DEFAULT_MODEL, GeminiChatClient
from modules.mcp import ConnectionStatus, MCPClientManager
from routes import chat_router, mcp_router

CHAT_IMAGE_DIR = os.getenv("CHAT_IMAGE_DIR", "data/chat-images")
CHAT_IMAGE_BASE_URL = os.getenv("CHAT_IMAGE_BASE_URL", "/chat-images").rstrip("/")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]


def build_chat_orchestrator(app: FastAPI):
    """Create the chat orchestrator, or None when no Gemini key is configured."""
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        logger.warning("GEMINI_API_KEY is not set; /api/v1/chat will return 500")
        return None

    model = os.getenv("DEFAULT_CHAT_MODEL", DEFAULT_MODEL)
    max_iterations = int(os.getenv("MAX_TOOL_ITERATIONS", str(MAX_TOOL_ITERATIONS)))
    logger.log_startup("chat", model=model, max_iterations=max_iterations)

    return ChatOrchestrator(
        app.state.mcp_client_manager,
        GeminiChatClient(api_key, default_model=model),
        image_store=app.state.image_store,
        max_iterations=max_iterations,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting MCP Chat API")

    app.state.mcp_client_manager = MCPClientManager()
    app.state.image_store = LocalImageStore(Path(CHAT_IMAGE_DIR), base_url=CHAT_IMAGE_BASE_URL)
    logger.log_startup("image_store", directory=CHAT_IMAGE_DIR, base_url=CHAT_IMAGE_BASE_URL)

    try:
        app.state.chat_orchestrator = build_chat_orchestrator(app)
    except Exception as e:
        logger.error(f"Failed to initialize chat: {e}")
        app.state.chat_orchestrator = None

    yield

    # Shutdown
    logger.info("Shutting down MCP Chat API")
    await app.state.mcp_client_manager.disconnect_all()


# Create FastAPI app
app = FastAPI(
    title="MCP Chat API",
    description="Chat with Gemini using tools from connected MCP servers",
    version="1.0.0",
    lifespan=lifespan
)


# Create a logging middleware
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        # Streamed chat bodies are still running here; this is time to first byte
        duration = time.time() - start_time
        logger.log_api_call(
            request.method,
            request.url.path,
            response.status_code,
            duration
        )

        return response


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

app.include_router(mcp_router)
app.include_router(chat_router)

# Images extracted from tool results; the store creates the directory at startup
app.mount(CHAT_IMAGE_BASE_URL, StaticFiles(directory=CHAT_IMAGE_DIR, check_dir=False), name="chat-images")


# Health check endpoint
@app.get("/health")
async def health_check(request: Request):
    """API health check"""
    manager = request.app.state.mcp_client_manager
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "chat_configured": request.app.state.chat_orchestrator is not None,
        "connected_servers": len([
            s for s in manager.get_status() if s.status == ConnectionStatus.CONNECTED
        ]),
    }


if __name__ == "__main__":
    import uvicorn

    # Configure custom uvicorn logging to suppress default logs
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "null": {
                "class": "logging.NullHandler",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["null"], "level": "WARNING"},
            "uvicorn.error": {"handlers": ["null"], "level": "WARNING"},
            "uvicorn.access": {"handlers": ["null"], "level": "WARNING"},
        },
    }

    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8700")),
        log_config=log_config,
    )
