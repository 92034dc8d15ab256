"""
Pytest configuration and fixtures for the MCP Chat API tests.

Sets up the Python path to import backend modules and points file
storage at a temporary directory. No test talks to a real MCP server or
to Gemini; see fakes.py for the stand-ins.
"""

import sys
import os
from pathlib import Path

import pytest

# Add the backend directory to the Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Set environment variables for testing
os.environ.setdefault("CHAT_IMAGE_DIR", "/tmp/test_chat_images")
os.environ.pop("GEMINI_API_KEY", None)

from fakes import FakeChannelFactory, FakeImageStore, FakeLLM, FakeSession, make_config  # noqa: E402


@pytest.fixture
def channel_factory():
    return FakeChannelFactory()


@pytest.fixture
def manager(channel_factory):
    from modules.mcp.client_manager import MCPClientManager
    return MCPClientManager(channel_factory=channel_factory)


@pytest.fixture
def connect(manager, channel_factory):
    """Connect a fake server with the given session and return it."""
    async def _connect(server_id: str = "s1", session: FakeSession = None):
        if session is not None:
            channel_factory.sessions[server_id] = session
        result = await manager.connect(make_config(server_id))
        assert result.success
        return channel_factory.sessions[server_id]
    return _connect


@pytest.fixture
def image_store():
    return FakeImageStore()


@pytest.fixture
def no_sleep():
    """Records retry delays instead of sleeping."""
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def fake_llm():
    return FakeLLM()
