"""
MCP Transport Factory

Builds the JSON-RPC channel for a server configuration. Three transports
are supported and selected solely by ``config.transport``:

- stdio:           child process speaking over stdin/stdout
- streamable-http: MCP streamable HTTP endpoint
- sse:             legacy server-sent-events endpoint

A ``ServerChannel`` owns one live ``ClientSession``. The transport and
session context managers are entered and exited inside a dedicated owner
task, because the SDK's task groups must be closed from the task that
opened them and connect/disconnect arrive on different requests.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Tuple

import httpx
from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from .config import MCPServerConfig, TransportType
from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

CLIENT_NAME = "mcp-chat-client"
DEFAULT_CONNECT_TIMEOUT = 30.0


def _validate_url(url: str) -> str:
    try:
        parsed = httpx.URL(url)
    except Exception as e:
        raise TransportError(f"Invalid URL '{url}': {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise TransportError(f"Invalid URL '{url}': expected an http(s) address")
    return str(parsed)


@asynccontextmanager
async def _http_streams(url: str) -> AsyncIterator[Tuple[Any, Any]]:
    # streamablehttp_client also yields a session-id getter we have no use for
    async with streamablehttp_client(url) as (read_stream, write_stream, _):
        yield read_stream, write_stream


def create_transport(config: MCPServerConfig):
    """Return an async context manager yielding ``(read_stream, write_stream)``.

    Raises:
        ConfigurationError: required fields for the transport are missing
        TransportError: the transport could not be constructed
    """
    problem = config.validation_error()
    if problem:
        raise ConfigurationError(problem)

    try:
        if config.transport == TransportType.STDIO:
            env = None
            if config.env:
                env = dict(os.environ)
                env.update(config.env)
            params = StdioServerParameters(
                command=config.command,
                args=list(config.args),
                env=env,
            )
            logger.debug(f"stdio transport for '{config.id}': {config.command} {' '.join(config.args)}")
            return stdio_client(params)

        if config.transport == TransportType.STREAMABLE_HTTP:
            url = _validate_url(config.url)
            logger.debug(f"streamable-http transport for '{config.id}': {url}")
            return _http_streams(url)

        if config.transport == TransportType.SSE:
            url = _validate_url(config.url)
            logger.debug(f"sse transport for '{config.id}': {url}")
            return sse_client(url)
    except TransportError:
        raise
    except Exception as e:
        raise TransportError(f"Failed to create {config.transport.value} transport: {e}") from e

    raise ConfigurationError(f"Unsupported transport: {config.transport}")


def _describe(exc: BaseException) -> str:
    """Flatten exception groups raised by the SDK's task groups into one message."""
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    return str(exc) or exc.__class__.__name__


class ServerChannel:
    """A live, initialized MCP session bound to one server configuration."""

    def __init__(self, config: MCPServerConfig, connect_timeout: float = DEFAULT_CONNECT_TIMEOUT):
        self.config = config
        self.connect_timeout = connect_timeout
        self.session: Optional[ClientSession] = None
        self._task: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Future] = None
        self._closing = asyncio.Event()

    async def open(self) -> "ServerChannel":
        """Start the transport, run the initialize handshake and wait until ready."""
        transport = create_transport(self.config)

        loop = asyncio.get_running_loop()
        self._ready = loop.create_future()
        self._task = asyncio.create_task(
            self._run(transport), name=f"mcp-channel-{self.config.id}"
        )

        try:
            await asyncio.wait_for(asyncio.shield(self._ready), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            self._ready.cancel()
            self._task.cancel()
            raise TransportError(
                f"Timed out after {self.connect_timeout:.0f}s connecting to '{self.config.name}'"
            )
        except Exception as e:
            raise TransportError(_describe(e)) from e

        return self

    async def _run(self, transport) -> None:
        try:
            async with transport as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    self.session = session
                    self._ready.set_result(None)
                    logger.debug(f"Channel for '{self.config.id}' ready")
                    await self._closing.wait()
        except Exception as e:
            if not self._ready.done():
                self._ready.set_exception(e)
            else:
                logger.warning(f"Channel for '{self.config.id}' terminated: {_describe(e)}")
        finally:
            self.session = None
            if not self._ready.done():
                self._ready.set_exception(TransportError("Connection closed during handshake"))

    async def close(self) -> None:
        """Close the session and its transport, waiting for the owner task to finish."""
        self._closing.set()
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None


async def open_channel(config: MCPServerConfig) -> ServerChannel:
    """Default channel factory used by the client manager."""
    return await ServerChannel(config).open()
