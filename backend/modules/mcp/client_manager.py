"""
MCP Client Manager

Process-wide registry of connections to external MCP servers. Holds at
most one live channel per server id and is the single point every
capability operation goes through to reach a session.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .config import (
    ConnectionStatus,
    ConnectResult,
    DisconnectResult,
    MCPServerConfig,
    MCPServerStatus,
)
from .errors import NotConnectedError
from .transport import open_channel

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[MCPServerConfig], Awaitable[Any]]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MCPConnection:
    """Connection state for one server id.

    ``channel`` is set only while ``status`` is CONNECTED and ``error`` only
    while it is ERROR.
    """
    config: MCPServerConfig
    status: ConnectionStatus
    channel: Optional[Any] = None
    error: Optional[str] = None
    connected_at: Optional[int] = None

    def snapshot(self) -> MCPServerStatus:
        return MCPServerStatus(
            server_id=self.config.id,
            status=self.status,
            error=self.error,
            connected_at=self.connected_at,
        )


class MCPClientManager:
    """Manages connections to external MCP servers."""

    def __init__(self, channel_factory: Optional[ChannelFactory] = None):
        """Initialize the client manager.

        Args:
            channel_factory: Coroutine building a live channel from a config.
                The returned object must expose ``session`` and ``close()``.
                Defaults to the real MCP transports.
        """
        self._channel_factory = channel_factory or open_channel
        self._connections: Dict[str, MCPConnection] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, server_id: str) -> asyncio.Lock:
        lock = self._locks.get(server_id)
        if lock is None:
            lock = self._locks[server_id] = asyncio.Lock()
        return lock

    async def connect(self, config: MCPServerConfig) -> ConnectResult:
        """Connect to an MCP server.

        Never raises: failures are stored on the connection and returned.
        A server that is already connected is left untouched.
        """
        async with self._lock_for(config.id):
            existing = self._connections.get(config.id)
            if existing and existing.status == ConnectionStatus.CONNECTED:
                logger.info(f"MCP server '{config.name}' already connected")
                return ConnectResult(success=True)

            logger.info(f"Connecting to MCP server '{config.name}' via {config.transport.value}")
            self._connections[config.id] = MCPConnection(
                config=config, status=ConnectionStatus.CONNECTING
            )

            try:
                channel = await self._channel_factory(config)
            except Exception as e:
                message = str(e) or "Connection failed"
                logger.error(f"Failed to connect to MCP server '{config.name}': {message}")
                self._connections[config.id] = MCPConnection(
                    config=config, status=ConnectionStatus.ERROR, error=message
                )
                return ConnectResult(success=False, error=message)

            self._connections[config.id] = MCPConnection(
                config=config,
                status=ConnectionStatus.CONNECTED,
                channel=channel,
                connected_at=_now_ms(),
            )
            logger.info(f"Connected to MCP server '{config.name}'")
            return ConnectResult(success=True)

    async def disconnect(self, server_id: str) -> DisconnectResult:
        """Disconnect from an MCP server and forget it.

        The entry is removed whatever its prior state; an unknown id is a
        successful no-op.
        """
        async with self._lock_for(server_id):
            connection = self._connections.pop(server_id, None)
            if connection is None:
                return DisconnectResult(success=True)

            if connection.status != ConnectionStatus.CONNECTED or connection.channel is None:
                return DisconnectResult(success=True)

            try:
                await connection.channel.close()
            except Exception as e:
                message = str(e) or "Disconnect failed"
                logger.warning(f"Error closing connection to '{server_id}': {message}")
                return DisconnectResult(success=False, error=message)

            logger.info(f"Disconnected from MCP server '{server_id}'")
            return DisconnectResult(success=True)

    async def disconnect_all(self) -> None:
        """Disconnect every server in parallel, best effort."""
        server_ids = list(self._connections.keys())
        if not server_ids:
            return
        results = await asyncio.gather(
            *(self.disconnect(server_id) for server_id in server_ids),
            return_exceptions=True,
        )
        for server_id, result in zip(server_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to disconnect '{server_id}': {result}")
            elif not result.success:
                logger.error(f"Failed to disconnect '{server_id}': {result.error}")

    def get_status(self) -> List[MCPServerStatus]:
        return [connection.snapshot() for connection in self._connections.values()]

    def get_server_status(self, server_id: str) -> Optional[MCPServerStatus]:
        connection = self._connections.get(server_id)
        return connection.snapshot() if connection else None

    def is_connected(self, server_id: str) -> bool:
        connection = self._connections.get(server_id)
        return connection is not None and connection.status == ConnectionStatus.CONNECTED

    def get_client(self, server_id: str) -> Any:
        """Return the live session for a server.

        Raises:
            NotConnectedError: unless the server's status is exactly CONNECTED
        """
        connection = self._connections.get(server_id)
        if (
            connection is None
            or connection.status != ConnectionStatus.CONNECTED
            or connection.channel is None
        ):
            raise NotConnectedError(server_id)
        return connection.channel.session

    def get_connected_clients(
        self, server_ids: Optional[Iterable[str]] = None
    ) -> List[Tuple[str, Any]]:
        """Return ``(server_id, session)`` for every connected server.

        Args:
            server_ids: Optional subset to restrict to, e.g. the servers a user
                enabled for a chat turn. Order follows this argument when given.
        """
        if server_ids is None:
            candidates = list(self._connections.keys())
        else:
            candidates = list(dict.fromkeys(server_ids))

        clients = []
        for server_id in candidates:
            connection = self._connections.get(server_id)
            if (
                connection is not None
                and connection.status == ConnectionStatus.CONNECTED
                and connection.channel is not None
            ):
                clients.append((server_id, connection.channel.session))
        return clients
