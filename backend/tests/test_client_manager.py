"""
Tests for the MCP connection registry.
"""

import asyncio

import pytest

from fakes import FakeChannelFactory, FakeSession, make_config


class TestConnect:

    async def test_connect_success(self, manager, channel_factory):
        from modules.mcp.config import ConnectionStatus

        result = await manager.connect(make_config("s1"))

        assert result.success is True
        assert result.error is None
        status = manager.get_server_status("s1")
        assert status.status == ConnectionStatus.CONNECTED
        assert status.connected_at is not None
        assert manager.is_connected("s1")
        assert manager.get_client("s1") is channel_factory.sessions["s1"]

    async def test_connect_is_idempotent(self, manager, channel_factory):
        await manager.connect(make_config("s1"))
        connected_at = manager.get_server_status("s1").connected_at
        channel = channel_factory.channels["s1"]

        result = await manager.connect(make_config("s1"))

        assert result.success is True
        assert channel_factory.opened == ["s1"]
        assert manager.get_server_status("s1").connected_at == connected_at
        assert channel_factory.channels["s1"] is channel
        assert channel.closed is False

    async def test_connect_failure_is_recorded(self):
        from modules.mcp.client_manager import MCPClientManager
        from modules.mcp.config import ConnectionStatus
        from modules.mcp.errors import NotConnectedError

        factory = FakeChannelFactory(failures={"s1": RuntimeError("spawn npx ENOENT")})
        manager = MCPClientManager(channel_factory=factory)

        result = await manager.connect(make_config("s1"))

        assert result.success is False
        assert result.error == "spawn npx ENOENT"
        status = manager.get_server_status("s1")
        assert status.status == ConnectionStatus.ERROR
        assert status.error == "spawn npx ENOENT"
        assert status.connected_at is None
        with pytest.raises(NotConnectedError):
            manager.get_client("s1")

    async def test_retry_after_error(self):
        from modules.mcp.client_manager import MCPClientManager

        factory = FakeChannelFactory(failures={"s1": RuntimeError("down")})
        manager = MCPClientManager(channel_factory=factory)
        await manager.connect(make_config("s1"))

        del factory.failures["s1"]
        result = await manager.connect(make_config("s1"))

        assert result.success is True
        assert factory.opened == ["s1", "s1"]
        assert manager.is_connected("s1")

    async def test_concurrent_connects_open_one_channel(self):
        from modules.mcp.client_manager import MCPClientManager
        from modules.mcp.config import ConnectionStatus

        gate = asyncio.Event()
        factory = FakeChannelFactory(gate=gate)
        manager = MCPClientManager(channel_factory=factory)

        first = asyncio.create_task(manager.connect(make_config("s1")))
        second = asyncio.create_task(manager.connect(make_config("s1")))
        await asyncio.sleep(0)

        assert manager.get_server_status("s1").status == ConnectionStatus.CONNECTING

        gate.set()
        results = await asyncio.gather(first, second)

        assert all(r.success for r in results)
        assert factory.opened == ["s1"]

    async def test_client_unavailable_while_connecting(self):
        from modules.mcp.client_manager import MCPClientManager
        from modules.mcp.config import ConnectionStatus
        from modules.mcp.errors import NotConnectedError

        gate = asyncio.Event()
        manager = MCPClientManager(channel_factory=FakeChannelFactory(gate=gate))

        pending = asyncio.create_task(manager.connect(make_config("s1")))
        await asyncio.sleep(0)

        assert manager.get_server_status("s1").status == ConnectionStatus.CONNECTING
        assert manager.is_connected("s1") is False
        assert manager.get_connected_clients(["s1"]) == []
        with pytest.raises(NotConnectedError):
            manager.get_client("s1")

        gate.set()
        await pending
        assert manager.is_connected("s1")

    async def test_disconnect_waits_for_pending_connect(self):
        from modules.mcp.client_manager import MCPClientManager
        from modules.mcp.errors import NotConnectedError

        gate = asyncio.Event()
        factory = FakeChannelFactory(gate=gate)
        manager = MCPClientManager(channel_factory=factory)

        connecting = asyncio.create_task(manager.connect(make_config("s1")))
        await asyncio.sleep(0)
        disconnecting = asyncio.create_task(manager.disconnect("s1"))
        await asyncio.sleep(0)

        assert not disconnecting.done()

        gate.set()
        connected, disconnected = await asyncio.gather(connecting, disconnecting)

        assert connected.success is True
        assert disconnected.success is True
        assert factory.channels["s1"].closed is True
        assert manager.get_server_status("s1") is None
        assert manager.is_connected("s1") is False
        with pytest.raises(NotConnectedError):
            manager.get_client("s1")

    async def test_different_servers_connect_independently(self, manager, channel_factory):
        await asyncio.gather(
            manager.connect(make_config("a")),
            manager.connect(make_config("b", "sse")),
        )
        assert sorted(channel_factory.opened) == ["a", "b"]


class TestDisconnect:

    async def test_disconnect_closes_channel(self, manager, channel_factory):
        await manager.connect(make_config("s1"))
        channel = channel_factory.channels["s1"]

        result = await manager.disconnect("s1")

        assert result.success is True
        assert channel.closed
        assert manager.get_server_status("s1") is None
        assert not manager.is_connected("s1")

    async def test_disconnect_unknown_is_noop(self, manager):
        result = await manager.disconnect("missing")
        assert result.success is True

    async def test_disconnect_errored_entry(self):
        from modules.mcp.client_manager import MCPClientManager

        factory = FakeChannelFactory(failures={"s1": RuntimeError("down")})
        manager = MCPClientManager(channel_factory=factory)
        await manager.connect(make_config("s1"))

        result = await manager.disconnect("s1")

        assert result.success is True
        assert manager.get_status() == []

    async def test_close_failure_still_removes_entry(self):
        from modules.mcp.client_manager import MCPClientManager

        factory = FakeChannelFactory(close_errors={"s1": RuntimeError("broken pipe")})
        manager = MCPClientManager(channel_factory=factory)
        await manager.connect(make_config("s1"))

        result = await manager.disconnect("s1")

        assert result.success is False
        assert result.error == "broken pipe"
        assert manager.get_server_status("s1") is None

    async def test_disconnect_all(self):
        from modules.mcp.client_manager import MCPClientManager

        factory = FakeChannelFactory(close_errors={"b": RuntimeError("stuck")})
        manager = MCPClientManager(channel_factory=factory)
        for server_id in ("a", "b", "c"):
            await manager.connect(make_config(server_id))

        await manager.disconnect_all()

        assert manager.get_status() == []
        assert all(channel.closed for channel in factory.channels.values())


class TestQueries:

    async def test_get_client_unknown(self, manager):
        from modules.mcp.errors import NotConnectedError

        with pytest.raises(NotConnectedError, match="Server 'nope' is not connected"):
            manager.get_client("nope")

    async def test_get_connected_clients_filters_and_orders(self):
        from modules.mcp.client_manager import MCPClientManager

        sessions = {"a": FakeSession(), "b": FakeSession(), "c": FakeSession()}
        factory = FakeChannelFactory(sessions=sessions, failures={"c": RuntimeError("down")})
        manager = MCPClientManager(channel_factory=factory)
        for server_id in ("a", "b", "c"):
            await manager.connect(make_config(server_id))

        assert [sid for sid, _ in manager.get_connected_clients()] == ["a", "b"]

        subset = manager.get_connected_clients(["b", "c", "a", "zzz"])
        assert [sid for sid, _ in subset] == ["b", "a"]
        assert subset[0][1] is sessions["b"]

    async def test_status_wire_format(self, manager):
        await manager.connect(make_config("s1"))

        wire = manager.get_status()[0].to_wire()

        assert wire["serverId"] == "s1"
        assert wire["status"] == "connected"
        assert isinstance(wire["connectedAt"], int)
        assert "error" not in wire
