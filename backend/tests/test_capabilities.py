"""
Tests for the capability client and tool-result helpers.
"""

import pytest
from mcp import types as mcp_types
from mcp.shared.exceptions import McpError

from fakes import FakeSession, make_tool, method_not_found, text_result


# =============================================================================
# Listing
# =============================================================================

class TestListing:

    async def test_list_tools(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1", FakeSession(tools=[
            make_tool("search", "Search the web", {"query": {"type": "string"}}, ["query"]),
        ]))

        tools = await CapabilityClient(manager).list_tools("s1")

        assert [t.name for t in tools] == ["search"]
        wire = tools[0].to_wire()
        assert wire["description"] == "Search the web"
        assert wire["inputSchema"]["required"] == ["query"]

    async def test_list_prompts(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1", FakeSession(prompts=[
            mcp_types.Prompt(
                name="summarize",
                description="Summarize text",
                arguments=[mcp_types.PromptArgument(name="text", required=True)],
            ),
        ]))

        prompts = await CapabilityClient(manager).list_prompts("s1")

        assert prompts[0].name == "summarize"
        assert prompts[0].arguments[0].name == "text"
        assert prompts[0].arguments[0].required is True

    async def test_list_resources(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1", FakeSession(resources=[
            mcp_types.Resource(uri="file:///notes.txt", name="notes", mimeType="text/plain"),
        ]))

        resources = await CapabilityClient(manager).list_resources("s1")

        assert resources[0].to_wire() == {
            "uri": "file:///notes.txt",
            "name": "notes",
            "description": None,
            "mimeType": "text/plain",
        }

    @pytest.mark.parametrize("method", ["list_tools", "list_prompts", "list_resources"])
    async def test_unsupported_capability_is_empty(self, manager, connect, method):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1", FakeSession(failures={method: method_not_found()}))

        assert await getattr(CapabilityClient(manager), method)("s1") == []

    async def test_other_list_errors_propagate(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1", FakeSession(failures={"list_resources": RuntimeError("stream closed")}))

        with pytest.raises(RuntimeError, match="stream closed"):
            await CapabilityClient(manager).list_resources("s1")

    async def test_not_connected(self, manager):
        from modules.mcp.capabilities import CapabilityClient
        from modules.mcp.errors import NotConnectedError

        with pytest.raises(NotConnectedError):
            await CapabilityClient(manager).list_tools("ghost")


# =============================================================================
# Invocation
# =============================================================================

class TestInvocation:

    async def test_call_tool_normalizes_content(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        session = await connect("s1", FakeSession(tool_results={
            "render": mcp_types.CallToolResult(content=[
                mcp_types.TextContent(type="text", text="rendered"),
                mcp_types.ImageContent(type="image", data="aGVsbG8=", mimeType="image/png"),
            ]),
        }))

        result = await CapabilityClient(manager).call_tool("s1", "render", {"scale": 2})

        assert session.calls == [("render", {"scale": 2})]
        assert result == {
            "content": [
                {"type": "text", "text": "rendered"},
                {"type": "image", "data": "aGVsbG8=", "mimeType": "image/png"},
            ],
            "isError": False,
        }

    async def test_call_tool_error_result(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1", FakeSession(tool_results={"fail": text_result("bad input", is_error=True)}))

        result = await CapabilityClient(manager).call_tool("s1", "fail")

        assert result["isError"] is True

    async def test_get_prompt(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1")

        result = await CapabilityClient(manager).get_prompt("s1", "greet", {"name": "Ada"})

        assert result["description"] == "Prompt greet"
        assert result["messages"][0]["role"] == "user"
        assert result["messages"][0]["content"]["type"] == "text"
        assert "Ada" in result["messages"][0]["content"]["text"]

    async def test_read_resource(self, manager, connect):
        from modules.mcp.capabilities import CapabilityClient

        await connect("s1")

        result = await CapabilityClient(manager).read_resource("s1", "file:///notes.txt")

        content = result["contents"][0]
        assert content["uri"] == "file:///notes.txt"
        assert content["mimeType"] == "text/plain"
        assert content["text"] == "hello"
        assert content["blob"] is None


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:

    def test_extract_images(self):
        from modules.mcp.capabilities import extract_images

        result = {"content": [
            {"type": "text", "text": "here you go"},
            {"type": "image", "data": "AAAA", "mimeType": "image/png"},
            {"type": "image", "data": "BBBB"},
            {"type": "image", "data": ""},
        ]}

        images = extract_images(result)

        assert [(i.data, i.mime_type) for i in images] == [
            ("AAAA", "image/png"),
            ("BBBB", "image/webp"),
        ]

    @pytest.mark.parametrize("result", [None, "text", {"content": "nope"}, {"other": []}])
    def test_extract_images_from_non_results(self, result):
        from modules.mcp.capabilities import extract_images

        assert extract_images(result) == []

    def test_result_error_text(self):
        from modules.mcp.capabilities import result_error_text

        assert result_error_text({"content": [
            {"type": "text", "text": "first"},
            {"type": "image", "data": "AAAA"},
            {"type": "text", "text": "second"},
        ]}) == "first\nsecond"
        assert result_error_text({"content": []}) == "Tool reported an error"

    def test_is_method_not_found(self):
        from modules.mcp.capabilities import is_method_not_found
        from modules.mcp.errors import CapabilityUnsupportedError

        assert is_method_not_found(method_not_found())
        assert is_method_not_found(CapabilityUnsupportedError("no prompts"))
        assert is_method_not_found(RuntimeError("MCP error -32601: Method not found"))
        assert not is_method_not_found(
            McpError(mcp_types.ErrorData(code=mcp_types.INVALID_PARAMS, message="bad params"))
        )
        assert not is_method_not_found(RuntimeError("timeout"))
