"""
Chat turn orchestration

Drives one user turn through the LLM. When MCP servers are active for
the turn, runs a bounded function-calling loop:

    COLLECTING_TOOLS -> ITERATING (1..max_iterations) -> DONE

Each iteration sends the conversation and the merged tool declarations,
executes any function calls the model returns through the capability
client, and feeds the results back. Without active servers the turn is
a single streamed generation.

Stream framing (tool path only):

    ---TOOLCALL_START---\\n
    <JSON array of tool calls so far>\\n   (after each iteration with calls)
    ---TOOLCALL_END---\\n
    ---IMAGES---\\n<JSON array of URLs>\\n  (only if images were stored)
    <final answer text>
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from modules.llm.gemini_client import FunctionCall, ModelReply
from modules.llm.retry import is_rate_limit_error, with_retry
from modules.mcp.capabilities import CapabilityClient, extract_images, result_error_text
from modules.mcp.client_manager import MCPClientManager
from modules.mcp.errors import NotConnectedError, ToolExecutionError
from modules.mcp.tools_bridge import ToolsBridge

from .image_store import ImageStore
from .models import ToolCallRecord
from .prompts import FOLLOWUP_SEPARATOR, SYSTEM_PROMPT, history_to_contents, split_followups

logger = logging.getLogger(__name__)

TOOLCALL_START = "---TOOLCALL_START---\n"
TOOLCALL_END = "---TOOLCALL_END---\n"
IMAGES_MARKER = "---IMAGES---\n"

MAX_TOOL_ITERATIONS = 5

RATE_LIMIT_MESSAGE = (
    "Sorry, the AI service is receiving too many requests right now. "
    "Please wait a moment and try again."
)
BAD_REQUEST_MESSAGE = (
    "Sorry, the request could not be processed. "
    "Try rephrasing your message or starting a new conversation."
)
GENERIC_ERROR_MESSAGE = "Sorry, an error occurred while generating a response. Please try again."
ITERATION_LIMIT_MESSAGE = (
    "I could not finish this request within the allowed number of tool steps."
)


class ChatLLM(Protocol):
    async def generate(
        self,
        contents: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> ModelReply:
        ...

    async def stream_text(
        self,
        contents: List[Dict[str, Any]],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> AsyncIterator[str]:
        ...


def _is_bad_request(error: BaseException) -> bool:
    for attr in ("status_code", "code"):
        if getattr(error, attr, None) == 400:
            return True
    return "invalid_argument" in str(error).lower()


def _with_followups(answer: str, followups: List[str]) -> str:
    """Append one follow-up block to an answer joined from several replies."""
    if not followups:
        return answer
    return f"{answer}\n\n{FOLLOWUP_SEPARATOR}\n{json.dumps(followups)}"


def user_facing_error(error: BaseException) -> str:
    """Map an unrecoverable turn error to one of three user-facing messages."""
    if is_rate_limit_error(error):
        return RATE_LIMIT_MESSAGE
    if _is_bad_request(error):
        return BAD_REQUEST_MESSAGE
    return GENERIC_ERROR_MESSAGE


class ChatOrchestrator:
    """Runs chat turns against the LLM, optionally with MCP tools."""

    def __init__(
        self,
        manager: MCPClientManager,
        llm: ChatLLM,
        image_store: Optional[ImageStore] = None,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        system_prompt: str = SYSTEM_PROMPT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.manager = manager
        self.capabilities = CapabilityClient(manager)
        self.llm = llm
        self.image_store = image_store
        self.max_iterations = max_iterations
        self.system_prompt = system_prompt
        self._sleep = sleep

    async def stream_turn(
        self,
        message: str,
        history: Optional[Iterable[Any]] = None,
        model: Optional[str] = None,
        enabled_servers: Optional[Iterable[str]] = None,
    ) -> AsyncIterator[str]:
        """Stream the response to one user message as text chunks.

        Never raises once started: failures become the final text.
        """
        contents = history_to_contents(history or [])
        contents.append({"role": "user", "parts": [{"text": message}]})

        server_ids = list(enabled_servers or [])
        active = [sid for sid, _ in self.manager.get_connected_clients(server_ids)] if server_ids else []

        if not active:
            async for chunk in self._stream_plain(contents, model):
                yield chunk
            return

        async for chunk in self._stream_with_tools(contents, model, active):
            yield chunk

    async def _open_stream(
        self, contents: List[Dict[str, Any]], model: Optional[str]
    ) -> Tuple[Optional[str], AsyncIterator[str]]:
        """Start a streamed generation and wait for its first chunk.

        Providers may defer the request until the stream is first read, so
        the first chunk is pulled inside the retried call.
        """
        stream = await self.llm.stream_text(
            list(contents), model=model, system_instruction=self.system_prompt
        )
        first = await anext(stream, None)
        return first, stream

    async def _stream_plain(self, contents: List[Dict[str, Any]], model: Optional[str]) -> AsyncIterator[str]:
        try:
            first, stream = await with_retry(
                lambda: self._open_stream(contents, model),
                sleep=self._sleep,
            )
            if first is not None:
                yield first
            async for text in stream:
                yield text
        except Exception as e:
            logger.error(f"Chat generation failed: {e}")
            yield user_facing_error(e)

    async def _collect_tools(self, server_ids: List[str]) -> Tuple[List[Dict[str, Any]], Dict[str, str]]:
        server_tools = []
        for server_id in server_ids:
            try:
                tools = await self.capabilities.list_tools(server_id)
            except NotConnectedError:
                logger.warning(f"Server '{server_id}' disconnected before tool discovery, skipping")
                continue
            logger.debug(ToolsBridge.create_tool_summary(server_id, tools))
            server_tools.append((server_id, tools))
        return ToolsBridge.build_tool_index(server_tools)

    async def _store_images(self, result: Dict[str, Any]) -> Optional[List[str]]:
        """Upload images found in a tool result; None when the result has none."""
        images = extract_images(result)
        if not images:
            return None

        urls = []
        if self.image_store is None:
            logger.warning(f"Dropping {len(images)} tool image(s): no image store configured")
            return urls
        for image in images:
            url = await self.image_store.upload(image.data, image.mime_type)
            if url:
                urls.append(url)
        return urls

    async def _execute_call(
        self,
        call: FunctionCall,
        tool_to_server: Dict[str, str],
        records: List[ToolCallRecord],
        image_urls: List[str],
    ) -> Optional[Dict[str, Any]]:
        """Run one function call and return its function-response part.

        Returns None for tool names no active server registered.
        """
        server_id = tool_to_server.get(call.name)
        if server_id is None:
            logger.warning(f"Model requested unknown tool '{call.name}', skipping")
            return None

        try:
            result = await self.capabilities.call_tool(server_id, call.name, call.args)
            if result.get("isError"):
                raise ToolExecutionError(call.name, result_error_text(result))
            urls = await self._store_images(result)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Tool call {server_id}/{call.name} failed: {message}")
            records.append(ToolCallRecord(name=call.name, args=call.args, error=message))
            return {"function_response": {"name": call.name, "response": {"error": message}}}

        if urls is not None:
            image_urls.extend(urls)
            payload = {
                "success": True,
                "message": f"The tool produced {len(urls)} image(s); they are shown to the user.",
                "imageUrls": urls,
            }
        else:
            payload = ToolsBridge.to_function_response(result)

        records.append(ToolCallRecord(name=call.name, args=call.args, result=result))
        return {"function_response": {"name": call.name, "response": payload}}

    async def _stream_with_tools(
        self,
        contents: List[Dict[str, Any]],
        model: Optional[str],
        server_ids: List[str],
    ) -> AsyncIterator[str]:
        yield TOOLCALL_START

        records: List[ToolCallRecord] = []
        image_urls: List[str] = []
        accumulated: List[str] = []
        followups: List[str] = []
        final_text = ""

        try:
            declarations, tool_to_server = await self._collect_tools(server_ids)
            logger.info(f"Tool loop with {len(declarations)} tools from {len(server_ids)} server(s)")

            for iteration in range(1, self.max_iterations + 1):
                reply = await with_retry(
                    lambda: self.llm.generate(
                        list(contents),
                        declarations,
                        model=model,
                        system_instruction=self.system_prompt,
                    ),
                    sleep=self._sleep,
                )

                if not reply.parts:
                    final_text = reply.text
                    break

                call_parts = []
                response_parts = []
                for part in reply.parts:
                    if part.function_call is None:
                        if part.text:
                            answer, suggestions = split_followups(part.text)
                            accumulated.append(answer)
                            if suggestions:
                                followups = suggestions
                        continue
                    response = await self._execute_call(
                        part.function_call, tool_to_server, records, image_urls
                    )
                    if response is None:
                        continue
                    call_parts.append(part.as_content_part())
                    response_parts.append(response)

                if not call_parts:
                    final_text = _with_followups("".join(accumulated), followups) or reply.text
                    break

                logger.debug(f"Iteration {iteration}: executed {len(call_parts)} tool call(s)")
                contents.append({"role": "model", "parts": call_parts})
                contents.append({"role": "user", "parts": response_parts})
                yield json.dumps([record.to_wire() for record in records], default=str) + "\n"
            else:
                logger.warning(f"Tool loop stopped after {self.max_iterations} iterations")
                final_text = _with_followups("".join(accumulated), followups) or ITERATION_LIMIT_MESSAGE

        except Exception as e:
            logger.error(f"Tool orchestration failed: {e}")
            yield TOOLCALL_END
            yield user_facing_error(e)
            return

        yield TOOLCALL_END
        if image_urls:
            yield IMAGES_MARKER + json.dumps(image_urls) + "\n"
        yield final_text or ""
