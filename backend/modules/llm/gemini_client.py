"""
Gemini chat client

Thin async wrapper over the google-genai SDK exposing the two calls the
chat layer needs: a function-calling generation and a plain text stream.
Provider failures are re-raised as ``RateLimitError`` / ``ProviderError``
so callers can classify them without importing the SDK.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from modules.mcp.errors import ProviderError, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash-001"


@dataclass
class FunctionCall:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReplyPart:
    """One part of a model reply: text, a function call, or neither."""
    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    raw: Optional[Dict[str, Any]] = None

    def as_content_part(self) -> Dict[str, Any]:
        """Part shape to replay in ``contents``; keeps provider fields such as thought signatures."""
        if self.raw is not None:
            return self.raw
        if self.function_call is not None:
            return {"function_call": {"name": self.function_call.name, "args": self.function_call.args}}
        return {"text": self.text or ""}


@dataclass
class ModelReply:
    parts: List[ReplyPart] = field(default_factory=list)
    text: str = ""


def _translate_error(error: genai_errors.APIError) -> ProviderError:
    code = getattr(error, "code", None)
    status = getattr(error, "status", None) or ""
    message = str(error)
    if code == 429 or status == "RESOURCE_EXHAUSTED":
        return RateLimitError(message, status_code=code)
    return ProviderError(message, status_code=code)


def _to_reply(response: types.GenerateContentResponse) -> ModelReply:
    parts: List[ReplyPart] = []
    candidates = response.candidates or []
    if candidates and candidates[0].content and candidates[0].content.parts:
        for part in candidates[0].content.parts:
            if part.thought:
                continue
            call = None
            if part.function_call is not None:
                call = FunctionCall(
                    name=part.function_call.name or "",
                    args=dict(part.function_call.args or {}),
                )
            parts.append(ReplyPart(
                text=part.text,
                function_call=call,
                raw=part.model_dump(exclude_none=True),
            ))

    if parts:
        text = "".join(p.text for p in parts if p.text and p.function_call is None)
    else:
        text = response.text or ""
    return ModelReply(parts=parts, text=text)


class GeminiChatClient:
    """Async Gemini client used by the chat orchestrator."""

    def __init__(self, api_key: str, default_model: str = DEFAULT_MODEL):
        if not api_key:
            raise ValueError("Gemini API key is required. Set GEMINI_API_KEY.")
        self.client = genai.Client(api_key=api_key)
        self.default_model = default_model

    async def generate(
        self,
        contents: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> ModelReply:
        """Single generation with function calling in AUTO mode."""
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=[types.Tool(function_declarations=[
                types.FunctionDeclaration(
                    name=decl["name"],
                    description=decl.get("description", ""),
                    parameters_json_schema=decl.get("parameters"),
                )
                for decl in tools
            ])] if tools else None,
            tool_config=types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(
                    mode=types.FunctionCallingConfigMode.AUTO,
                )
            ) if tools else None,
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=model or self.default_model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            raise _translate_error(e) from e

        return _to_reply(response)

    async def stream_text(
        self,
        contents: List[Dict[str, Any]],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """Open a streaming generation and return an iterator over text chunks.

        The SDK sends the request on the first read of the stream, so the
        first chunk is fetched here. Rate limits and other provider errors
        raise from this coroutine, where the retry policy can see them.
        """
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=model or self.default_model,
                contents=contents,
                config=types.GenerateContentConfig(system_instruction=system_instruction),
            )
            first = await anext(stream, None)
        except genai_errors.APIError as e:
            raise _translate_error(e) from e

        async def chunks() -> AsyncIterator[str]:
            if first is None:
                return
            if first.text:
                yield first.text
            try:
                async for chunk in stream:
                    if chunk.text:
                        yield chunk.text
            except genai_errors.APIError as e:
                raise _translate_error(e) from e

        return chunks()
