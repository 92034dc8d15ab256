"""
LLM provider access for the chat layer.
"""

from .gemini_client import DEFAULT_MODEL, FunctionCall, GeminiChatClient, ModelReply, ReplyPart
from .retry import is_rate_limit_error, with_retry

__all__ = [
    'DEFAULT_MODEL',
    'FunctionCall',
    'GeminiChatClient',
    'ModelReply',
    'ReplyPart',
    'is_rate_limit_error',
    'with_retry',
]
