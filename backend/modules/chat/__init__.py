"""
Chat turn handling: tool orchestration loop, prompts and image storage.
"""

from .image_store import ImageStore, LocalImageStore
from .models import HistoryMessage, ToolCallRecord
from .orchestrator import (
    IMAGES_MARKER,
    MAX_TOOL_ITERATIONS,
    TOOLCALL_END,
    TOOLCALL_START,
    ChatOrchestrator,
    user_facing_error,
)
from .prompts import FOLLOWUP_SEPARATOR, SYSTEM_PROMPT, history_to_contents, split_followups

__all__ = [
    'ImageStore',
    'LocalImageStore',
    'HistoryMessage',
    'ToolCallRecord',
    'IMAGES_MARKER',
    'MAX_TOOL_ITERATIONS',
    'TOOLCALL_END',
    'TOOLCALL_START',
    'ChatOrchestrator',
    'user_facing_error',
    'FOLLOWUP_SEPARATOR',
    'SYSTEM_PROMPT',
    'history_to_contents',
    'split_followups',
]
