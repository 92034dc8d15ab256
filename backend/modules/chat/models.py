"""
Chat turn data models
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class HistoryRole(str, Enum):
    USER = "user"
    MODEL = "model"


class HistoryMessage(BaseModel):
    """One prior message of the conversation, text only."""
    role: str = HistoryRole.USER.value
    text: str = ""


class ToolCallRecord(BaseModel):
    """One executed tool invocation within a single chat turn.

    Exactly one of ``result`` / ``error`` is set.
    """
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None
    error: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
