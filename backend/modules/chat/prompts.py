"""
System prompt and follow-up question handling for chat turns.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Tuple

logger = logging.getLogger(__name__)

FOLLOWUP_SEPARATOR = "---FOLLOWUP---"

SYSTEM_PROMPT = f"""
You are a helpful AI assistant. Answer the user's questions clearly and kindly.

When tools are available, use them whenever they help answer the question,
and base your answer on their results.

After every answer you must suggest three follow-up questions the user may
find interesting, in exactly this format:

[answer]

{FOLLOWUP_SEPARATOR}
["question 1", "question 2", "question 3"]

Rules:
1. The {FOLLOWUP_SEPARATOR} separator must be on its own line after the answer.
2. The follow-up questions must be a valid JSON array of strings.
3. The follow-up questions must relate closely to the answer.
""".strip()


def split_followups(text: str) -> Tuple[str, List[str]]:
    """Split an answer from its trailing follow-up questions.

    Best effort: malformed or missing JSON yields no suggestions.
    """
    if FOLLOWUP_SEPARATOR not in text:
        return text, []

    answer, _, tail = text.partition(FOLLOWUP_SEPARATOR)
    answer = answer.rstrip()
    try:
        parsed = json.loads(tail.strip())
    except (json.JSONDecodeError, ValueError):
        logger.debug("Follow-up block is not valid JSON, ignoring")
        return answer, []

    if not isinstance(parsed, list):
        return answer, []
    return answer, [str(q) for q in parsed if isinstance(q, (str, int, float))]


def history_to_contents(history: Iterable[Any]) -> List[Dict[str, Any]]:
    """Convert prior chat messages to text-only provider contents.

    Function call and response parts from earlier turns are not replayed.
    """
    contents = []
    for message in history or []:
        if isinstance(message, dict):
            role, text = message.get("role"), message.get("text")
        else:
            role, text = getattr(message, "role", None), getattr(message, "text", None)
        if not text:
            continue
        contents.append({
            "role": "model" if role == "model" else "user",
            "parts": [{"text": text}],
        })
    return contents
