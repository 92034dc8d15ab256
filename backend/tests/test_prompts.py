"""
Tests for system prompt helpers: follow-up splitting and history conversion.
"""

from modules.chat.models import HistoryMessage
from modules.chat.prompts import FOLLOWUP_SEPARATOR, SYSTEM_PROMPT, history_to_contents, split_followups


class TestSplitFollowups:

    def test_answer_with_followups(self):
        text = f'Paris is the capital.\n\n{FOLLOWUP_SEPARATOR}\n["Population?", "History?", "Food?"]'

        answer, suggestions = split_followups(text)

        assert answer == "Paris is the capital."
        assert suggestions == ["Population?", "History?", "Food?"]

    def test_no_separator(self):
        assert split_followups("Just an answer") == ("Just an answer", [])

    def test_malformed_json(self):
        answer, suggestions = split_followups(f"Answer\n{FOLLOWUP_SEPARATOR}\n[\"unterminated")

        assert answer == "Answer"
        assert suggestions == []

    def test_non_list_json(self):
        assert split_followups(f'Answer\n{FOLLOWUP_SEPARATOR}\n{{"q": 1}}') == ("Answer", [])

    def test_system_prompt_mentions_separator(self):
        assert FOLLOWUP_SEPARATOR in SYSTEM_PROMPT


class TestHistoryToContents:

    def test_roles_and_text(self):
        contents = history_to_contents([
            {"role": "user", "text": "hi"},
            {"role": "model", "text": "hello"},
            {"role": "assistant", "text": "treated as user"},
        ])

        assert contents == [
            {"role": "user", "parts": [{"text": "hi"}]},
            {"role": "model", "parts": [{"text": "hello"}]},
            {"role": "user", "parts": [{"text": "treated as user"}]},
        ]

    def test_skips_empty_messages(self):
        contents = history_to_contents([
            HistoryMessage(role="user", text=""),
            HistoryMessage(role="model", text="kept"),
        ])

        assert contents == [{"role": "model", "parts": [{"text": "kept"}]}]

    def test_empty_history(self):
        assert history_to_contents([]) == []
        assert history_to_contents(None) == []
