"""Tests for message normalization."""

import pytest

from shared.models import MessageRole, ProviderMessage
from orchestrator.normalizer import (
    RTL_EMBEDDING_END,
    RTL_EMBEDDING_START,
    normalize_message_text,
    to_chat_message,
)
from orchestrator.prompts import UNSUPPORTED_ASSISTANT_CONTENT, UNSUPPORTED_USER_CONTENT


class TestNormalizeMessageText:
    """Tests for normalize_message_text."""

    def test_strips_single_citation(self):
        """Test the marker and its padding collapse to one space."""
        assert normalize_message_text("Hello 【doc.pdf】 world") == "Hello world"

    @pytest.mark.parametrize("raw, expected", [
        ("Budget is 5M【4:0†budget.xlsx】.", "Budget is 5M."),
        ("【1:2†plan.pdf】Start", "Start"),
        ("a 【x】【y】 b", "a b"),
        ("a 【x】 【y】 b", "a b"),
        ("one【x】two", "onetwo"),
        ("line one【x】\nline two", "line one\nline two"),
        ("only 【a】 and 【b】 here", "only and here"),
    ])
    def test_no_citation_markers_remain(self, raw, expected):
        """Test every marker is removed and surrounding text kept."""
        result = normalize_message_text(raw)
        assert result == expected
        assert "【" not in result and "】" not in result

    @pytest.mark.parametrize("raw, expected", [
        ("Intro.\n\n【4:0†plan.pdf】 Budget is 5M", "Intro.\n\nBudget is 5M"),
        ("Budget is 5M 【4:0†plan.pdf】\n\nNext section", "Budget is 5M\n\nNext section"),
        ("- item one 【a】\n- item two", "- item one\n- item two"),
        ("wide   【a】 gap", "wide   gap"),
    ])
    def test_line_structure_survives(self, raw, expected):
        """Test paragraph and line breaks around a marker are kept."""
        assert normalize_message_text(raw, MessageRole.USER) == expected

    def test_text_without_markers_is_unchanged(self):
        """Test plain text passes through untouched."""
        text = "Concrete pour scheduled for Monday, weather permitting."
        assert normalize_message_text(text) == text

    def test_strips_instructed_source_phrase(self):
        """Test the Hebrew source-document phrase is removed."""
        raw = 'התקציב הוא 5 מיליון (המידע מופיע במסמך "budget.xlsx") לשלב א'
        result = normalize_message_text(raw, MessageRole.USER)
        assert result == "התקציב הוא 5 מיליון לשלב א"

    def test_trims_whitespace(self):
        """Test leading and trailing whitespace is trimmed."""
        assert normalize_message_text("  \n answer \t ") == "answer"

    def test_hebrew_assistant_text_is_wrapped(self):
        """Test assistant Hebrew text gets RTL embedding marks."""
        result = normalize_message_text("שלום 【a.pdf】 עולם", MessageRole.ASSISTANT)
        assert result.startswith(RTL_EMBEDDING_START)
        assert result.endswith(RTL_EMBEDDING_END)
        assert result == f"{RTL_EMBEDDING_START}שלום עולם{RTL_EMBEDDING_END}"

    def test_hebrew_user_text_is_not_wrapped(self):
        """Test user text never gets RTL embedding marks."""
        result = normalize_message_text("שלום עולם", MessageRole.USER)
        assert result == "שלום עולם"
        assert RTL_EMBEDDING_START not in result

    def test_english_assistant_text_is_not_wrapped(self):
        """Test non-Hebrew assistant text is not wrapped."""
        assert normalize_message_text("Hello", "assistant") == "Hello"

    def test_only_markers_yields_empty_string(self):
        """Test text made only of markers normalizes to empty."""
        assert normalize_message_text(" 【a】 【b】 ") == ""

    def test_is_deterministic(self):
        """Test the same input always gives the same output."""
        raw = "תשובה 【x】 סופית"
        assert normalize_message_text(raw) == normalize_message_text(raw)


class TestToChatMessage:
    """Tests for converting provider messages for display."""

    def test_text_message(self):
        """Test a text message is normalized with empty citations."""
        message = ProviderMessage(
            id="msg_1",
            thread_id="thread_1",
            role=MessageRole.ASSISTANT,
            text="Hello 【doc.pdf】 world",
            created_at=10,
            run_id="run_1",
        )

        chat = to_chat_message(message)

        assert chat.content == "Hello world"
        assert chat.citations == []
        assert chat.run_id == "run_1"

    @pytest.mark.parametrize("role, placeholder", [
        (MessageRole.ASSISTANT, UNSUPPORTED_ASSISTANT_CONTENT),
        (MessageRole.USER, UNSUPPORTED_USER_CONTENT),
    ])
    def test_unsupported_content(self, role, placeholder):
        """Test non-text content degrades to a role-specific placeholder."""
        message = ProviderMessage(
            id="msg_2",
            thread_id="thread_1",
            role=role,
            content_type="image_file",
            created_at=11,
        )

        assert to_chat_message(message).content == placeholder

    def test_camel_case_serialization(self):
        """Test wire serialization uses camelCase keys."""
        message = ProviderMessage(
            id="msg_3", thread_id="t", role=MessageRole.USER, text="hi", created_at=12
        )

        data = to_chat_message(message).model_dump(by_alias=True)

        assert data["createdAt"] == 12
        assert data["citations"] == []
