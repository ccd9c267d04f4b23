"""Message normalization.

Turns raw provider message text into display-ready text. Both the live
send path and the history path go through `normalize_message_text`.
"""

import re

from shared.models import ChatMessage, MessageRole, ProviderMessage
from orchestrator.prompts import UNSUPPORTED_ASSISTANT_CONTENT, UNSUPPORTED_USER_CONTENT

RTL_EMBEDDING_START = "\u202b"
RTL_EMBEDDING_END = "\u202c"

# Provider citation markers such as 【4:0†plan.pdf】; adjacent markers are one run
CITATION_MARKERS = re.compile(r"(\s*)【[^】]*】(?:\s*【[^】]*】)*(\s*)")

# The source phrase the assistant is instructed not to write
SOURCE_PHRASE = re.compile(r'(\s*)\(המידע מופיע במסמך "[^"]*"\)(\s*)')

HEBREW_CHARACTER = re.compile(r"[\u0590-\u05FF]")


def _surviving_whitespace(match: re.Match[str]) -> str:
    """Pick the side that keeps line structure: a newline wins, then length."""
    before, after = match.group(1), match.group(2)
    if ("\n" in before) != ("\n" in after):
        return before if "\n" in before else after
    return max(before, after, key=len)


def _remove(pattern: re.Pattern[str], text: str) -> str:
    """Delete every match, keeping one side's whitespace so words stay apart."""
    return pattern.sub(_surviving_whitespace, text)


def contains_hebrew(text: str) -> bool:
    return HEBREW_CHARACTER.search(text) is not None


def strip_citations(text: str) -> str:
    """Remove citation markers and the instructed source phrase, then trim."""
    text = _remove(CITATION_MARKERS, text)
    text = _remove(SOURCE_PHRASE, text)
    return text.strip()


def normalize_message_text(text: str, role: MessageRole | str = MessageRole.ASSISTANT) -> str:
    """
    Normalize raw message text for display.

    Citation markers and the instructed source phrase are removed, the
    result is trimmed, and assistant text containing Hebrew is wrapped in
    right-to-left embedding marks. May return an empty string; callers
    decide what to show instead.

    Args:
        text: Raw message text from the provider
        role: Author of the message; only assistant text gets RTL wrapping

    Returns:
        Display-ready text
    """
    cleaned = strip_citations(text or "")

    if MessageRole(role) == MessageRole.ASSISTANT and contains_hebrew(cleaned):
        cleaned = f"{RTL_EMBEDDING_START}{cleaned}{RTL_EMBEDDING_END}"

    return cleaned


def unsupported_content_placeholder(role: MessageRole | str) -> str:
    """Text shown for a message whose content is not text."""
    if MessageRole(role) == MessageRole.ASSISTANT:
        return UNSUPPORTED_ASSISTANT_CONTENT
    return UNSUPPORTED_USER_CONTENT


def to_chat_message(message: ProviderMessage) -> ChatMessage:
    """Build the display form of a provider message."""
    if message.content_type == "text" and message.text is not None:
        content = normalize_message_text(message.text, message.role)
    else:
        content = unsupported_content_placeholder(message.role)

    return ChatMessage(
        id=message.id,
        role=message.role,
        content=content,
        citations=[],
        created_at=message.created_at,
        run_id=message.run_id,
    )
