"""Shared configuration, logging and data models for the Project Assistant platform."""

from shared.models import (
    AssistantInfo,
    Attachment,
    ChatMessage,
    GroundingResult,
    MessageRole,
    ProviderMessage,
    ResponseEnvelope,
    RotationResult,
    Run,
    RunStatus,
    VectorStoreFile,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "AssistantInfo",
    "Attachment",
    "ChatMessage",
    "GroundingResult",
    "MessageRole",
    "ProviderMessage",
    "ResponseEnvelope",
    "RotationResult",
    "Run",
    "RunStatus",
    "VectorStoreFile",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
