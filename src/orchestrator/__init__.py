"""Conversation engine.

Manages thread rotation, run execution and polling, message
normalization and document grounding on top of the provider gateway.
"""

from orchestrator.errors import (
    AssistantServiceError,
    GroundingError,
    NoResponseError,
    RotationError,
    RunFailure,
    UploadError,
)
from orchestrator.gateway import ConversationOrchestrator
from orchestrator.grounding import FileGroundingManager
from orchestrator.normalizer import normalize_message_text
from orchestrator.runs import RunExecutor
from orchestrator.threads import ThreadLifecycleManager

__all__ = [
    "AssistantServiceError",
    "GroundingError",
    "NoResponseError",
    "RotationError",
    "RunFailure",
    "UploadError",
    "ConversationOrchestrator",
    "FileGroundingManager",
    "normalize_message_text",
    "RunExecutor",
    "ThreadLifecycleManager",
]
