"""Core data models for the Project Assistant platform.

Provider-side records (assistants, threads, runs, messages, grounding stores)
and the display-ready message envelope returned to callers.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer
from pydantic.alias_generators import to_camel

FILE_SEARCH_TOOL = {"type": "file_search"}


class MessageRole(str, Enum):
    """Author of a thread message."""
    USER = "user"
    ASSISTANT = "assistant"


class RunStatus(str, Enum):
    """Lifecycle status of a run as reported by the provider."""
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RUN_STATUSES


TERMINAL_RUN_STATUSES = frozenset({
    RunStatus.COMPLETED,
    RunStatus.FAILED,
    RunStatus.CANCELLED,
    RunStatus.EXPIRED,
    RunStatus.INCOMPLETE,
})


class AssistantInfo(BaseModel):
    """An assistant bound to a project."""
    id: str
    name: Optional[str] = None
    instructions: Optional[str] = None
    model: str
    tools: list[dict[str, Any]] = Field(default_factory=list)
    vector_store_ids: list[str] = Field(
        default_factory=list,
        description="Grounding stores referenced by the file_search tool resources"
    )
    created_at: Optional[int] = None


class Attachment(BaseModel):
    """A file attached to a user message, searchable by the assistant."""
    file_id: str
    tools: list[dict[str, Any]] = Field(default_factory=lambda: [dict(FILE_SEARCH_TOOL)])


class ProviderMessage(BaseModel):
    """
    A message as stored in a provider thread.

    Only the first content part is interpreted; `text` is None when that
    part is not text (images, files, empty content).
    """
    id: str
    thread_id: str
    role: MessageRole
    content_type: str = "text"
    text: Optional[str] = None
    created_at: int
    run_id: Optional[str] = None


class RunError(BaseModel):
    """Error detail reported by the provider for a failed run."""
    code: Optional[str] = None
    message: Optional[str] = None


class Run(BaseModel):
    """One execution of an assistant against a thread."""
    id: str
    thread_id: str
    assistant_id: str
    status: RunStatus
    last_error: Optional[RunError] = None


class VectorStoreFile(BaseModel):
    """A file that is a member of a grounding store."""
    id: str
    vector_store_id: str
    status: Optional[str] = None
    created_at: Optional[int] = None


class RotationResult(BaseModel):
    """Outcome of a thread rotation check."""
    thread_id: str
    is_new: bool = False


class GroundingResult(BaseModel):
    """Outcome of attaching a file to an assistant's grounding store."""
    assistant_id: str
    file_id: str
    vector_store_id: str


class WireModel(BaseModel):
    """Base for models serialized to callers with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(WireModel):
    """A display-ready message: citation-free, bidi-corrected."""
    id: str
    role: MessageRole
    content: str
    citations: list[Any] = Field(default_factory=list)
    created_at: int
    run_id: Optional[str] = None


class ResponseEnvelope(ChatMessage):
    """
    Reply to a send, optionally carrying thread rotation info.

    `thread_rotated` and `new_thread_id` are left unset (None) when no
    rotation happened and are then absent from serialized output; callers
    must persist `new_thread_id` when `thread_rotated` is true and strip
    both fields before forwarding.
    """
    thread_rotated: Optional[bool] = None
    new_thread_id: Optional[str] = None

    @model_serializer(mode="wrap")
    def _omit_unset_rotation(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        for key in ("thread_rotated", "threadRotated", "new_thread_id", "newThreadId"):
            if key in data and data[key] is None:
                del data[key]
        return data

    def without_rotation(self) -> ChatMessage:
        """Return the envelope as a plain message, rotation fields dropped."""
        return ChatMessage(**self.model_dump(exclude={"thread_rotated", "new_thread_id"}))
