"""In-memory provider gateway.

A stateful simulation of the assistant provider for tests and offline
development. Runs advance through a scripted status sequence, one step per
`get_run` call, and post their reply when they reach `completed`.
"""

import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Optional

from shared.config import ProviderSettings
from shared.models import (
    AssistantInfo,
    Attachment,
    MessageRole,
    ProviderMessage,
    Run,
    RunError,
    RunStatus,
    VectorStoreFile,
)
from provider.client import ProviderGateway

DEFAULT_REPLY = "This is a mock response."

DEFAULT_RUN_STATUSES = (RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.COMPLETED)


@dataclass
class RunScript:
    """Status sequence and outcome for one simulated run."""
    statuses: list[RunStatus] = field(default_factory=lambda: list(DEFAULT_RUN_STATUSES))
    reply: Optional[str] = DEFAULT_REPLY
    reply_content_type: str = "text"
    last_error: Optional[RunError] = None
    position: int = 0
    replied: bool = False


class InMemoryProviderGateway(ProviderGateway):
    """Provider gateway that keeps every object in process memory."""

    def __init__(self, settings: Optional[ProviderSettings] = None) -> None:
        self.settings = settings
        self.call_history: list[dict[str, Any]] = []

        self.assistants: dict[str, AssistantInfo] = {}
        self.threads: dict[str, list[ProviderMessage]] = {}
        self.runs: dict[str, Run] = {}
        self.files: dict[str, dict[str, Any]] = {}
        self.vector_stores: dict[str, dict[str, VectorStoreFile]] = {}

        self._scripts: deque[RunScript] = deque()
        self._run_scripts: dict[str, RunScript] = {}
        self._failures: dict[str, deque[Exception]] = {}
        self._ids = itertools.count(1)
        self._timestamps = itertools.count(1_700_000_000)

    # Test controls

    def script_run(
        self,
        statuses: Optional[list[RunStatus]] = None,
        reply: Optional[str] = DEFAULT_REPLY,
        reply_content_type: str = "text",
        last_error: Optional[RunError] = None
    ) -> None:
        """
        Queue the behaviour of the next created run.

        Args:
            statuses: Statuses reported by create_run then each get_run;
                the last one repeats forever
            reply: Assistant text posted on completion (None posts nothing)
            reply_content_type: Content type of the posted reply
            last_error: Error detail reported with the run
        """
        self._scripts.append(RunScript(
            statuses=list(statuses or DEFAULT_RUN_STATUSES),
            reply=reply,
            reply_content_type=reply_content_type,
            last_error=last_error,
        ))

    def fail_next(self, operation: str, error: Exception) -> None:
        """Make the next call to `operation` raise `error`."""
        self._failures.setdefault(operation, deque()).append(error)

    def seed_message(
        self,
        thread_id: str,
        text: Optional[str],
        role: MessageRole = MessageRole.USER,
        run_id: Optional[str] = None,
        content_type: str = "text"
    ) -> ProviderMessage:
        """Insert a message directly, bypassing the call history."""
        message = ProviderMessage(
            id=self._new_id("msg"),
            thread_id=thread_id,
            role=role,
            content_type=content_type,
            text=text if content_type == "text" else None,
            created_at=next(self._timestamps),
            run_id=run_id,
        )
        self.threads.setdefault(thread_id, []).append(message)
        return message

    def call_count(self, operation: str) -> int:
        """Number of recorded calls to `operation`."""
        return sum(1 for call in self.call_history if call["operation"] == operation)

    # Internals

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    def _record(self, operation: str, **arguments: Any) -> None:
        self.call_history.append({"operation": operation, **arguments})
        pending = self._failures.get(operation)
        if pending:
            raise pending.popleft()

    def _thread(self, thread_id: str) -> list[ProviderMessage]:
        if thread_id not in self.threads:
            raise LookupError(f"No thread found with id '{thread_id}'")
        return self.threads[thread_id]

    def _assistant(self, assistant_id: str) -> AssistantInfo:
        if assistant_id not in self.assistants:
            raise LookupError(f"No assistant found with id '{assistant_id}'")
        return self.assistants[assistant_id]

    def _store(self, vector_store_id: str) -> dict[str, VectorStoreFile]:
        if vector_store_id not in self.vector_stores:
            raise LookupError(f"No vector store found with id '{vector_store_id}'")
        return self.vector_stores[vector_store_id]

    # ProviderGateway

    async def create_assistant(
        self,
        name: str,
        instructions: str,
        model: str,
        tools: list[dict[str, Any]]
    ) -> AssistantInfo:
        self._record("create_assistant", name=name, model=model)
        assistant = AssistantInfo(
            id=self._new_id("asst"),
            name=name,
            instructions=instructions,
            model=model,
            tools=tools,
            created_at=next(self._timestamps),
        )
        self.assistants[assistant.id] = assistant
        return assistant.model_copy(deep=True)

    async def get_assistant(self, assistant_id: str) -> AssistantInfo:
        self._record("get_assistant", assistant_id=assistant_id)
        return self._assistant(assistant_id).model_copy(deep=True)

    async def update_assistant_tool_resources(
        self,
        assistant_id: str,
        vector_store_ids: list[str]
    ) -> AssistantInfo:
        self._record(
            "update_assistant_tool_resources",
            assistant_id=assistant_id,
            vector_store_ids=list(vector_store_ids),
        )
        assistant = self._assistant(assistant_id)
        assistant.vector_store_ids = list(vector_store_ids)
        return assistant.model_copy(deep=True)

    async def create_thread(self) -> str:
        self._record("create_thread")
        thread_id = self._new_id("thread")
        self.threads[thread_id] = []
        return thread_id

    async def append_message(
        self,
        thread_id: str,
        role: MessageRole,
        content: str,
        attachments: Optional[list[Attachment]] = None
    ) -> str:
        self._record(
            "append_message",
            thread_id=thread_id,
            role=MessageRole(role),
            content=content,
            attachments=attachments,
        )
        self._thread(thread_id)
        return self.seed_message(thread_id, content, role=MessageRole(role)).id

    async def list_messages(
        self,
        thread_id: str,
        limit: Optional[int] = None,
        order: str = "desc"
    ) -> list[ProviderMessage]:
        self._record("list_messages", thread_id=thread_id, limit=limit, order=order)
        messages = sorted(
            self._thread(thread_id),
            key=lambda m: m.created_at,
            reverse=order == "desc",
        )
        if limit is not None:
            messages = messages[:limit]
        return [m.model_copy() for m in messages]

    async def create_run(self, thread_id: str, assistant_id: str) -> Run:
        self._record("create_run", thread_id=thread_id, assistant_id=assistant_id)
        self._thread(thread_id)
        self._assistant(assistant_id)

        script = self._scripts.popleft() if self._scripts else RunScript()
        run = Run(
            id=self._new_id("run"),
            thread_id=thread_id,
            assistant_id=assistant_id,
            status=script.statuses[0],
        )
        self.runs[run.id] = run
        self._run_scripts[run.id] = script
        self._settle(run, script)
        return run.model_copy()

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        self._record("get_run", thread_id=thread_id, run_id=run_id)
        if run_id not in self.runs:
            raise LookupError(f"No run found with id '{run_id}'")

        run = self.runs[run_id]
        script = self._run_scripts[run_id]
        if script.position < len(script.statuses) - 1:
            script.position += 1
        run.status = script.statuses[script.position]
        self._settle(run, script)
        return run.model_copy()

    def _settle(self, run: Run, script: RunScript) -> None:
        """Post the reply or error once the run reaches a terminal status."""
        if not run.status.is_terminal:
            return
        if run.status != RunStatus.COMPLETED:
            run.last_error = script.last_error or RunError(
                code="server_error", message=f"Run {run.status.value}"
            )
            return
        if script.reply is not None and not script.replied:
            script.replied = True
            self.seed_message(
                run.thread_id,
                script.reply,
                role=MessageRole.ASSISTANT,
                run_id=run.id,
                content_type=script.reply_content_type,
            )

    async def upload_file(self, stream: BinaryIO) -> str:
        name = getattr(stream, "name", None)
        self._record("upload_file", stream_name=name)
        file_id = self._new_id("file")
        self.files[file_id] = {"name": name, "data": stream.read()}
        return file_id

    async def create_vector_store(self, name: str) -> str:
        self._record("create_vector_store", name=name)
        vector_store_id = self._new_id("vs")
        self.vector_stores[vector_store_id] = {}
        return vector_store_id

    async def add_file_to_vector_store(self, vector_store_id: str, file_id: str) -> VectorStoreFile:
        self._record("add_file_to_vector_store", vector_store_id=vector_store_id, file_id=file_id)
        store = self._store(vector_store_id)
        member = VectorStoreFile(
            id=file_id,
            vector_store_id=vector_store_id,
            status="completed",
            created_at=next(self._timestamps),
        )
        store[file_id] = member
        return member.model_copy()

    async def list_vector_store_files(self, vector_store_id: str) -> list[VectorStoreFile]:
        self._record("list_vector_store_files", vector_store_id=vector_store_id)
        return [member.model_copy() for member in self._store(vector_store_id).values()]
