"""Conversation Orchestrator - public entry point of the conversation engine.

The orchestrator coordinates:
- Thread rotation before each send
- Message append, run execution and reply normalization
- History retrieval
- File upload and grounding
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import aiofiles
import aiofiles.tempfile
from tenacity import AsyncRetrying, RetryError, stop_after_attempt, wait_exponential

from provider.client import ProviderGateway
from shared.config import ConversationSettings
from shared.logging import get_logger
from shared.models import (
    FILE_SEARCH_TOOL,
    AssistantInfo,
    ChatMessage,
    GroundingResult,
    ProviderMessage,
    ResponseEnvelope,
    VectorStoreFile,
)
from orchestrator.errors import UploadError
from orchestrator.grounding import FileGroundingManager
from orchestrator.normalizer import to_chat_message, unsupported_content_placeholder
from orchestrator.prompts import assistant_instructions, assistant_name
from orchestrator.runs import RunExecutor
from orchestrator.threads import ThreadLifecycleManager

logger = get_logger(__name__)

DEFAULT_UPLOAD_FILENAME = "uploaded_file"


class ConversationOrchestrator:
    """
    Conversation Orchestrator - combines rotation, runs, normalization
    and grounding behind the caller-facing operations.

    The orchestrator holds no per-conversation state. Callers own the
    project records and must persist `new_thread_id` whenever a send
    reports `thread_rotated`.
    """

    def __init__(
        self,
        provider: ProviderGateway,
        settings: Optional[ConversationSettings] = None,
        model: str = "o3-mini",
        thread_manager: Optional[ThreadLifecycleManager] = None,
        run_executor: Optional[RunExecutor] = None,
        grounding: Optional[FileGroundingManager] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            provider: Provider gateway shared by every component
            settings: Conversation engine configuration
            model: Model used for new assistants
            thread_manager: Optional thread lifecycle manager
            run_executor: Optional run executor
            grounding: Optional file grounding manager
            sleep: Coroutine used for upload retry backoff
        """
        self.provider = provider
        self.settings = settings or ConversationSettings()
        self.model = model

        self.threads = thread_manager or ThreadLifecycleManager(
            provider,
            rotation_threshold=self.settings.rotation_threshold
        )
        self.runs = run_executor or RunExecutor(
            provider,
            poll_interval=self.settings.poll_interval_seconds,
            run_timeout=self.settings.run_timeout_seconds,
            message_scan_limit=self.settings.run_message_scan_limit
        )
        self.grounding = grounding or FileGroundingManager(provider)
        self._sleep = sleep

    async def create_project_assistant(self, project_name: Optional[str]) -> AssistantInfo:
        """Create the assistant that serves a project."""
        assistant = await self.provider.create_assistant(
            name=assistant_name(project_name),
            instructions=assistant_instructions(project_name),
            model=self.model,
            tools=[dict(FILE_SEARCH_TOOL)]
        )
        logger.info("Project assistant created", assistant_id=assistant.id, name=assistant.name)
        return assistant

    async def create_thread(self) -> str:
        """Create a project's first thread."""
        return await self.threads.create_thread()

    async def send_message(
        self,
        thread_id: Optional[str],
        assistant_id: str,
        text: str,
        file_ids: Optional[list[str]] = None,
        project_id: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> ResponseEnvelope:
        """
        Send a user message and return the assistant's reply.

        This is the main entry point for chat interactions. Rotation is
        only considered when `project_id` is given.

        Args:
            thread_id: Active thread of the project
            assistant_id: Assistant bound to the project
            text: User message
            file_ids: Uploaded files to attach to this message
            project_id: Project owning the thread
            timeout: Run timeout override in seconds

        Returns:
            Normalized reply, with rotation fields set if the thread changed
        """
        current_thread_id = thread_id
        rotated = False

        if project_id:
            rotation = await self.threads.maybe_rotate(project_id, thread_id, assistant_id)
            current_thread_id = rotation.thread_id
            rotated = rotation.is_new
            if rotated:
                logger.info(
                    "Sending on rotated thread",
                    project_id=project_id,
                    old_thread_id=thread_id,
                    new_thread_id=current_thread_id
                )

        response = await self.runs.send_and_run(
            current_thread_id or "",
            assistant_id,
            (text or "").strip(),
            file_ids=file_ids,
            timeout=timeout
        )

        if rotated:
            response.thread_rotated = True
            response.new_thread_id = current_thread_id

        return response

    async def run_once_and_get_text(
        self,
        thread_id: str,
        assistant_id: str,
        prompt: str,
        timeout: Optional[float] = None
    ) -> str:
        """Run a structured single-shot prompt and return the raw reply."""
        return await self.runs.run_once_and_get_raw_text(
            thread_id,
            assistant_id,
            prompt.strip(),
            timeout=timeout
        )

    async def get_messages(self, thread_id: str) -> list[ChatMessage]:
        """
        Get a thread's messages for display, oldest first.

        A message that cannot be normalized degrades to a placeholder
        instead of failing the whole listing.
        """
        logger.debug("Fetching messages", thread_id=thread_id)
        messages = await self.provider.list_messages(thread_id, order="asc")
        return [self._display_message(message) for message in messages]

    def _display_message(self, message: ProviderMessage) -> ChatMessage:
        try:
            return to_chat_message(message)
        except Exception as e:
            logger.warning("Malformed message", message_id=message.id, error=str(e))
            return ChatMessage(
                id=message.id,
                role=message.role,
                content=unsupported_content_placeholder(message.role),
                citations=[],
                created_at=message.created_at,
                run_id=message.run_id,
            )

    async def upload_file(self, data: Optional[bytes], filename: Optional[str]) -> str:
        """
        Upload a file for assistant use.

        The buffer is written to a temporary file that is removed on every
        exit path. Provider failures are retried with exponential backoff.

        Args:
            data: File contents
            filename: Original file name; a default is used when blank

        Returns:
            Provider file id

        Raises:
            UploadError: On an empty buffer, a buffer over the size ceiling
                (before any network call) or when every attempt failed
        """
        if not data or not isinstance(data, (bytes, bytearray)):
            raise UploadError("Invalid file buffer provided")

        if not filename or not isinstance(filename, str) or not filename.strip():
            logger.warning("Invalid or empty filename provided for upload, using default")
            filename = DEFAULT_UPLOAD_FILENAME

        size = len(data)
        max_bytes = self.settings.max_upload_bytes
        if size > max_bytes:
            raise UploadError(
                f"File size exceeds the limit of {max_bytes / (1024 * 1024):g}MB",
                too_large=True
            )

        logger.info("Uploading file", filename=filename, size=size)

        attempts = self.settings.upload_retry_attempts
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.settings.upload_backoff_seconds, exp_base=2),
            sleep=self._sleep,
            before_sleep=self._log_upload_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    file_id = await self._upload_once(bytes(data), filename)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(
                "Upload failed",
                filename=filename,
                attempts=attempts,
                error=str(cause)
            )
            raise UploadError(
                f"Failed to upload \"{filename}\" after {attempts} attempts: {cause}",
                attempts=attempts
            ) from cause

        logger.info("File uploaded", filename=filename, file_id=file_id)
        return file_id

    @staticmethod
    def _log_upload_retry(retry_state: Any) -> None:
        logger.warning(
            "Upload attempt failed",
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception())
        )

    async def _upload_once(self, data: bytes, filename: str) -> str:
        """Upload through a scoped temporary file."""
        suffix = Path(filename).suffix or ".tmp"
        async with aiofiles.tempfile.TemporaryDirectory(prefix="upload_") as tmp_dir:
            path = Path(tmp_dir) / f"upload_{uuid.uuid4().hex}{suffix}"
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)

            with open(path, "rb") as stream:
                return await self.provider.upload_file(stream)

    async def attach_file_to_assistant(self, assistant_id: str, file_id: str) -> GroundingResult:
        """Ground the assistant on an uploaded file."""
        return await self.grounding.attach_file(assistant_id, file_id)

    async def get_assistant_files(self, assistant_id: str) -> list[VectorStoreFile]:
        """List the files the assistant is grounded on."""
        return await self.grounding.list_grounded_files(assistant_id)
