"""Run Executor.

Appends a user message to a thread, starts a run, waits for it with a
deadline-bounded poll loop and fetches the message the run produced.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from provider.client import ProviderGateway
from shared.logging import get_logger
from shared.models import (
    Attachment,
    MessageRole,
    ProviderMessage,
    ResponseEnvelope,
    Run,
    RunStatus,
)
from orchestrator.errors import NoResponseError, RunFailure
from orchestrator.normalizer import normalize_message_text
from orchestrator.prompts import NO_RESPONSE_FALLBACK

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


def build_attachments(file_ids: Optional[list[str]]) -> list[Attachment]:
    """One file_search attachment per non-empty file id."""
    return [Attachment(file_id=file_id) for file_id in file_ids or [] if file_id]


class RunExecutor:
    """
    Executes assistant runs on a thread.

    The poll loop checks its deadline before every pause and never polls
    faster than the poll interval. `clock` and `sleep` are injectable so
    the wait can be driven by a fake clock.
    """

    def __init__(
        self,
        provider: ProviderGateway,
        poll_interval: float = 1.5,
        run_timeout: float = 90.0,
        message_scan_limit: int = 20,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep
    ) -> None:
        """
        Initialize the run executor.

        Args:
            provider: Provider gateway
            poll_interval: Seconds between run status checks
            run_timeout: Default seconds to wait for a run
            message_scan_limit: Newest messages searched for the run's reply
            clock: Monotonic time source
            sleep: Coroutine used to pause between polls
        """
        self.provider = provider
        self.poll_interval = poll_interval
        self.run_timeout = run_timeout
        self.message_scan_limit = message_scan_limit
        self._clock = clock
        self._sleep = sleep

    async def start_run(
        self,
        thread_id: str,
        assistant_id: str,
        content: str,
        file_ids: Optional[list[str]] = None
    ) -> Run:
        """Append the user message, then create a run that consumes it."""
        attachments = build_attachments(file_ids)
        message_id = await self.provider.append_message(
            thread_id,
            MessageRole.USER,
            content,
            attachments=attachments or None
        )
        logger.info(
            "User message appended",
            thread_id=thread_id,
            message_id=message_id,
            attachments=len(attachments)
        )

        run = await self.provider.create_run(thread_id, assistant_id)
        logger.info("Run created", thread_id=thread_id, run_id=run.id, assistant_id=assistant_id)
        return run

    async def wait_for_run(self, run: Run, timeout: Optional[float] = None) -> Run:
        """
        Poll a run until it reaches a terminal status or the deadline passes.

        Raises:
            RunFailure: If the run ends in any status but completed, or is
                still running when the deadline passes
        """
        timeout = self.run_timeout if timeout is None else timeout
        deadline = self._clock() + timeout

        while True:
            run = await self.provider.get_run(run.thread_id, run.id)
            if run.status.is_terminal:
                break

            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.error(
                    "Run timed out",
                    run_id=run.id,
                    thread_id=run.thread_id,
                    status=run.status.value,
                    timeout=timeout
                )
                raise RunFailure(run.id, run.status, run.last_error, timed_out=True)

            await self._sleep(min(self.poll_interval, remaining))

        if run.status != RunStatus.COMPLETED:
            logger.error(
                "Run did not complete",
                run_id=run.id,
                thread_id=run.thread_id,
                status=run.status.value,
                last_error=run.last_error.model_dump() if run.last_error else None
            )
            raise RunFailure(run.id, run.status, run.last_error)

        logger.info("Run completed", run_id=run.id, thread_id=run.thread_id)
        return run

    async def find_run_message(self, run: Run) -> Optional[ProviderMessage]:
        """Newest assistant message produced by this run, if any."""
        messages = await self.provider.list_messages(
            run.thread_id,
            limit=self.message_scan_limit,
            order="desc"
        )
        for message in messages:
            if message.role == MessageRole.ASSISTANT and message.run_id == run.id:
                return message
        return None

    async def send_and_run(
        self,
        thread_id: str,
        assistant_id: str,
        content: str,
        file_ids: Optional[list[str]] = None,
        timeout: Optional[float] = None
    ) -> ResponseEnvelope:
        """
        Send a user message and return the assistant's normalized reply.

        Raises:
            RunFailure: If the run fails or times out
            NoResponseError: If the run left no text reply
        """
        run = await self.start_run(thread_id, assistant_id, content, file_ids)
        run = await self.wait_for_run(run, timeout)

        message = await self.find_run_message(run)
        if message is None or message.content_type != "text" or message.text is None:
            logger.error("No valid response for run", run_id=run.id, thread_id=thread_id)
            raise NoResponseError(run.id, thread_id)

        text = normalize_message_text(message.text, MessageRole.ASSISTANT)
        if not text:
            logger.warning("Empty assistant reply, using fallback", run_id=run.id)
            text = NO_RESPONSE_FALLBACK

        return ResponseEnvelope(
            id=message.id,
            role=MessageRole.ASSISTANT,
            content=text,
            citations=[],
            created_at=message.created_at,
            run_id=run.id,
        )

    async def run_once_and_get_raw_text(
        self,
        thread_id: str,
        assistant_id: str,
        prompt: str,
        timeout: Optional[float] = None
    ) -> str:
        """
        Run a single-shot prompt and return the reply text untouched.

        No citation stripping or bidi wrapping is applied; callers parse
        structured content themselves.

        Raises:
            RunFailure: If the run fails or times out
            NoResponseError: If the run left no text reply
        """
        run = await self.start_run(thread_id, assistant_id, prompt)
        run = await self.wait_for_run(run, timeout)

        message = await self.find_run_message(run)
        if message is None or message.content_type != "text" or message.text is None:
            logger.error("No valid text response for task run", run_id=run.id, thread_id=thread_id)
            raise NoResponseError(run.id, thread_id)

        logger.info("Task run reply retrieved", run_id=run.id, message_id=message.id)
        return message.text
