"""Thread Lifecycle Manager.

Decides, per send, whether a project's active thread has grown past the
rotation threshold and replaces it with a fresh one when it has.
"""

from typing import Optional

from provider.client import ProviderGateway
from shared.logging import get_logger
from shared.models import MessageRole, RotationResult
from orchestrator.errors import RotationError
from orchestrator.prompts import continuation_message

logger = get_logger(__name__)


class ThreadLifecycleManager:
    """
    Manages thread rotation for the orchestrator.

    Rotation never touches the old thread and never persists anything;
    the caller stores the new thread id on the project record.
    """

    def __init__(
        self,
        provider: ProviderGateway,
        rotation_threshold: int = 50
    ) -> None:
        """
        Initialize the lifecycle manager.

        Args:
            provider: Provider gateway
            rotation_threshold: Message count at which a thread is replaced
        """
        self.provider = provider
        self.rotation_threshold = rotation_threshold

    async def create_thread(self) -> str:
        """Create a fresh, empty thread."""
        return await self.provider.create_thread()

    async def count_messages(self, thread_id: str) -> int:
        """Count messages in a thread, up to the rotation threshold."""
        messages = await self.provider.list_messages(thread_id, limit=self.rotation_threshold)
        return len(messages)

    async def maybe_rotate(
        self,
        project_id: str,
        thread_id: Optional[str],
        assistant_id: Optional[str]
    ) -> RotationResult:
        """
        Return the thread to send on, rotating it if it is full.

        Never raises: any failure falls back to the original thread.

        Args:
            project_id: Project that owns the thread
            thread_id: Currently active thread
            assistant_id: Assistant bound to the project

        Returns:
            The thread id to use and whether it is new
        """
        try:
            return await self._check_and_rotate(project_id, thread_id, assistant_id)
        except RotationError as e:
            logger.warning(
                "Thread rotation failed, keeping current thread",
                project_id=project_id,
                thread_id=thread_id,
                error=str(e)
            )
            return RotationResult(thread_id=thread_id or "", is_new=False)

    async def _check_and_rotate(
        self,
        project_id: str,
        thread_id: Optional[str],
        assistant_id: Optional[str]
    ) -> RotationResult:
        try:
            if not thread_id or not assistant_id:
                logger.info("Missing thread or assistant, creating new thread", project_id=project_id)
                new_thread_id = await self.create_thread()
                return RotationResult(thread_id=new_thread_id, is_new=True)

            message_count = await self.count_messages(thread_id)
            logger.debug("Thread size checked", thread_id=thread_id, message_count=message_count)

            if message_count < self.rotation_threshold:
                return RotationResult(thread_id=thread_id, is_new=False)

            logger.info(
                "Thread reached rotation threshold",
                project_id=project_id,
                thread_id=thread_id,
                threshold=self.rotation_threshold
            )

            new_thread_id = await self.create_thread()
            await self.provider.append_message(
                new_thread_id,
                MessageRole.USER,
                continuation_message(project_id)
            )

            logger.info(
                "Thread rotated",
                project_id=project_id,
                old_thread_id=thread_id,
                new_thread_id=new_thread_id
            )
            return RotationResult(thread_id=new_thread_id, is_new=True)

        except Exception as e:
            raise RotationError(f"Failed to check or rotate thread {thread_id}: {e}") from e
