"""Exceptions raised by the conversation engine."""

from typing import Optional

from shared.models import RunError, RunStatus


class AssistantServiceError(Exception):
    """Base exception for conversation engine errors."""
    pass


class UploadError(AssistantServiceError):
    """A file could not be uploaded to the provider."""

    def __init__(self, message: str, attempts: int = 0, too_large: bool = False) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.too_large = too_large


class RunFailure(AssistantServiceError):
    """A run ended in a non-completed status or never finished in time."""

    def __init__(
        self,
        run_id: str,
        status: Optional[RunStatus],
        last_error: Optional[RunError] = None,
        timed_out: bool = False
    ) -> None:
        self.run_id = run_id
        self.status = status
        self.last_error = last_error
        self.timed_out = timed_out

        status_text = status.value if status is not None else "unknown"
        message = f"Assistant run failed or timed out. Status: {status_text}"
        if last_error is not None and last_error.message:
            message += f" ({last_error.code or 'error'}: {last_error.message})"
        super().__init__(message)


class NoResponseError(AssistantServiceError):
    """A completed run produced no usable assistant message."""

    def __init__(self, run_id: str, thread_id: str) -> None:
        super().__init__(
            f"Assistant did not produce a valid text response for run {run_id}"
        )
        self.run_id = run_id
        self.thread_id = thread_id


class GroundingError(AssistantServiceError):
    """A grounding store could not be created or a file could not be added."""
    pass


class RotationError(AssistantServiceError):
    """Checking or rotating a thread failed; callers fall back to the old thread."""
    pass
