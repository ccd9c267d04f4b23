"""Project Chat Service - the caller side of the conversation engine.

Owns project persistence: stores rotated thread ids, file records and
their grounding state, and runs the file reconciliation pass.
"""

import asyncio
from typing import Callable, Optional

from pydantic import BaseModel, Field

from shared.logging import get_logger
from shared.models import ChatMessage, VectorStoreFile
from orchestrator.errors import AssistantServiceError, GroundingError
from orchestrator.gateway import ConversationOrchestrator
from orchestrator.prompts import VISUALIZATION_PROMPT
from projects.store import FileRecord, ProjectRecord, ProjectStore
from projects.visualizations import VisualizationSuggestions, parse_visualizations

logger = get_logger(__name__)


class ProjectNotFoundError(AssistantServiceError):
    """No project with the given id."""
    pass


class ProjectConfigurationError(AssistantServiceError):
    """The project lacks the assistant or thread an operation needs."""
    pass


class ReconciliationReport(BaseModel):
    """Outcome of re-grounding a project's files."""
    project_id: str
    assistant_id: str
    assistant_files: list[VectorStoreFile] = Field(default_factory=list)
    fixed_files: int = 0


class ProjectChatService:
    """
    Project-level chat operations.

    Two per-project locks, both created only for projects that exist:
    - the run lock serializes sends, since the provider allows one
      in-flight run per thread
    - the record lock guards each read-modify-write of the stored record,
      so a rotated thread id and concurrent file records are never
      overwritten by a stale copy
    """

    def __init__(self, orchestrator: ConversationOrchestrator, store: ProjectStore) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self._run_locks: dict[str, asyncio.Lock] = {}
        self._record_locks: dict[str, asyncio.Lock] = {}

    async def _get_project(self, project_id: str) -> ProjectRecord:
        project = await self.store.get(project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        return project

    async def _run_lock(self, project_id: str) -> asyncio.Lock:
        await self._get_project(project_id)
        return self._run_locks.setdefault(project_id, asyncio.Lock())

    async def _update_project(
        self,
        project_id: str,
        change: Callable[[ProjectRecord], None]
    ) -> ProjectRecord:
        """Apply `change` to the latest stored record and save it."""
        lock = self._record_locks.setdefault(project_id, asyncio.Lock())
        async with lock:
            project = await self._get_project(project_id)
            change(project)
            return await self.store.save(project)

    async def create_project(self, name: str) -> ProjectRecord:
        """Create a project with its assistant and first thread."""
        assistant = await self.orchestrator.create_project_assistant(name)
        thread_id = await self.orchestrator.create_thread()

        project = ProjectRecord(name=name, assistant_id=assistant.id, thread_id=thread_id)
        await self.store.save(project)

        logger.info(
            "Project created",
            project_id=project.id,
            assistant_id=assistant.id,
            thread_id=thread_id
        )
        return project

    async def get_project_messages(self, project_id: str) -> list[ChatMessage]:
        project = await self._get_project(project_id)
        if not project.thread_id:
            raise ProjectConfigurationError("Project has no associated thread")
        return await self.orchestrator.get_messages(project.thread_id)

    async def send_project_message(
        self,
        project_id: str,
        text: str,
        file_ids: Optional[list[str]] = None
    ) -> ChatMessage:
        """
        Send a message to the project's assistant.

        Persists the new thread id when the engine rotated the thread and
        returns the reply without rotation fields.
        """
        async with await self._run_lock(project_id):
            project = await self._get_project(project_id)
            if not project.thread_id or not project.assistant_id:
                raise ProjectConfigurationError(
                    "Project is missing assistant or thread configuration"
                )

            response = await self.orchestrator.send_message(
                project.thread_id,
                project.assistant_id,
                text,
                file_ids=file_ids,
                project_id=project_id
            )

            if response.thread_rotated and response.new_thread_id:
                new_thread_id = response.new_thread_id
                logger.info(
                    "Persisting rotated thread",
                    project_id=project_id,
                    thread_id=new_thread_id
                )

                def rotate(record: ProjectRecord) -> None:
                    record.thread_id = new_thread_id

                await self._update_project(project_id, rotate)

            return response.without_rotation()

    async def upload_project_file(
        self,
        project_id: str,
        data: bytes,
        filename: Optional[str],
        content_type: Optional[str] = None
    ) -> FileRecord:
        """
        Upload a file and ground the project's assistant on it.

        A grounding failure keeps the file record, marked unattached, for
        the reconciliation pass to repair.
        """
        project = await self._get_project(project_id)
        if not project.assistant_id:
            raise ProjectConfigurationError("Project does not have an associated assistant")

        provider_file_id = await self.orchestrator.upload_file(data, filename)

        vector_store_id = None
        try:
            result = await self.orchestrator.attach_file_to_assistant(
                project.assistant_id,
                provider_file_id
            )
            vector_store_id = result.vector_store_id
        except GroundingError as e:
            logger.error(
                "File kept unattached",
                project_id=project_id,
                file_id=provider_file_id,
                error=str(e)
            )

        record = FileRecord(
            name=filename or "uploaded_file",
            content_type=content_type,
            size=len(data),
            provider_file_id=provider_file_id,
            vector_store_id=vector_store_id,
            attached_to_assistant=vector_store_id is not None,
        )
        await self._update_project(project_id, lambda p: p.files.append(record))

        logger.info(
            "Project file stored",
            project_id=project_id,
            file_record_id=record.id,
            attached=record.attached_to_assistant
        )
        return record

    async def reconcile_project_files(self, project_id: str) -> ReconciliationReport:
        """
        Re-attach project files missing from the assistant's grounding store.
        """
        project = await self._get_project(project_id)
        if not project.assistant_id:
            raise ProjectConfigurationError("Project does not have an associated assistant")

        assistant_files = await self.orchestrator.get_assistant_files(project.assistant_id)
        grounded_ids = {file.id for file in assistant_files}

        fixed: dict[str, str] = {}
        for record in project.files:
            if record.provider_file_id in grounded_ids:
                continue
            try:
                result = await self.orchestrator.attach_file_to_assistant(
                    project.assistant_id,
                    record.provider_file_id
                )
                fixed[record.id] = result.vector_store_id
            except GroundingError as e:
                logger.error(
                    "Failed to re-attach file",
                    project_id=project_id,
                    file_id=record.provider_file_id,
                    error=str(e)
                )

        if fixed:
            def mark_attached(latest: ProjectRecord) -> None:
                for file in latest.files:
                    if file.id in fixed:
                        file.attached_to_assistant = True
                        file.vector_store_id = fixed[file.id]

            await self._update_project(project_id, mark_attached)
            logger.info("Project files repaired", project_id=project_id, count=len(fixed))

        return ReconciliationReport(
            project_id=project_id,
            assistant_id=project.assistant_id,
            assistant_files=assistant_files,
            fixed_files=len(fixed)
        )

    async def suggest_visualizations(self, project_id: str) -> VisualizationSuggestions:
        """Ask the assistant for chart suggestions grounded in project files."""
        async with await self._run_lock(project_id):
            project = await self._get_project(project_id)
            if not project.thread_id or not project.assistant_id:
                raise ProjectConfigurationError(
                    "Project is missing assistant or thread configuration needed for analysis"
                )

            reply = await self.orchestrator.run_once_and_get_text(
                project.thread_id,
                project.assistant_id,
                VISUALIZATION_PROMPT
            )

        suggestions = parse_visualizations(reply)
        logger.info(
            "Visualizations suggested",
            project_id=project_id,
            count=len(suggestions.visualizations)
        )
        return suggestions
