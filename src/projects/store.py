"""Project records and their persistence boundary.

Only the fields the conversation engine reads or writes are modelled.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from shared.models import WireModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileRecord(WireModel):
    """A file uploaded to a project."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    content_type: Optional[str] = None
    size: int = 0
    provider_file_id: str
    vector_store_id: Optional[str] = None
    attached_to_assistant: bool = False
    uploaded_at: datetime = Field(default_factory=utcnow)


class ProjectRecord(WireModel):
    """A project and its assistant binding."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    assistant_id: Optional[str] = None
    thread_id: Optional[str] = None
    files: list[FileRecord] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProjectStore(ABC):
    """Persistence for project records."""

    @abstractmethod
    async def get(self, project_id: str) -> Optional[ProjectRecord]:
        """Get a project by id, or None."""

    @abstractmethod
    async def save(self, project: ProjectRecord) -> ProjectRecord:
        """Insert or replace a project, stamping `updated_at`."""


class InMemoryProjectStore(ProjectStore):
    """Project store kept in process memory."""

    def __init__(self) -> None:
        self._projects: dict[str, ProjectRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, project_id: str) -> Optional[ProjectRecord]:
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    async def save(self, project: ProjectRecord) -> ProjectRecord:
        async with self._lock:
            project.updated_at = utcnow()
            self._projects[project.id] = project.model_copy(deep=True)
        return project

    def count(self) -> int:
        return len(self._projects)
