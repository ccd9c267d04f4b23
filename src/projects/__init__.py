"""Project layer - the caller side of the conversation engine.

Persists project records, rotated thread ids and file grounding state,
and exposes the HTTP API.
"""

from projects.service import (
    ProjectChatService,
    ProjectConfigurationError,
    ProjectNotFoundError,
    ReconciliationReport,
)
from projects.store import FileRecord, InMemoryProjectStore, ProjectRecord, ProjectStore

__all__ = [
    "ProjectChatService",
    "ProjectConfigurationError",
    "ProjectNotFoundError",
    "ReconciliationReport",
    "FileRecord",
    "InMemoryProjectStore",
    "ProjectRecord",
    "ProjectStore",
]
