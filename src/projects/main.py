"""Project Assistant API - FastAPI Application.

Provides:
- Project creation with an assistant and thread
- Chat and history per project
- File upload, grounding and reconciliation
- Visualization suggestions
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, HTTPException, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from shared.config import Settings, get_settings
from shared.logging import bind_project_context, clear_context, get_logger, setup_logging
from shared.models import ChatMessage, WireModel
from orchestrator.errors import NoResponseError, RunFailure, UploadError
from orchestrator.gateway import ConversationOrchestrator
from provider.client import ProviderGateway, create_provider_gateway
from projects.service import (
    ProjectChatService,
    ProjectConfigurationError,
    ProjectNotFoundError,
    ReconciliationReport,
)
from projects.store import FileRecord, InMemoryProjectStore, ProjectRecord
from projects.visualizations import VisualizationParseError, VisualizationSuggestions

logger = get_logger(__name__)


# Request/Response Models
class CreateProjectRequest(BaseModel):
    """Project creation request."""
    name: str = Field(..., min_length=1, description="Project name")


class SendMessageRequest(BaseModel):
    """Chat request from the frontend."""
    message: str = Field(default="", description="User message")
    file_ids: list[str] = Field(default_factory=list, alias="fileIds")

    model_config = {"populate_by_name": True}


class MessagesResponse(WireModel):
    project_id: str
    thread_id: Optional[str]
    messages: list[ChatMessage]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    provider: str
    project_count: int


# Global instances
_settings: Optional[Settings] = None
_provider: Optional[ProviderGateway] = None
_service: Optional[ProjectChatService] = None


def build_service(settings: Settings, provider: ProviderGateway) -> ProjectChatService:
    """Wire the conversation engine and project store."""
    orchestrator = ConversationOrchestrator(
        provider,
        settings=settings.conversation,
        model=settings.provider.model
    )
    return ProjectChatService(orchestrator, InMemoryProjectStore())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global _settings, _provider, _service

    _settings = get_settings()
    setup_logging(_settings.log_level, json_output=_settings.environment == "production")
    logger.info("Starting Project Assistant API")

    _provider = create_provider_gateway(_settings.provider)
    _service = build_service(_settings, _provider)

    logger.info("Project Assistant API started", provider=_settings.provider.provider)

    yield

    logger.info("Shutting down Project Assistant API")
    await _provider.close()
    _service = None
    _provider = None


app = FastAPI(
    title="Project Assistant API",
    description="Document-grounded assistant per project",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service() -> ProjectChatService:
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Service not initialized"
        )
    return _service


def to_http_error(error: Exception) -> HTTPException:
    """Translate engine and service errors to HTTP errors."""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, ProjectNotFoundError):
        return HTTPException(status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, ProjectConfigurationError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, UploadError):
        if error.too_large:
            return HTTPException(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(error))
        if error.attempts == 0:
            return HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(error))
        return HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(error))
    if isinstance(error, (RunFailure, NoResponseError, VisualizationParseError)):
        return HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(error))

    logger.error("Request failed", error=str(error), exc_info=True)
    return HTTPException(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to process request: {error}"
    )


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Health check endpoint."""
    service = get_service()
    store = service.store
    return HealthResponse(
        status="healthy",
        provider=_settings.provider.provider if _settings else "unknown",
        project_count=store.count() if isinstance(store, InMemoryProjectStore) else 0
    )


@app.post(
    "/projects",
    response_model=ProjectRecord,
    status_code=status.HTTP_201_CREATED,
    tags=["Projects"]
)
async def create_project(request: CreateProjectRequest):
    """Create a project with its assistant and thread."""
    try:
        return await get_service().create_project(request.name)
    except Exception as e:
        raise to_http_error(e)


@app.get("/projects/{project_id}/messages", response_model=MessagesResponse, tags=["Chat"])
async def get_project_messages(project_id: str):
    """Get the project's conversation history."""
    service = get_service()
    bind_project_context(project_id)
    try:
        messages = await service.get_project_messages(project_id)
        project = await service.store.get(project_id)
        return MessagesResponse(
            project_id=project_id,
            thread_id=project.thread_id if project else None,
            messages=messages
        )
    except Exception as e:
        raise to_http_error(e)
    finally:
        clear_context()


@app.post("/projects/{project_id}/messages", response_model=ChatMessage, tags=["Chat"])
async def send_project_message(project_id: str, request: SendMessageRequest):
    """Send a message to the project's assistant."""
    if not request.message.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Message content is required")

    bind_project_context(project_id)
    try:
        return await get_service().send_project_message(
            project_id,
            request.message,
            file_ids=request.file_ids
        )
    except Exception as e:
        raise to_http_error(e)
    finally:
        clear_context()


@app.post("/projects/{project_id}/files", response_model=FileRecord, tags=["Files"])
async def upload_project_file(project_id: str, file: UploadFile = File(...)):
    """Upload a file and ground the project's assistant on it."""
    bind_project_context(project_id)
    try:
        data = await file.read()
        return await get_service().upload_project_file(
            project_id,
            data,
            file.filename,
            content_type=file.content_type
        )
    except Exception as e:
        raise to_http_error(e)
    finally:
        await file.close()
        clear_context()


@app.get(
    "/projects/{project_id}/assistant-files",
    response_model=ReconciliationReport,
    tags=["Files"]
)
async def get_project_assistant_files(project_id: str):
    """List grounded files, re-attaching any that went missing."""
    bind_project_context(project_id)
    try:
        return await get_service().reconcile_project_files(project_id)
    except Exception as e:
        raise to_http_error(e)
    finally:
        clear_context()


@app.get(
    "/projects/{project_id}/visualizations",
    response_model=VisualizationSuggestions,
    tags=["Analysis"]
)
async def get_suggested_visualizations(project_id: str):
    """Ask the assistant for visualizations of the project's data."""
    bind_project_context(project_id)
    try:
        return await get_service().suggest_visualizations(project_id)
    except Exception as e:
        raise to_http_error(e)
    finally:
        clear_context()


def main():
    """Run the API server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "projects.main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
