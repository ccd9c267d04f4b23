"""Provider Gateway - typed access to the AI provider's assistant primitives.

Wraps assistants, threads, messages, runs, file uploads and vector stores.
The gateway has no business logic: no retries beyond the SDK's transport
retries, no polling and no interpretation of message content. Provider and
network errors surface unchanged to the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Optional

import httpx
from openai import AsyncAzureOpenAI, AsyncOpenAI

from shared.config import ProviderSettings
from shared.logging import get_logger
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

logger = get_logger(__name__)

# Largest page the provider accepts for list endpoints
MAX_PAGE_SIZE = 100


class ProviderGateway(ABC):
    """
    Abstract base class for provider gateways.

    Every method maps to exactly one provider primitive. Implementations
    must not retry, poll or rewrite content.
    """

    @abstractmethod
    async def create_assistant(
        self,
        name: str,
        instructions: str,
        model: str,
        tools: list[dict[str, Any]]
    ) -> AssistantInfo:
        """Create an assistant with a static system prompt and tool set."""

    @abstractmethod
    async def get_assistant(self, assistant_id: str) -> AssistantInfo:
        """Retrieve an assistant, including its grounding store ids."""

    @abstractmethod
    async def update_assistant_tool_resources(
        self,
        assistant_id: str,
        vector_store_ids: list[str]
    ) -> AssistantInfo:
        """Point the assistant's file_search tool at the given stores."""

    @abstractmethod
    async def create_thread(self) -> str:
        """Create an empty thread and return its id."""

    @abstractmethod
    async def append_message(
        self,
        thread_id: str,
        role: MessageRole,
        content: str,
        attachments: Optional[list[Attachment]] = None
    ) -> str:
        """Append a message to a thread and return the message id."""

    @abstractmethod
    async def list_messages(
        self,
        thread_id: str,
        limit: Optional[int] = None,
        order: str = "desc"
    ) -> list[ProviderMessage]:
        """
        List messages in a thread.

        Args:
            thread_id: Thread identifier
            limit: Maximum number of messages; None lists every message
            order: "asc" or "desc" by creation time
        """

    @abstractmethod
    async def create_run(self, thread_id: str, assistant_id: str) -> Run:
        """Start a run of the assistant on the thread."""

    @abstractmethod
    async def get_run(self, thread_id: str, run_id: str) -> Run:
        """Fetch the current state of a run."""

    @abstractmethod
    async def upload_file(self, stream: BinaryIO) -> str:
        """Upload a file for assistant use; the filename comes from the stream."""

    @abstractmethod
    async def create_vector_store(self, name: str) -> str:
        """Create a grounding store and return its id."""

    @abstractmethod
    async def add_file_to_vector_store(self, vector_store_id: str, file_id: str) -> VectorStoreFile:
        """Add an uploaded file to a grounding store."""

    @abstractmethod
    async def list_vector_store_files(self, vector_store_id: str) -> list[VectorStoreFile]:
        """List every file in a grounding store."""

    async def close(self) -> None:
        """Release network resources held by the gateway."""


def _to_assistant(assistant: Any) -> AssistantInfo:
    """Convert an SDK assistant object."""
    vector_store_ids: list[str] = []
    resources = getattr(assistant, "tool_resources", None)
    file_search = getattr(resources, "file_search", None) if resources else None
    if file_search and file_search.vector_store_ids:
        vector_store_ids = list(file_search.vector_store_ids)

    return AssistantInfo(
        id=assistant.id,
        name=assistant.name,
        instructions=assistant.instructions,
        model=assistant.model,
        tools=[tool.model_dump() for tool in assistant.tools or []],
        vector_store_ids=vector_store_ids,
        created_at=assistant.created_at,
    )


def _to_message(message: Any) -> ProviderMessage:
    """Convert an SDK thread message, reading only the first content part."""
    part = message.content[0] if message.content else None
    if part is not None and part.type == "text":
        content_type, text = "text", part.text.value
    else:
        content_type, text = (part.type if part is not None else "empty"), None

    return ProviderMessage(
        id=message.id,
        thread_id=message.thread_id,
        role=MessageRole(message.role),
        content_type=content_type,
        text=text,
        created_at=message.created_at,
        run_id=message.run_id,
    )


def _to_run(run: Any) -> Run:
    """Convert an SDK run object."""
    last_error = None
    if run.last_error is not None:
        last_error = RunError(code=run.last_error.code, message=run.last_error.message)

    return Run(
        id=run.id,
        thread_id=run.thread_id,
        assistant_id=run.assistant_id,
        status=RunStatus(run.status),
        last_error=last_error,
    )


def _to_vector_store_file(file: Any) -> VectorStoreFile:
    return VectorStoreFile(
        id=file.id,
        vector_store_id=file.vector_store_id,
        status=file.status,
        created_at=file.created_at,
    )


class OpenAIProviderGateway(ProviderGateway):
    """Gateway backed by the OpenAI Assistants API."""

    def __init__(
        self,
        settings: ProviderSettings,
        client: Optional[AsyncOpenAI] = None
    ) -> None:
        """
        Initialize the gateway.

        Args:
            settings: Provider configuration
            client: Optional preconfigured SDK client (tests inject one)
        """
        self.settings = settings
        self._client = client

    def _build_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self.settings.api_key,
            base_url=self.settings.api_base,
            max_retries=self.settings.max_network_retries,
            http_client=httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.request_timeout_seconds)
            ),
        )

    def _get_client(self) -> AsyncOpenAI:
        """Lazy initialization of the SDK client."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def create_assistant(
        self,
        name: str,
        instructions: str,
        model: str,
        tools: list[dict[str, Any]]
    ) -> AssistantInfo:
        assistant = await self._get_client().beta.assistants.create(
            name=name,
            instructions=instructions,
            model=model,
            tools=tools,
        )
        logger.info("Assistant created", assistant_id=assistant.id, model=model)
        return _to_assistant(assistant)

    async def get_assistant(self, assistant_id: str) -> AssistantInfo:
        assistant = await self._get_client().beta.assistants.retrieve(assistant_id)
        return _to_assistant(assistant)

    async def update_assistant_tool_resources(
        self,
        assistant_id: str,
        vector_store_ids: list[str]
    ) -> AssistantInfo:
        assistant = await self._get_client().beta.assistants.update(
            assistant_id,
            tool_resources={"file_search": {"vector_store_ids": vector_store_ids}},
        )
        return _to_assistant(assistant)

    async def create_thread(self) -> str:
        thread = await self._get_client().beta.threads.create()
        logger.info("Thread created", thread_id=thread.id)
        return thread.id

    async def append_message(
        self,
        thread_id: str,
        role: MessageRole,
        content: str,
        attachments: Optional[list[Attachment]] = None
    ) -> str:
        kwargs: dict[str, Any] = {"role": MessageRole(role).value, "content": content}
        # The provider rejects an empty attachments list
        if attachments:
            kwargs["attachments"] = [a.model_dump() for a in attachments]

        message = await self._get_client().beta.threads.messages.create(thread_id, **kwargs)
        return message.id

    async def list_messages(
        self,
        thread_id: str,
        limit: Optional[int] = None,
        order: str = "desc"
    ) -> list[ProviderMessage]:
        page_size = min(limit, MAX_PAGE_SIZE) if limit else MAX_PAGE_SIZE
        paginator = self._get_client().beta.threads.messages.list(
            thread_id=thread_id,
            limit=page_size,
            order=order,
        )

        messages: list[ProviderMessage] = []
        async for message in paginator:
            messages.append(_to_message(message))
            if limit is not None and len(messages) >= limit:
                break
        return messages

    async def create_run(self, thread_id: str, assistant_id: str) -> Run:
        run = await self._get_client().beta.threads.runs.create(
            thread_id=thread_id,
            assistant_id=assistant_id,
        )
        return _to_run(run)

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        run = await self._get_client().beta.threads.runs.retrieve(
            run_id=run_id,
            thread_id=thread_id,
        )
        return _to_run(run)

    async def upload_file(self, stream: BinaryIO) -> str:
        file = await self._get_client().files.create(file=stream, purpose="assistants")
        return file.id

    async def create_vector_store(self, name: str) -> str:
        vector_store = await self._get_client().vector_stores.create(name=name)
        return vector_store.id

    async def add_file_to_vector_store(self, vector_store_id: str, file_id: str) -> VectorStoreFile:
        file = await self._get_client().vector_stores.files.create(
            vector_store_id=vector_store_id,
            file_id=file_id,
        )
        return _to_vector_store_file(file)

    async def list_vector_store_files(self, vector_store_id: str) -> list[VectorStoreFile]:
        paginator = self._get_client().vector_stores.files.list(
            vector_store_id=vector_store_id,
            limit=MAX_PAGE_SIZE,
        )
        return [_to_vector_store_file(file) async for file in paginator]


class AzureOpenAIProviderGateway(OpenAIProviderGateway):
    """Gateway backed by an Azure OpenAI deployment."""

    def _build_client(self) -> AsyncOpenAI:
        return AsyncAzureOpenAI(
            api_key=self.settings.api_key,
            azure_endpoint=self.settings.api_base,
            api_version=self.settings.api_version,
            max_retries=self.settings.max_network_retries,
            http_client=httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.request_timeout_seconds)
            ),
        )


def create_provider_gateway(settings: ProviderSettings) -> ProviderGateway:
    """
    Factory function to create the configured provider gateway.

    Supports:
    - openai: OpenAI API
    - azure_openai: Azure OpenAI Service
    - mock: In-memory provider for tests and offline development

    Raises:
        ValueError: If provider is not supported
    """
    from provider.memory import InMemoryProviderGateway

    providers: dict[str, type[ProviderGateway]] = {
        "openai": OpenAIProviderGateway,
        "azure_openai": AzureOpenAIProviderGateway,
        "mock": InMemoryProviderGateway,
    }

    gateway_class = providers.get(settings.provider)
    if not gateway_class:
        raise ValueError(
            f"Unsupported provider: {settings.provider}. "
            f"Supported: {list(providers.keys())}"
        )

    logger.info("Creating provider gateway", provider=settings.provider, model=settings.model)
    return gateway_class(settings)
