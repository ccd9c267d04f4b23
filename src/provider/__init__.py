"""Provider Gateway - typed access to the AI provider.

Pure pass-through over assistants, threads, messages, runs, files and
vector stores. Swappable with an in-memory double for tests.
"""

from provider.client import (
    AzureOpenAIProviderGateway,
    OpenAIProviderGateway,
    ProviderGateway,
    create_provider_gateway,
)
from provider.memory import InMemoryProviderGateway

__all__ = [
    "ProviderGateway",
    "OpenAIProviderGateway",
    "AzureOpenAIProviderGateway",
    "InMemoryProviderGateway",
    "create_provider_gateway",
]
