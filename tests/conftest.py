"""Shared fixtures for the conversation engine tests."""

import asyncio

import pytest
import pytest_asyncio

from provider.memory import InMemoryProviderGateway
from shared.config import ConversationSettings


class FakeClock:
    """Monotonic clock advanced only by its own sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        # Yield so concurrent tasks can interleave as they would on a real sleep
        await asyncio.sleep(0)


@pytest.fixture
def provider() -> InMemoryProviderGateway:
    return InMemoryProviderGateway()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def orchestrator(provider, clock):
    """Orchestrator on the in-memory provider with a fake clock."""
    from orchestrator.gateway import ConversationOrchestrator
    from orchestrator.runs import RunExecutor

    settings = ConversationSettings()
    run_executor = RunExecutor(
        provider,
        poll_interval=settings.poll_interval_seconds,
        run_timeout=settings.run_timeout_seconds,
        clock=clock,
        sleep=clock.sleep,
    )
    return ConversationOrchestrator(
        provider,
        settings=settings,
        run_executor=run_executor,
        sleep=clock.sleep,
    )


@pytest_asyncio.fixture
async def assistant_and_thread(provider):
    """An assistant and an empty thread on the in-memory provider."""
    assistant = await provider.create_assistant(
        name="Tower A Assistant",
        instructions="Answer in Hebrew.",
        model="o3-mini",
        tools=[{"type": "file_search"}],
    )
    thread_id = await provider.create_thread()
    return assistant.id, thread_id
