"""Pytest configuration and shared fixtures for the test suite."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from errandforge.config import ErrandConfig
from errandforge.memory.store import MemoryStore
from errandforge.observability.metrics import MetricsCollector
from errandforge.observability.tracing import Tracer
from errandforge.sessions.store import SessionStore

# Configure pytest-asyncio to use auto mode
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def config() -> ErrandConfig:
    """Default configuration."""
    return ErrandConfig()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector with its own registry."""
    return MetricsCollector()


@pytest.fixture
def tracer() -> Tracer:
    """Fresh tracer."""
    return Tracer()


@pytest.fixture
def session_store() -> SessionStore:
    """Empty session store."""
    return SessionStore()


@pytest.fixture
def memory_store(metrics: MetricsCollector, config: ErrandConfig) -> MemoryStore:
    """Empty memory store reporting to the test metrics collector."""
    return MemoryStore(metrics=metrics, config=config)


@pytest.fixture
async def session_id(session_store: SessionStore) -> str:
    """Identifier of a freshly created session."""
    return await session_store.create()


@pytest.fixture
def agent_deps(
    memory_store: MemoryStore,
    session_store: SessionStore,
    tracer: Tracer,
    metrics: MetricsCollector,
    config: ErrandConfig,
) -> dict[str, Any]:
    """Keyword arguments shared by every agent constructor."""
    return {
        "memory": memory_store,
        "sessions": session_store,
        "tracer": tracer,
        "metrics": metrics,
        "config": config,
    }


@pytest.fixture
def now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def days_from_now(days: float) -> datetime:
    """Aware UTC datetime the given number of days from now."""
    return datetime.now(timezone.utc) + timedelta(days=days)
