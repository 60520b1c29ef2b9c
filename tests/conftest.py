"""
Pytest configuration for MapDiary tests

Every test gets its own SQLite database, a clean telemetry registry and a
deterministic clock. AI calls go to FakeBackend; nothing touches the network.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from mapdiary.infrastructure.database import init_database, reset_pool
from mapdiary.llm.gateway import AIGateway
from mapdiary.observability.telemetry import reset_telemetry
from mapdiary.store.documents import DocumentStore
from mapdiary.store.graph_store import GraphStore

START = datetime(2024, 8, 15, 12, 0, 0, tzinfo=UTC)


class TickingClock:
    """Returns ``start``, then advances by ``step`` on every call."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def set(self, moment: datetime) -> None:
        self.now = moment


class FakeBackend:
    """
    Scripted text backend.

    Each call pops the next queued response; an Exception instance is raised
    instead of returned. When the queue is empty ``default`` is returned.
    """

    def __init__(self, *responses, default: str = ""):
        self.responses = list(responses)
        self.default = default
        self.calls: list[tuple[str, bool]] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def __call__(self, prompt: str, json_response: bool = False) -> str:
        self.calls.append((prompt, json_response))
        if not self.responses:
            return self.default
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]


@pytest.fixture(autouse=True)
def temp_database(tmp_path, monkeypatch):
    """Point the connection pool at a fresh database file."""
    db_path = tmp_path / "mapdiary-test.db"
    monkeypatch.setenv("MAPDIARY_DB_PATH", str(db_path))
    monkeypatch.delenv("MAPDIARY_TIMEZONE", raising=False)
    reset_pool()
    init_database()
    yield db_path
    reset_pool()


@pytest.fixture(autouse=True)
def clean_telemetry():
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def store(clock):
    return DocumentStore(clock=clock)


@pytest.fixture
def graph_store(store):
    return GraphStore(store, "user-1")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def gateway(backend, sleeps):
    return AIGateway(
        backend=backend, max_attempts=3, base_delay=2.0, max_delay=30.0, sleep=sleeps.append
    )
