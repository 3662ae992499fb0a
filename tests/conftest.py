"""
Shared fixtures for the intake chat test suite.

The model is always faked. Store tests run either against an in-memory
fake or against SqlSessionStore backed by a temporary SQLite file.
"""

from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from intake.agent.state import UserData
from intake.config import Settings
from intake.db.store import (
    ConcurrentTurnError,
    HistoryEntry,
    SessionRecord,
    SqlSessionStore,
    StoreError,
)


class FakeLLM:
    """Returns a canned reply and records every prompt it was given."""

    def __init__(self, reply: str = "연락 가능한 전화번호를 알려주세요.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Tuple[str, str]] = []

    async def generate(self, system: str, user: str) -> str:
        self.calls.append((system, user))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeStore:
    """In-memory SessionStore with the same conflict rule as the real stores."""

    def __init__(self, load_error: Optional[Exception] = None):
        self.load_error = load_error
        self.turns: Dict[str, List[HistoryEntry]] = {}
        self.rows: Dict[str, Dict] = {}
        self.record_calls = 0

    async def load_history(self, session_id: str) -> List[HistoryEntry]:
        if self.load_error is not None:
            raise self.load_error
        return list(self.turns.get(session_id, []))

    async def record_turn(self, session_id, user_data: UserData, history, entry) -> None:
        self.record_calls += 1
        log = self.turns.setdefault(session_id, [])
        if any(t.seq == entry.seq for t in log):
            raise ConcurrentTurnError(session_id, entry.seq)
        log.append(entry)
        self.rows[session_id] = {
            "id": session_id,
            **user_data.model_dump(),
            "chat_history": [*history, entry],
        }

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        row = self.rows.get(session_id)
        if row is None:
            return None
        return SessionRecord(updated_at="2025-01-01T00:00:00Z", **row)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_key="test-gemini-key",
        supabase_url="https://project.supabase.co",
        supabase_service_role_key="test-service-key",
        store_backend="supabase",
    )


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def failing_store() -> FakeStore:
    return FakeStore(load_error=StoreError("connection refused"))


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'intake.db'}")
    store = SqlSessionStore(engine)
    await store.create_schema()
    yield store
    await engine.dispose()
