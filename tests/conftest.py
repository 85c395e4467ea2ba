import os

os.environ["JOBS_ENABLED"] = "false"

import datetime
import threading
import uuid
from typing import Callable, List, Optional

import pytest
from sqlalchemy import select

from janusleaf.analysis.ai_providers.base import AIService, QuoteDraft
from janusleaf.analysis.models import MoodAnalysisTask
from janusleaf.auth.models import User
from janusleaf.core.database import build_engine, build_session_factory, create_tables
from janusleaf.journals.db import create_journal

T0 = datetime.datetime(2025, 3, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class FakeClock:
    """Controllable clock; starts at T0 and only moves when told to."""

    def __init__(self, start: datetime.datetime = T0):
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime.datetime:
        with self._lock:
            return self.now

    def advance(self, **kwargs) -> datetime.datetime:
        with self._lock:
            self.now = self.now + datetime.timedelta(**kwargs)
            return self.now


class FakeAIService(AIService):
    """
    Scripted AI provider.

    `errors` are raised in order before any successful answer. When `gate` is
    set, calls block until it is released, and `started` fires once a call is
    waiting on it.
    """

    model_tag = "fake"

    def __init__(self, score: int = 7, quote: str = "Keep going.", tags: Optional[List[str]] = None):
        self.score = score
        self.quote = quote
        self.tags = tags or ["calm", "growth", "family", "work"]
        self.errors: List[Exception] = []
        self.mood_calls: List[str] = []
        self.quote_calls: List[List[str]] = []
        self.on_score: Optional[Callable[[str], None]] = None
        self.on_quote: Optional[Callable[[List[str]], None]] = None
        self.gate: Optional[threading.Event] = None
        self.started = threading.Event()
        self._lock = threading.Lock()

    def _wait(self) -> None:
        self.started.set()
        if self.gate is not None:
            assert self.gate.wait(timeout=10), "gate was never released"

    def _next_error(self) -> Optional[Exception]:
        with self._lock:
            return self.errors.pop(0) if self.errors else None

    def score_mood(self, text: str) -> int:
        with self._lock:
            self.mood_calls.append(text)
        self._wait()
        if self.on_score is not None:
            self.on_score(text)
        error = self._next_error()
        if error is not None:
            raise error
        return self.score

    def generate_quote(self, entries: List[str]) -> QuoteDraft:
        with self._lock:
            self.quote_calls.append(list(entries))
        self._wait()
        if self.on_quote is not None:
            self.on_quote(entries)
        error = self._next_error()
        if error is not None:
            raise error
        return QuoteDraft(quote=self.quote, tags=list(self.tags))


@pytest.fixture
def engine(tmp_path):
    # File-backed so worker threads see the same database
    test_engine = build_engine(f"sqlite:///{tmp_path / 'janusleaf-test.db'}")
    create_tables(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_ai():
    ai = FakeAIService()
    yield ai
    if ai.gate is not None:
        ai.gate.set()


@pytest.fixture
def make_user(db):
    def _make(email: Optional[str] = None, user_id: Optional[uuid.UUID] = None) -> User:
        user = User(
            id=user_id or uuid.uuid4(),
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            name="Test User",
            password="not-a-real-hash",
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def make_entry(db, clock):
    def _make(user_id, body: str = "Today was a long but good day.", title: str = "Entry", entry_date=None):
        now = clock()
        return create_journal(db, user_id, title, body, entry_date or now.date(), now)

    return _make


def pending_task(db, entry_id) -> Optional[MoodAnalysisTask]:
    """Current queue row for an entry, re-read from the database."""
    return db.execute(
        select(MoodAnalysisTask)
        .where(MoodAnalysisTask.journal_entry_id == entry_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
