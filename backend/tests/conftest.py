"""
Pytest configuration and shared fixtures for testing.
"""
import os
import sys
from pathlib import Path

# Make `app` and the cron scripts importable when running from the repo root
backend_root = Path(__file__).parent.parent
for _path in (backend_root, backend_root / "scripts"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

# SQLite file lives inside tests/ regardless of the working directory.
# Must be set before app.models.base builds its engine.
_TEST_DB = Path(__file__).parent / "test.db"
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB}")
os.environ.setdefault("DEBUG", "False")

from contextlib import asynccontextmanager  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import AsyncGenerator  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    AssessmentSession,
    Base,
    ModuleType,
    ParticipantStatus,
    PsychometricTest,
    SessionModule,
    SessionParticipant,
    SessionStatus,
    User,
    get_db,
)


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests.

    Skips Sentry initialization and engine disposal.
    """
    yield


# Neutralize the production lifespan on the singleton app.
app.router.lifespan_context = _test_lifespan


def create_test_application():
    """Create the production app with the lifespan disabled.

    Returns the full app (all routes, middleware, exception handlers).
    """
    from app.main import create_application

    test_app = create_application()
    test_app.router.lifespan_context = _test_lifespan
    return test_app


ASYNC_SQLALCHEMY_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_DB}"

async_test_engine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
AsyncTestingSessionLocal = async_sessionmaker(
    async_test_engine, class_=AsyncSession, expire_on_commit=False
)

# Fixed instant all time-dependent tests start from
T0 = datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable stand-in for utc_now() that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """
    Freeze the progress service clock at T0.

    Use clock.advance(minutes=...) to move time forward.
    """
    frozen = FrozenClock(T0)
    with patch("app.services.progress_service.utc_now", new=frozen):
        yield frozen


@pytest.fixture(scope="function")
async def async_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh async database session for each test.
    """
    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncTestingSessionLocal() as session:
        yield session

    async with async_test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
async def async_client(
    async_db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async test client with async database dependency override.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def assessment(async_db_session):
    """
    Seed one session with two tests and a registered participant.

    Layout:
    - session: "Batch A" with modules (1) verbal, 30 min / 20 questions and
      (2) numeric, 10 min / 8 questions
    - participant registered in that session
    - other_session with its own participant (not linked to session)
    - unlinked_test: exists in the catalog but is not a module of session

    Returns plain ids so tests can keep using them after a service call
    rolls back and expires ORM instances.
    """
    db = async_db_session

    user = User(email="participant@example.com", full_name="Rina Participant")
    other_user = User(email="other@example.com", full_name="Other Participant")
    db.add_all([user, other_user])

    verbal = PsychometricTest(
        name="Verbal Reasoning",
        module_type=ModuleType.INTELLIGENCE,
        category="wais",
        time_limit_minutes=30,
        total_questions=20,
        icon="book",
        card_color="blue",
    )
    numeric = PsychometricTest(
        name="Numeric Ability",
        module_type=ModuleType.APTITUDE,
        category="kraepelin",
        time_limit_minutes=10,
        total_questions=8,
    )
    unlinked = PsychometricTest(
        name="Personality Inventory",
        module_type=ModuleType.PERSONALITY,
        category="mbti",
        time_limit_minutes=45,
        total_questions=60,
    )
    db.add_all([verbal, numeric, unlinked])

    session = AssessmentSession(
        session_name="Batch A",
        session_code="BATCH-A",
        start_time=T0 - timedelta(hours=1),
        end_time=T0 + timedelta(hours=8),
        status=SessionStatus.ACTIVE,
    )
    other_session = AssessmentSession(
        session_name="Batch B",
        session_code="BATCH-B",
        start_time=T0 - timedelta(hours=1),
        end_time=T0 + timedelta(hours=8),
        status=SessionStatus.ACTIVE,
    )
    db.add_all([session, other_session])
    await db.flush()

    db.add_all(
        [
            SessionModule(session_id=session.id, test_id=verbal.id, sequence=1),
            SessionModule(session_id=session.id, test_id=numeric.id, sequence=2),
            SessionModule(session_id=other_session.id, test_id=verbal.id, sequence=1),
        ]
    )
    participant = SessionParticipant(
        session_id=session.id,
        user_id=user.id,
        status=ParticipantStatus.REGISTERED,
        registered_at=T0 - timedelta(minutes=30),
    )
    other_participant = SessionParticipant(
        session_id=other_session.id,
        user_id=other_user.id,
        status=ParticipantStatus.REGISTERED,
    )
    db.add_all([participant, other_participant])
    await db.commit()

    return SimpleNamespace(
        session_id=session.id,
        other_session_id=other_session.id,
        participant_id=participant.id,
        other_participant_id=other_participant.id,
        user_id=user.id,
        test_id=verbal.id,
        short_test_id=numeric.id,
        unlinked_test_id=unlinked.id,
    )
