# ABOUTME: Pytest hooks and shared fixtures: in-memory SQLite cache, sample goals and client profile.
# ABOUTME: Points PLANNER_DB_PATH at a throwaway file before core.database is imported.

import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest
from dotenv import load_dotenv
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

load_dotenv()

os.environ.setdefault(
    "PLANNER_DB_PATH", os.path.join(tempfile.gettempdir(), "goal-planner-test.db")
)

from core.database import RecommendationEntry  # noqa: E402,F401  (registers the table)
from core.schemas import ClientProfile, Goal, Priority, RiskTolerance  # noqa: E402
from planner.cache import RecommendationCache  # noqa: E402

CURRENT_YEAR = 2026


@pytest.fixture
def in_memory_engine():
    """Engine for in-memory SQLite; one DB per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def fake_get_session(in_memory_engine):
    """Context manager that yields a session on the in-memory engine."""

    @contextmanager
    def _fake():
        with Session(in_memory_engine) as s:
            yield s

    return _fake


class FakeClock:
    """Settable UTC clock so cache ages are deterministic."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(fake_get_session, clock):
    return RecommendationCache(session_factory=fake_get_session, clock=clock)


@pytest.fixture
def client_profile():
    return ClientProfile(
        client_id="client-1",
        risk_tolerance=RiskTolerance.MODERATE,
        total_monthly_income=150_000,
        total_monthly_expenses=90_000,
        monthly_emi=20_000,
    )


@pytest.fixture
def goals():
    return [
        Goal(
            id="g-home",
            title="Home down payment",
            target_amount=2_000_000,
            target_year=CURRENT_YEAR + 5,
            priority=Priority.HIGH,
        ),
        Goal(
            id="g-edu",
            title="Child education",
            target_amount=2_500_000,
            target_year=CURRENT_YEAR + 15,
            priority=Priority.MEDIUM,
        ),
        Goal(
            id="g-car",
            title="Car",
            target_amount=800_000,
            target_year=CURRENT_YEAR + 3,
            priority=Priority.LOW,
        ),
    ]
