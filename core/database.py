# ABOUTME: SQLModel recommendation-cache table and SQLite session factory.
# ABOUTME: get_session yields a session; init_db creates the schema on first use.

from contextlib import contextmanager
from datetime import datetime, timezone

from sqlmodel import Field, Session, SQLModel, create_engine

from core.config import PLANNER_DB_PATH


class RecommendationEntry(SQLModel, table=True):
    """One live cached recommendation per client, keyed by the fingerprint it was computed for."""

    __tablename__ = "recommendation_cache"

    client_id: str = Field(primary_key=True)
    fingerprint: str = Field(index=True)
    payload: str  # JSON object
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


_engine = create_engine(
    f"sqlite:///{PLANNER_DB_PATH}",
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    """Create all tables if they do not exist."""
    SQLModel.metadata.create_all(_engine)


@contextmanager
def get_session():
    """Yield an SQLite session for the default engine."""
    init_db()
    with Session(_engine) as session:
        yield session
