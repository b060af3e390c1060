# ABOUTME: Fingerprint-keyed recommendation cache over the SQLModel recommendation_cache table.
# ABOUTME: One live entry per client; a fingerprint mismatch is always a miss; age is reported, never enforced.

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from core.config import CACHE_STALE_AFTER_MINUTES
from core.database import RecommendationEntry, get_session
from core.errors import CacheStorageError
from core.schemas import CachedRecommendation, CacheStats, ClientProfile, GoalInput

# Bump when the canonical form changes so old entries can never match.
FINGERPRINT_VERSION = "v3"


def _amount(value: float) -> str:
    # Exact float text: 1_000_000 and 1_000_000.0 agree, 100.001 and 100.004 do not.
    return repr(float(value))


def canonical_inputs(goals: list[GoalInput], client: ClientProfile) -> dict[str, Any]:
    """The subset of inputs a recommendation depends on. Derived goal fields are deliberately absent."""
    goal_rows = sorted(
        (
            {
                "id": g.id,
                "title": g.title,
                "target_amount": _amount(g.target_amount),
                "target_year": int(g.target_year),
                "priority": g.priority.value,
            }
            for g in goals
        ),
        key=lambda row: json.dumps(row, sort_keys=True),
    )
    return {
        "version": FINGERPRINT_VERSION,
        "client": {
            "client_id": client.client_id,
            "risk_tolerance": client.risk_tolerance.value,
            "total_monthly_income": _amount(client.total_monthly_income),
            "total_monthly_expenses": _amount(client.total_monthly_expenses),
            "monthly_emi": _amount(client.monthly_emi),
        },
        "goals": goal_rows,
    }


def fingerprint(goals: list[GoalInput], client: ClientProfile) -> str:
    """SHA-256 of the canonical, order-independent JSON of canonical_inputs."""
    canonical = json.dumps(
        canonical_inputs(goals, client),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RecommendationCache:
    """Stores one recommendation per client together with the fingerprint it was computed for.

    ``lookup`` then ``store`` is not atomic: two concurrent recomputations for
    the same client both store and the last write wins. Callers that need at
    most one computation in flight must coordinate that themselves.
    """

    def __init__(
        self,
        session_factory: Callable = get_session,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _to_cached(self, row: RecommendationEntry) -> CachedRecommendation:
        created_at = _as_utc(row.created_at)
        age_minutes = (self._clock() - created_at).total_seconds() / 60.0
        try:
            payload = json.loads(row.payload)
        except json.JSONDecodeError as exc:
            raise CacheStorageError(f"Cached payload for {row.client_id!r} is not valid JSON") from exc
        return CachedRecommendation(
            fingerprint=row.fingerprint,
            payload=payload,
            created_at=created_at,
            age_minutes=max(0.0, age_minutes),
        )

    def lookup(self, goals: list[GoalInput], client: ClientProfile) -> CachedRecommendation | None:
        """Return the client's entry if it was computed for exactly these inputs, else None."""
        key = fingerprint(goals, client)
        try:
            with self._session_factory() as session:
                row = session.get(RecommendationEntry, client.client_id)
        except SQLAlchemyError as exc:
            raise CacheStorageError("Could not read recommendation cache") from exc
        if row is None:
            logging.info("recommendation cache miss: client=%s (no entry)", client.client_id)
            return None
        if row.fingerprint != key:
            logging.info("recommendation cache miss: client=%s (inputs changed)", client.client_id)
            return None
        cached = self._to_cached(row)
        logging.info(
            "recommendation cache hit: client=%s age_minutes=%.1f",
            client.client_id,
            cached.age_minutes,
        )
        return cached

    def store(
        self, goals: list[GoalInput], client: ClientProfile, payload: dict[str, Any]
    ) -> CachedRecommendation:
        """Replace the client's entry with payload computed for these inputs. Other clients are untouched."""
        key = fingerprint(goals, client)
        try:
            serialized = json.dumps(payload)
        except (TypeError, ValueError) as exc:
            raise CacheStorageError("Recommendation payload is not JSON serializable") from exc
        created_at = self._clock()
        try:
            with self._session_factory() as session:
                row = session.get(RecommendationEntry, client.client_id)
                if row is None:
                    row = RecommendationEntry(client_id=client.client_id, fingerprint=key, payload=serialized)
                row.fingerprint = key
                row.payload = serialized
                row.created_at = created_at
                session.add(row)
                session.commit()
                session.refresh(row)
                stored = self._to_cached(row)
        except SQLAlchemyError as exc:
            raise CacheStorageError("Could not write recommendation cache") from exc
        logging.info("recommendation cached: client=%s fingerprint=%s", client.client_id, key[:12])
        return stored

    def force_refresh(self, goals: list[GoalInput], client: ClientProfile) -> None:
        """Drop the client's entry so the next lookup misses."""
        try:
            with self._session_factory() as session:
                row = session.get(RecommendationEntry, client.client_id)
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise CacheStorageError("Could not delete recommendation cache entry") from exc
        logging.info(
            "recommendation cache refreshed: client=%s fingerprint=%s",
            client.client_id,
            fingerprint(goals, client)[:12],
        )

    def clear_all(self) -> int:
        """Delete every entry for every client; return how many were removed."""
        try:
            with self._session_factory() as session:
                rows = list(session.exec(select(RecommendationEntry)))
                for row in rows:
                    session.delete(row)
                session.commit()
                count = len(rows)
        except SQLAlchemyError as exc:
            raise CacheStorageError("Could not clear recommendation cache") from exc
        logging.info("recommendation cache cleared: %d entries", count)
        return count

    def stats(self, stale_after_minutes: float = CACHE_STALE_AFTER_MINUTES) -> CacheStats:
        try:
            with self._session_factory() as session:
                rows = list(session.exec(select(RecommendationEntry).order_by(RecommendationEntry.client_id)))
        except SQLAlchemyError as exc:
            raise CacheStorageError("Could not read recommendation cache") from exc
        now = self._clock()
        stale = sum(
            1
            for row in rows
            if (now - _as_utc(row.created_at)).total_seconds() / 60.0 > stale_after_minutes
        )
        return CacheStats(
            total_entries=len(rows),
            stale_entries=stale,
            clients=[row.client_id for row in rows],
        )
