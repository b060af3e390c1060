# ABOUTME: Planning flow: project goals, detect conflicts, allocate surplus, and gate the advisory call on the cache.
# ABOUTME: Upstream failures never write to the cache; cache storage failures degrade to a miss.

import logging
from datetime import date

from pydantic import ValidationError

from advisor.agent import fetch_recommendations
from core.config import (
    ADVISORY_TIMEOUT_SECONDS,
    CACHE_STALE_AFTER_MINUTES,
    MAX_GOALS_PER_PLAN,
)
from core.errors import CacheStorageError, InvalidInputError, UpstreamFailure
from core.schemas import (
    AdvisoryRecommendation,
    CachedRecommendation,
    ClientProfile,
    Goal,
    GoalInput,
    PlanReport,
    RecommendationOutcome,
)
from planner.allocator import optimize, phase_goals
from planner.cache import RecommendationCache, fingerprint
from planner.conflicts import detect_conflicts
from planner.policy import AllocationPolicy
from planner.projection import project_goal, project_goals

_EDITABLE_FIELDS = frozenset({"title", "target_amount", "target_year", "priority"})


def _as_goal(goal: GoalInput) -> Goal:
    if isinstance(goal, Goal):
        return goal
    return Goal(**goal.model_dump())


def _check_goal_set(goals: list[GoalInput]) -> None:
    if len(goals) > MAX_GOALS_PER_PLAN:
        raise InvalidInputError(f"At most {MAX_GOALS_PER_PLAN} goals can be planned together")
    seen: set[str] = set()
    for goal in goals:
        if goal.id in seen:
            raise InvalidInputError(f"Duplicate goal id {goal.id!r}")
        seen.add(goal.id)


def build_plan(
    goals: list[GoalInput],
    profile: ClientProfile,
    *,
    current_year: int | None = None,
    policy: AllocationPolicy | None = None,
) -> PlanReport:
    """Run projection, conflict detection and allocation for one client. Goal instances are updated in place."""
    _check_goal_set(goals)
    year = current_year if current_year is not None else date.today().year
    projected = project_goals(
        [_as_goal(g) for g in goals], profile.risk_tolerance, year, policy
    )
    surplus = profile.available_surplus
    return PlanReport(
        client_id=profile.client_id,
        goals=projected,
        conflicts=detect_conflicts(projected, surplus, current_year=year),
        allocation=optimize(projected, surplus),
        phases=phase_goals(projected),
    )


def _cached_outcome(
    cached: CachedRecommendation, stale_after_minutes: float
) -> RecommendationOutcome | None:
    try:
        plan = PlanReport.model_validate(cached.payload["plan"])
        advice = AdvisoryRecommendation.model_validate(cached.payload["advice"])
    except (KeyError, TypeError, ValidationError):
        logging.warning("cached recommendation has an unexpected shape; recomputing")
        return None
    stale = cached.is_stale(stale_after_minutes)
    return RecommendationOutcome(
        plan=plan,
        advice=advice,
        from_cache=True,
        age_minutes=cached.age_minutes,
        stale=stale,
        advice_status="cached",
        message="Cached recommendations may be out of date." if stale else None,
    )


async def get_recommendations(
    goals: list[GoalInput],
    profile: ClientProfile,
    *,
    cache: RecommendationCache,
    force_refresh: bool = False,
    timeout: float | None = ADVISORY_TIMEOUT_SECONDS,
    fetch=None,
    current_year: int | None = None,
    stale_after_minutes: float = CACHE_STALE_AFTER_MINUTES,
) -> RecommendationOutcome:
    """Serve plan + advice from the cache when the inputs are unchanged; otherwise compute, fetch and store.

    Raises UpstreamFailure (with the deterministic plan attached) when the
    advisory source fails or times out; nothing is cached for that attempt.
    """
    if fetch is None:
        fetch = fetch_recommendations
    _check_goal_set(goals)

    try:
        if force_refresh:
            cache.force_refresh(goals, profile)
        else:
            cached = cache.lookup(goals, profile)
            if cached is not None:
                outcome = _cached_outcome(cached, stale_after_minutes)
                if outcome is not None:
                    return outcome
    except CacheStorageError:
        logging.exception("recommendation cache unavailable; treating as a miss")

    plan = build_plan(goals, profile, current_year=current_year)
    try:
        advice = await fetch(plan, profile, timeout=timeout)
    except UpstreamFailure:
        raise
    except Exception as exc:
        raise UpstreamFailure("Advisory source failed", plan=plan) from exc

    payload = {
        "plan": plan.model_dump(mode="json"),
        "advice": advice.model_dump(mode="json"),
    }
    try:
        cache.store(goals, profile, payload)
    except CacheStorageError:
        logging.exception("could not cache recommendations for client %s", profile.client_id)
    return RecommendationOutcome(plan=plan, advice=advice, advice_status="fresh")


def _invalidate(cache: RecommendationCache, goals: list[GoalInput], profile: ClientProfile) -> None:
    try:
        cache.force_refresh(goals, profile)
    except CacheStorageError:
        logging.exception("could not invalidate cached recommendations for client %s", profile.client_id)


def update_goal(
    goals: list[Goal],
    goal_id: str,
    changes: dict,
    profile: ClientProfile,
    cache: RecommendationCache,
    *,
    current_year: int | None = None,
) -> Goal:
    """Apply caller edits to one goal in place, re-project it and drop the client's cached plan if anything tracked changed."""
    goal = next((g for g in goals if g.id == goal_id), None)
    if goal is None:
        raise InvalidInputError(f"Unknown goal id {goal_id!r}")
    unknown = set(changes) - _EDITABLE_FIELDS
    if unknown:
        raise InvalidInputError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    try:
        candidate = GoalInput.model_validate(
            {**goal.model_dump(include=set(GoalInput.model_fields)), **changes}
        )
    except ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc

    before = fingerprint(goals, profile)
    for field in changes:
        setattr(goal, field, getattr(candidate, field))
    project_goal(goal, profile.risk_tolerance, current_year)
    if fingerprint(goals, profile) != before:
        _invalidate(cache, goals, profile)
    return goal


def remove_goal(
    goals: list[Goal],
    goal_id: str,
    profile: ClientProfile,
    cache: RecommendationCache,
) -> list[Goal]:
    """Return the goal set without goal_id; the client's cached plan no longer applies."""
    remaining = [g for g in goals if g.id != goal_id]
    if len(remaining) == len(goals):
        raise InvalidInputError(f"Unknown goal id {goal_id!r}")
    _invalidate(cache, remaining, profile)
    return remaining
