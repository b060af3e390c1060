# ABOUTME: Pytest tests for build_plan, the cache-gated get_recommendations flow and goal edits.
# ABOUTME: The advisory call is replaced by async fakes; the cache runs on in-memory SQLite.

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from advisor.service import build_plan, get_recommendations, remove_goal, update_goal
from core.errors import CacheStorageError, InvalidInputError, UpstreamFailure
from core.schemas import AdvisoryRecommendation, ClientProfile, Goal, GoalInput, Priority

ADVICE = AdvisoryRecommendation(
    summary="Fund the home goal first.",
    warnings=["Car goal is underfunded"],
)


def _run(coro):
    return asyncio.run(coro)


def test_build_plan_projects_and_allocates(goals, client_profile):
    plan = build_plan(goals, client_profile, current_year=2026)

    assert plan.client_id == "client-1"
    assert all(g.monthly_sip is not None for g in plan.goals)
    assert goals[0].monthly_sip == plan.goals[0].monthly_sip
    assert plan.allocation.available_surplus == 40_000
    assert plan.allocation.results[0].goal_id == "g-home"
    assert plan.phases


@pytest.mark.parametrize(
    "missing",
    ["risk_tolerance", "total_monthly_income", "total_monthly_expenses", "monthly_emi"],
)
def test_profile_without_cash_flow_field_is_rejected(client_profile, missing):
    """Cash flow and risk tolerance must be supplied; nothing falls back to zero or Moderate."""
    fields = client_profile.model_dump()
    del fields[missing]
    with pytest.raises(ValidationError, match=missing):
        ClientProfile(**fields)


def test_build_plan_accepts_goal_inputs(client_profile):
    raw = [GoalInput(id="a", title="A", target_amount=100_000, target_year=2026)]
    plan = build_plan(raw, client_profile, current_year=2026)
    assert plan.goals[0].immediate is True
    assert plan.goals[0].monthly_sip == 100_000


def test_build_plan_rejects_duplicate_ids(client_profile):
    dup = [
        GoalInput(id="a", title="A", target_amount=1, target_year=2030),
        GoalInput(id="a", title="B", target_amount=2, target_year=2031),
    ]
    with pytest.raises(InvalidInputError, match="Duplicate"):
        build_plan(dup, client_profile)


def test_miss_fetches_and_stores(cache, goals, client_profile):
    fetch = AsyncMock(return_value=ADVICE)

    outcome = _run(get_recommendations(goals, client_profile, cache=cache, fetch=fetch, current_year=2026))

    assert outcome.advice_status == "fresh"
    assert outcome.from_cache is False
    assert outcome.advice == ADVICE
    fetch.assert_awaited_once()
    assert cache.lookup(goals, client_profile) is not None


def test_hit_skips_fetch_and_returns_same_payload(cache, clock, goals, client_profile):
    first = _run(
        get_recommendations(goals, client_profile, cache=cache, fetch=AsyncMock(return_value=ADVICE), current_year=2026)
    )
    clock.now = clock.now + timedelta(minutes=25)
    fetch = AsyncMock()

    second = _run(get_recommendations(goals, client_profile, cache=cache, fetch=fetch))

    fetch.assert_not_awaited()
    assert second.from_cache is True
    assert second.advice_status == "cached"
    assert second.advice.model_dump() == first.advice.model_dump()
    assert second.plan.model_dump() == first.plan.model_dump()
    assert second.age_minutes == pytest.approx(25)
    assert second.stale is False


def test_stale_hit_is_flagged(cache, clock, goals, client_profile):
    _run(get_recommendations(goals, client_profile, cache=cache, fetch=AsyncMock(return_value=ADVICE)))
    clock.now = clock.now + timedelta(hours=2)

    outcome = _run(
        get_recommendations(goals, client_profile, cache=cache, fetch=AsyncMock(), stale_after_minutes=60)
    )

    assert outcome.from_cache is True
    assert outcome.stale is True
    assert outcome.message


def test_force_refresh_refetches(cache, goals, client_profile):
    _run(get_recommendations(goals, client_profile, cache=cache, fetch=AsyncMock(return_value=ADVICE)))
    newer = AdvisoryRecommendation(summary="Updated view.")
    fetch = AsyncMock(return_value=newer)

    outcome = _run(get_recommendations(goals, client_profile, cache=cache, fetch=fetch, force_refresh=True))

    fetch.assert_awaited_once()
    assert outcome.advice == newer
    assert cache.lookup(goals, client_profile).payload["advice"]["summary"] == "Updated view."


def test_upstream_failure_propagates_and_caches_nothing(cache, goals, client_profile):
    fetch = AsyncMock(side_effect=UpstreamFailure("timed out"))

    with pytest.raises(UpstreamFailure):
        _run(get_recommendations(goals, client_profile, cache=cache, fetch=fetch))

    assert cache.lookup(goals, client_profile) is None


def test_unexpected_fetch_error_becomes_upstream_failure_with_plan(cache, goals, client_profile):
    fetch = AsyncMock(side_effect=RuntimeError("boom"))

    with pytest.raises(UpstreamFailure) as excinfo:
        _run(get_recommendations(goals, client_profile, cache=cache, fetch=fetch, current_year=2026))

    assert excinfo.value.plan is not None
    assert excinfo.value.plan.allocation.results
    assert cache.lookup(goals, client_profile) is None


def test_cancelled_fetch_leaves_cache_untouched(cache, goals, client_profile):
    async def _scenario():
        started = asyncio.Event()

        async def _hang(plan, profile, timeout=None):
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(get_recommendations(goals, client_profile, cache=cache, fetch=_hang))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    _run(_scenario())
    assert cache.lookup(goals, client_profile) is None


def test_cache_storage_failure_degrades_to_miss(goals, client_profile):
    broken = MagicMock()
    broken.lookup.side_effect = CacheStorageError("disk unavailable")
    broken.store.side_effect = CacheStorageError("disk unavailable")
    fetch = AsyncMock(return_value=ADVICE)

    outcome = _run(get_recommendations(goals, client_profile, cache=broken, fetch=fetch))

    assert outcome.advice_status == "fresh"
    fetch.assert_awaited_once()


def test_update_goal_reprojects_and_invalidates(cache, goals, client_profile):
    build_plan(goals, client_profile, current_year=2026)
    cache.store(goals, client_profile, {"plan": {}, "advice": {}})
    old_sip = goals[0].monthly_sip

    updated = update_goal(goals, "g-home", {"target_amount": 3_000_000}, client_profile, cache, current_year=2026)

    assert updated is goals[0]
    assert updated.target_amount == 3_000_000
    assert updated.monthly_sip > old_sip
    assert cache.lookup(goals, client_profile) is None


def test_update_goal_without_change_keeps_cache(cache, goals, client_profile):
    cache.store(goals, client_profile, {"plan": {}, "advice": {}})
    update_goal(goals, "g-car", {"priority": Priority.LOW}, client_profile, cache, current_year=2026)
    assert cache.lookup(goals, client_profile) is not None


@pytest.mark.parametrize(
    "changes, match",
    [
        ({"monthly_sip": 10}, "cannot be edited"),
        ({"target_amount": -5}, "target_amount"),
    ],
)
def test_update_goal_rejects_bad_edits(cache, goals, client_profile, changes, match):
    with pytest.raises(InvalidInputError, match=match):
        update_goal(goals, "g-home", changes, client_profile, cache)
    assert goals[0].target_amount == 2_000_000


def test_update_unknown_goal_raises(cache, goals, client_profile):
    with pytest.raises(InvalidInputError, match="Unknown goal"):
        update_goal(goals, "nope", {"title": "x"}, client_profile, cache)


def test_remove_goal_invalidates(cache, goals, client_profile):
    cache.store(goals, client_profile, {"plan": {}, "advice": {}})

    remaining = remove_goal(goals, "g-car", client_profile, cache)

    assert [g.id for g in remaining] == ["g-home", "g-edu"]
    assert cache.lookup(goals, client_profile) is None
    assert cache.lookup(remaining, client_profile) is None


def test_other_clients_unaffected_by_edit(cache, goals, client_profile):
    other = client_profile.model_copy(update={"client_id": "client-9"})
    other_goals = [Goal(id="x", title="X", target_amount=10_000, target_year=2030)]
    cache.store(other_goals, other, {"plan": {}, "advice": {}})
    update_goal(goals, "g-home", {"title": "Villa"}, client_profile, cache)
    assert cache.lookup(other_goals, other) is not None
