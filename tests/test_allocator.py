# ABOUTME: Pytest tests for the greedy multi-goal allocator and phase grouping.
# ABOUTME: Checks priority ordering, conservation, monotonicity and infeasibility reporting.

import pytest

from core.schemas import Goal, Priority, RiskTolerance
from planner.allocator import funding_order, optimize, phase_goals
from planner.projection import project_goal


def _goal(goal_id: str, priority: Priority, sip: float, target_year: int = 2030, years: int | None = None) -> Goal:
    return Goal(
        id=goal_id,
        title=goal_id,
        target_amount=sip * 100,
        target_year=target_year,
        priority=priority,
        monthly_sip=sip,
        time_in_years=years,
    )


def _funded(plan) -> dict:
    return {r.goal_id: r for r in plan.results}


def test_two_goals_high_priority_funded_first():
    """High goal (4,000) is funded fully, Low goal (3,000) gets the remaining 1,000."""
    goals = [_goal("b", Priority.LOW, 3_000), _goal("a", Priority.HIGH, 4_000)]

    plan = optimize(goals, 5_000)

    results = _funded(plan)
    assert results["a"].funded_amount == 4_000
    assert results["a"].funding_ratio == 1.0
    assert results["b"].funded_amount == 1_000
    assert results["b"].funding_ratio == pytest.approx(1 / 3)
    assert results["b"].shortfall == 2_000
    assert plan.feasible is False
    assert plan.deficit == 2_000


def test_single_underfunded_goal_is_infeasible():
    goal = Goal(id="home", title="Home", target_amount=1_200_000, target_year=2036)
    project_goal(goal, RiskTolerance.MODERATE, current_year=2026)

    plan = optimize([goal], 3_000)

    result = plan.results[0]
    assert plan.feasible is False
    assert result.funding_ratio < 1.0
    assert result.shortfall > 0
    assert result.funded_amount == 3_000


def test_goals_after_first_partial_get_nothing():
    """Greedy, not proportional: a cheaper later goal is not funded once the balance is exhausted."""
    goals = [
        _goal("h", Priority.HIGH, 4_000),
        _goal("m", Priority.MEDIUM, 3_000),
        _goal("l", Priority.LOW, 500),
    ]

    results = _funded(optimize(goals, 5_000))

    assert results["m"].funded_amount == 1_000
    assert results["l"].funded_amount == 0
    assert results["l"].funding_ratio == 0


def test_ties_broken_by_sooner_target_year():
    goals = [
        _goal("later", Priority.HIGH, 3_000, target_year=2035),
        _goal("sooner", Priority.HIGH, 3_000, target_year=2028),
    ]
    assert [g.id for g in funding_order(goals)] == ["sooner", "later"]
    results = _funded(optimize(goals, 4_000))
    assert results["sooner"].funded_amount == 3_000
    assert results["later"].funded_amount == 1_000


def test_everything_funded_when_surplus_suffices():
    goals = [_goal("a", Priority.HIGH, 1_000), _goal("b", Priority.LOW, 2_000)]

    plan = optimize(goals, 10_000)

    assert plan.feasible is True
    assert plan.total_funded == 3_000
    assert plan.deficit == 0
    assert all(r.shortfall == 0 for r in plan.results)


@pytest.mark.parametrize("surplus", [0, 1_000, 4_000, 6_500, 9_999, 20_000])
def test_conservation(surplus):
    """Total funded never exceeds the surplus and equals it unless every goal is fully funded."""
    goals = [
        _goal("a", Priority.HIGH, 4_000),
        _goal("b", Priority.MEDIUM, 2_500),
        _goal("c", Priority.LOW, 3_500),
    ]
    plan = optimize(goals, surplus)
    assert plan.total_funded <= surplus + 1e-9
    if not plan.feasible:
        assert plan.total_funded == pytest.approx(surplus)


def test_monotonic_in_surplus():
    """Raising the surplus never lowers any goal's funded amount."""
    goals = [
        _goal("a", Priority.HIGH, 4_000),
        _goal("b", Priority.MEDIUM, 2_500),
        _goal("c", Priority.LOW, 3_500),
    ]
    previous = None
    for surplus in range(0, 12_001, 500):
        current = _funded(optimize(goals, surplus))
        if previous is not None:
            for goal_id, result in current.items():
                assert result.funded_amount >= previous[goal_id].funded_amount
        previous = current


def test_negative_surplus_treated_as_zero():
    plan = optimize([_goal("a", Priority.HIGH, 1_000)], -500)
    assert plan.available_surplus == 0
    assert plan.results[0].funded_amount == 0
    assert plan.feasible is False


def test_zero_requirement_is_fully_funded():
    plan = optimize([_goal("a", Priority.HIGH, 0)], 0)
    assert plan.results[0].funding_ratio == 1.0
    assert plan.feasible is True


def test_phase_goals_groups_by_three_year_windows():
    goals = [
        _goal("now", Priority.HIGH, 1, years=0),
        _goal("two", Priority.LOW, 1, years=2),
        _goal("five", Priority.MEDIUM, 1, years=5),
        _goal("twelve", Priority.HIGH, 1, years=12),
    ]
    phases = phase_goals(goals)
    assert [p.timeframe for p in phases] == ["Years 1-3", "Years 4-6", "Years 10-12"]
    assert phases[0].goal_ids == ["now", "two"]
    assert [p.name for p in phases] == ["Phase 1", "Phase 2", "Phase 3"]
