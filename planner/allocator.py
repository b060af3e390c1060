# ABOUTME: Multi-goal allocator: greedy priority-then-deadline split of the monthly surplus.
# ABOUTME: Infeasibility is reported as data (feasible=False, shortfalls); this module never raises on it.

import math

from core.errors import InvalidInputError
from core.schemas import AllocationPlan, AllocationResult, Goal, GoalPhase


def funding_order(goals: list[Goal]) -> list[Goal]:
    """High priority first; within a priority, sooner target years first. Stable for full ties."""
    return sorted(goals, key=lambda g: (g.priority.rank, g.target_year))


def optimize(goals: list[Goal], available_surplus: float) -> AllocationPlan:
    """Fully fund goals in funding order until the surplus runs out.

    The first goal that cannot be fully funded gets whatever balance remains
    and every goal after it gets nothing. This favours a few fully funded
    goals over many partially funded ones; it is not a proportional split.
    """
    surplus = max(0.0, available_surplus)
    remaining = surplus
    exhausted = False
    results: list[AllocationResult] = []
    total_required = 0.0

    for goal in funding_order(goals):
        if goal.monthly_sip is None:
            raise InvalidInputError(f"Goal {goal.id!r} has not been projected (monthly_sip missing)")
        required = goal.monthly_sip
        total_required += required

        if exhausted:
            funded = 0.0
        elif remaining >= required:
            funded = required
            remaining -= required
        else:
            funded = remaining
            remaining = 0.0
            exhausted = True

        ratio = 1.0 if required <= 0 else min(1.0, funded / required)
        results.append(
            AllocationResult(
                goal_id=goal.id,
                required_amount=required,
                funded_amount=funded,
                funding_ratio=ratio,
                shortfall=max(0.0, required - funded),
            )
        )

    total_funded = sum(r.funded_amount for r in results)
    return AllocationPlan(
        results=results,
        feasible=surplus >= total_required,
        available_surplus=surplus,
        total_required=total_required,
        total_funded=total_funded,
        deficit=max(0.0, total_required - surplus),
    )


def phase_goals(goals: list[Goal], span_years: int = 3) -> list[GoalPhase]:
    """Group goals into consecutive horizon phases ("Years 1-3", "Years 4-6", ...).

    Goals due now or overdue land in the first phase; empty phases are skipped.
    """
    if span_years <= 0:
        raise InvalidInputError("span_years must be positive")
    by_index: dict[int, list[str]] = {}
    for goal in funding_order(goals):
        years = goal.time_in_years if goal.time_in_years is not None else 0
        index = max(0, math.ceil(years / span_years) - 1)
        by_index.setdefault(index, []).append(goal.id)

    phases = []
    for index in sorted(by_index):
        start = index * span_years + 1
        end = start + span_years - 1
        phases.append(
            GoalPhase(
                name=f"Phase {len(phases) + 1}",
                timeframe=f"Years {start}-{end}",
                goal_ids=by_index[index],
            )
        )
    return phases
