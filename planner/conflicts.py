# ABOUTME: Timeline conflict detector: near-term goals clustered by target year that the surplus cannot cover.
# ABOUTME: Advisory only; never mutates goals and never blocks allocation.

from datetime import date

from core.config import (
    CONFLICT_HIGH_SEVERITY_TOTAL,
    CONFLICT_NEAR_TERM_YEARS,
    CONFLICT_SURPLUS_FRACTION,
    CONFLICT_WINDOW_YEARS,
)
from core.errors import InvalidInputError
from core.schemas import ConflictWarning, Goal


def _required_sip(goal: Goal) -> float:
    if goal.monthly_sip is None:
        raise InvalidInputError(f"Goal {goal.id!r} has not been projected (monthly_sip missing)")
    return goal.monthly_sip


def _cluster_by_year(goals: list[Goal], window_years: int) -> list[list[Goal]]:
    """Group year-sorted goals so each cluster spans at most window_years from its first goal."""
    clusters: list[list[Goal]] = []
    for goal in sorted(goals, key=lambda g: (g.target_year, g.id)):
        if clusters and goal.target_year - clusters[-1][0].target_year <= window_years:
            clusters[-1].append(goal)
        else:
            clusters.append([goal])
    return clusters


def _warning(goals: list[Goal], available_surplus: float, self_conflict: bool) -> ConflictWarning:
    combined = sum(_required_sip(g) for g in goals)
    total_target = sum(g.target_amount for g in goals)
    return ConflictWarning(
        goal_ids=[g.id for g in goals],
        target_years=[g.target_year for g in goals],
        combined_monthly_sip=combined,
        available_surplus=available_surplus,
        shortfall=max(0.0, combined - available_surplus),
        total_target_amount=total_target,
        severity="High" if total_target > CONFLICT_HIGH_SEVERITY_TOTAL else "Medium",
        self_conflict=self_conflict,
    )


def detect_conflicts(
    goals: list[Goal],
    available_surplus: float,
    *,
    current_year: int | None = None,
    window_years: int = CONFLICT_WINDOW_YEARS,
    near_term_years: int = CONFLICT_NEAR_TERM_YEARS,
    surplus_fraction: float = CONFLICT_SURPLUS_FRACTION,
) -> list[ConflictWarning]:
    """Return warnings for clustered near-term goals and for goals that alone exceed the surplus.

    A cluster of two or more goals is flagged when its combined monthly SIP
    exceeds ``surplus_fraction * available_surplus``. A single goal whose SIP
    exceeds ``available_surplus`` is reported as a self-conflict unless a
    cluster warning already names it.
    """
    year = current_year if current_year is not None else date.today().year
    surplus = max(0.0, available_surplus)
    threshold = surplus_fraction * surplus

    near_term = [g for g in goals if g.target_year - year <= near_term_years]
    warnings: list[ConflictWarning] = []
    flagged: set[str] = set()
    for cluster in _cluster_by_year(near_term, window_years):
        if len(cluster) < 2:
            continue
        if sum(_required_sip(g) for g in cluster) > threshold:
            warnings.append(_warning(cluster, surplus, self_conflict=False))
            flagged.update(g.id for g in cluster)

    for goal in goals:
        if goal.id not in flagged and _required_sip(goal) > surplus:
            warnings.append(_warning([goal], surplus, self_conflict=True))
    return warnings
