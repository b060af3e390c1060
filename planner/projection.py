# ABOUTME: Projection engine: (target amount, years, risk tolerance) -> expected return, allocation, monthly SIP.
# ABOUTME: Pure functions; identical inputs give bit-identical outputs, which cache fingerprints rely on.

import math
from datetime import date

from core.errors import InvalidInputError
from core.schemas import Goal, Milestone, ProjectionResult, RiskTolerance
from planner.policy import ACTIVE_POLICY, AllocationPolicy

# Below this the monthly rate is treated as zero and the SIP is a straight division.
_ZERO_RATE_EPSILON = 1e-12

MILESTONE_CHECKPOINTS = (0.25, 0.5, 0.75, 1.0)


def _require_number(value, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    return number


def _require_amount(value, name: str) -> float:
    amount = _require_number(value, name)
    if amount < 0:
        raise InvalidInputError(f"{name} cannot be negative, got {value!r}")
    return amount


def _coerce_risk(value) -> RiskTolerance:
    try:
        return RiskTolerance(value)
    except ValueError as exc:
        allowed = ", ".join(r.value for r in RiskTolerance)
        raise InvalidInputError(
            f"Unknown risk tolerance {value!r}; expected one of {allowed}"
        ) from exc


def monthly_rate_for(annual_return: float) -> float:
    """Convert an effective annual return to the equivalent monthly compounding rate."""
    if annual_return <= -1.0:
        raise InvalidInputError(f"Annual return must be above -100%, got {annual_return!r}")
    return (1.0 + annual_return) ** (1.0 / 12.0) - 1.0


def required_monthly_sip(target_amount: float, annual_return: float, months: int) -> float:
    """Level monthly contribution that grows to target_amount after `months` at annual_return.

    Inverts the future value of an ordinary annuity:

        sip = FV * i / ((1 + i)^n - 1)

    with ``i`` the monthly rate. A zero rate falls back to ``FV / n``.
    """
    if months <= 0:
        raise InvalidInputError("Months must be positive")
    rate = monthly_rate_for(annual_return)
    if abs(rate) < _ZERO_RATE_EPSILON:
        return target_amount / months
    return target_amount * rate / ((1.0 + rate) ** months - 1.0)


def project(
    target_amount,
    time_in_years,
    risk_tolerance,
    policy: AllocationPolicy | None = None,
) -> ProjectionResult:
    """Project one goal. Goals already due (time_in_years <= 0) must be funded immediately in full."""
    amount = _require_amount(target_amount, "target_amount")
    years = _require_number(time_in_years, "time_in_years")
    risk = _coerce_risk(risk_tolerance)
    if policy is None:
        policy = ACTIVE_POLICY

    allocation = policy.allocation_for(years, risk)
    annual_return = policy.blended_return(allocation)

    if years <= 0:
        return ProjectionResult(
            expected_return=annual_return,
            allocation=allocation,
            monthly_sip=amount,
            months=0,
            immediate=True,
        )

    months = max(1, round(years * 12))
    return ProjectionResult(
        expected_return=annual_return,
        allocation=allocation,
        monthly_sip=required_monthly_sip(amount, annual_return, months),
        months=months,
    )


def project_goal(
    goal: Goal,
    risk_tolerance,
    current_year: int | None = None,
    policy: AllocationPolicy | None = None,
) -> Goal:
    """Fill the goal's derived fields in place and return it."""
    year = current_year if current_year is not None else date.today().year
    years = goal.target_year - year
    result = project(goal.target_amount, years, risk_tolerance, policy)
    goal.time_in_years = years
    goal.asset_allocation = result.allocation
    goal.expected_return = result.expected_return
    goal.monthly_sip = result.monthly_sip
    goal.immediate = result.immediate
    return goal


def project_goals(
    goals: list[Goal],
    risk_tolerance,
    current_year: int | None = None,
    policy: AllocationPolicy | None = None,
) -> list[Goal]:
    return [project_goal(g, risk_tolerance, current_year, policy) for g in goals]


def inflation_adjusted_amount(current_cost: float, years: float, inflation_rate: float) -> float:
    """Cost today grown by `inflation_rate` (a fraction, e.g. 0.06) for `years`."""
    cost = _require_amount(current_cost, "current_cost")
    if years <= 0:
        return cost
    return cost * (1.0 + inflation_rate) ** years


def _months_to_reach(value: float, monthly_sip: float, rate: float) -> float:
    if abs(rate) < _ZERO_RATE_EPSILON:
        return value / monthly_sip
    return math.log(1.0 + value * rate / monthly_sip) / math.log(1.0 + rate)


def years_to_target(target_amount: float, monthly_sip: float, annual_return: float) -> int:
    """Whole years needed to reach target_amount contributing monthly_sip; 0 when nothing is invested."""
    if target_amount <= 0 or monthly_sip <= 0:
        return 0
    months = _months_to_reach(target_amount, monthly_sip, monthly_rate_for(annual_return))
    return math.ceil(months / 12 - 1e-9)


def goal_milestones(
    target_amount: float,
    monthly_sip: float,
    annual_return: float,
    horizon_months: int | None = None,
    current_year: int | None = None,
) -> list[Milestone]:
    """Months (and calendar year) at which 25/50/75/100% of the target is reached.

    Checkpoints past `horizon_months` are omitted.
    """
    if target_amount <= 0 or monthly_sip <= 0:
        return []
    year = current_year if current_year is not None else date.today().year
    rate = monthly_rate_for(annual_return)
    milestones = []
    for checkpoint in MILESTONE_CHECKPOINTS:
        value = target_amount * checkpoint
        months = max(1, math.ceil(_months_to_reach(value, monthly_sip, rate) - 1e-9))
        if horizon_months is not None and months > horizon_months:
            continue
        milestones.append(
            Milestone(
                percentage=checkpoint * 100,
                target_value=value,
                months_required=months,
                year=year + months // 12,
            )
        )
    return milestones
