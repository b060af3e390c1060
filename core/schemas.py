# ABOUTME: Pydantic models for goals, client profiles, projections, conflicts, allocations and cached advice.
# ABOUTME: Used by the planner core, the ADK advisory agent (output contract) and FastAPI bodies.

import math
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """Sort key: High funds first."""
        return {"High": 0, "Medium": 1, "Low": 2}[self.value]


class RiskTolerance(str, Enum):
    CONSERVATIVE = "Conservative"
    MODERATE = "Moderate"
    AGGRESSIVE = "Aggressive"


class AssetAllocation(BaseModel):
    """Percentage split across asset classes; always sums to 100."""

    model_config = ConfigDict(frozen=True)

    equity: float = Field(ge=0.0, le=100.0)
    debt: float = Field(ge=0.0, le=100.0)
    gold: float = Field(default=0.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def _sums_to_100(self):
        total = self.equity + self.debt + self.gold
        if not math.isclose(total, 100.0, abs_tol=1e-6):
            raise ValueError(f"Allocation must sum to 100, got {total}")
        return self


class GoalInput(BaseModel):
    """Caller-settable goal fields. Derived fields are rejected here."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(min_length=1)
    title: str
    target_amount: float = Field(ge=0.0, allow_inf_nan=False)
    target_year: int
    priority: Priority = Priority.MEDIUM


class Goal(GoalInput):
    """A goal plus the fields the projection engine derives for it."""

    time_in_years: int | None = None
    asset_allocation: AssetAllocation | None = None
    expected_return: float | None = None
    monthly_sip: float | None = None
    immediate: bool = False


class ClientProfile(BaseModel):
    """Household snapshot used for funding math; treated as immutable per call."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1)
    risk_tolerance: RiskTolerance
    total_monthly_income: float = Field(ge=0.0, allow_inf_nan=False)
    total_monthly_expenses: float = Field(ge=0.0, allow_inf_nan=False)
    monthly_emi: float = Field(ge=0.0, allow_inf_nan=False)

    @property
    def available_surplus(self) -> float:
        return max(
            0.0,
            self.total_monthly_income - self.total_monthly_expenses - self.monthly_emi,
        )


class ProjectionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    expected_return: float
    allocation: AssetAllocation
    monthly_sip: float
    months: int
    immediate: bool = False


class Milestone(BaseModel):
    percentage: float
    target_value: float
    months_required: int
    year: int


class RetirementEstimate(BaseModel):
    monthly_need_at_retirement: float
    total_corpus_required: float


class CarPurchaseEstimate(BaseModel):
    future_price: float
    down_payment: float
    loan_amount: float


class RiskRecommendation(BaseModel):
    """Risk tolerance suggested for a goal from the client's age and the goal horizon."""

    risk_tolerance: RiskTolerance
    allocation: AssetAllocation
    expected_return: float


class TaxSavings(BaseModel):
    eligible_amount: float
    tax_saved: float
    section: str | None = None
    effective_rate: float


class ConflictWarning(BaseModel):
    """Goals whose near-term funding needs exceed the available surplus."""

    goal_ids: list[str]
    target_years: list[int]
    combined_monthly_sip: float
    available_surplus: float
    shortfall: float = Field(ge=0.0)
    total_target_amount: float
    severity: Literal["High", "Medium"]
    self_conflict: bool = False


class AllocationResult(BaseModel):
    goal_id: str
    required_amount: float
    funded_amount: float
    funding_ratio: float = Field(ge=0.0, le=1.0)
    shortfall: float = Field(ge=0.0)


class AllocationPlan(BaseModel):
    results: list[AllocationResult]
    feasible: bool
    available_surplus: float
    total_required: float
    total_funded: float
    deficit: float


class GoalPhase(BaseModel):
    name: str
    timeframe: str
    goal_ids: list[str]


class PlanReport(BaseModel):
    """Deterministic planning output: projected goals, conflicts, allocation and phases."""

    client_id: str
    goals: list[Goal]
    conflicts: list[ConflictWarning]
    allocation: AllocationPlan
    phases: list[GoalPhase]


class AdvisoryRecommendation(BaseModel):
    """Structured output from the advisory agent; stored opaquely in the cache."""

    summary: str = Field(description="Two or three sentence overview of the plan.")
    debt_strategy: list[str] = Field(
        default_factory=list,
        description="Ordered debt prepayment or restructuring suggestions.",
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Risks the client should be told about.",
    )
    opportunities: list[str] = Field(
        default_factory=list,
        description="Ways to close shortfalls or improve returns.",
    )


class CachedRecommendation(BaseModel):
    fingerprint: str
    payload: dict[str, Any]
    created_at: datetime
    age_minutes: float

    def is_stale(self, threshold_minutes: float) -> bool:
        return self.age_minutes > threshold_minutes


class CacheStats(BaseModel):
    total_entries: int
    stale_entries: int
    clients: list[str]


class RecommendationOutcome(BaseModel):
    plan: PlanReport
    advice: AdvisoryRecommendation | None = None
    from_cache: bool = False
    age_minutes: float = 0.0
    stale: bool = False
    advice_status: Literal["fresh", "cached", "unavailable"]
    message: str | None = None
