# ABOUTME: Asset allocation policy table keyed on (horizon bucket, risk tolerance) plus per-asset returns.
# ABOUTME: Tunable via ALLOCATION_POLICY_PATH (JSON) without touching projection, detector or allocator code.

import json
from pathlib import Path

from pydantic import BaseModel, ValidationError, model_validator

from core.config import ALLOCATION_POLICY_PATH
from core.errors import InvalidInputError
from core.schemas import AssetAllocation, RiskTolerance

ASSET_CLASSES = ("equity", "debt", "gold")


class HorizonBucket(BaseModel):
    name: str
    max_years: int | None = None  # None: open-ended (last bucket)


class AllocationPolicy(BaseModel):
    """Lookup table mapping a goal horizon and client risk tolerance to an asset split.

    Short horizons favour capital preservation whatever the stated risk
    tolerance; long horizons favour growth, moderated by risk tolerance. The
    expected return of an allocation is the weighted blend of ``asset_returns``.
    """

    horizon_buckets: list[HorizonBucket]
    allocations: dict[RiskTolerance, dict[str, AssetAllocation]]
    asset_returns: dict[str, float]

    @model_validator(mode="after")
    def _check_table(self):
        if not self.horizon_buckets:
            raise ValueError("At least one horizon bucket is required")
        *bounded, last = self.horizon_buckets
        if last.max_years is not None:
            raise ValueError("The last horizon bucket must be open-ended")
        previous = None
        for bucket in bounded:
            if bucket.max_years is None:
                raise ValueError("Only the last horizon bucket may be open-ended")
            if previous is not None and bucket.max_years <= previous:
                raise ValueError("Horizon buckets must be in increasing order")
            previous = bucket.max_years
        names = [b.name for b in self.horizon_buckets]
        for risk in RiskTolerance:
            table = self.allocations.get(risk)
            if table is None:
                raise ValueError(f"Missing allocations for {risk.value}")
            missing = [n for n in names if n not in table]
            if missing:
                raise ValueError(f"{risk.value} has no allocation for {', '.join(missing)}")
        missing_returns = [a for a in ASSET_CLASSES if a not in self.asset_returns]
        if missing_returns:
            raise ValueError(f"Missing asset returns for {', '.join(missing_returns)}")
        return self

    def bucket_for(self, years: float) -> str:
        for bucket in self.horizon_buckets:
            if bucket.max_years is None or years <= bucket.max_years:
                return bucket.name
        return self.horizon_buckets[-1].name

    def allocation_for(self, years: float, risk_tolerance: RiskTolerance) -> AssetAllocation:
        return self.allocations[risk_tolerance][self.bucket_for(years)]

    def blended_return(self, allocation: AssetAllocation) -> float:
        weighted = sum(
            getattr(allocation, asset) * self.asset_returns[asset] for asset in ASSET_CLASSES
        )
        return round(weighted / 100.0, 6)


def _split(equity: float, debt: float, gold: float) -> AssetAllocation:
    return AssetAllocation(equity=equity, debt=debt, gold=gold)


DEFAULT_POLICY = AllocationPolicy(
    horizon_buckets=[
        HorizonBucket(name="short", max_years=3),
        HorizonBucket(name="medium", max_years=7),
        HorizonBucket(name="long"),
    ],
    allocations={
        RiskTolerance.CONSERVATIVE: {
            "short": _split(10, 85, 5),
            "medium": _split(30, 60, 10),
            "long": _split(45, 45, 10),
        },
        RiskTolerance.MODERATE: {
            "short": _split(15, 80, 5),
            "medium": _split(45, 45, 10),
            "long": _split(60, 30, 10),
        },
        RiskTolerance.AGGRESSIVE: {
            "short": _split(20, 75, 5),
            "medium": _split(60, 30, 10),
            "long": _split(75, 15, 10),
        },
    },
    asset_returns={"equity": 0.12, "debt": 0.07, "gold": 0.08},
)


def load_policy(path: str | Path | None = None) -> AllocationPolicy:
    """Load a policy override from JSON; the default table is used when no file is configured or present."""
    if path is None:
        return DEFAULT_POLICY
    policy_path = Path(path)
    if not policy_path.exists():
        return DEFAULT_POLICY
    try:
        data = json.loads(policy_path.read_text(encoding="utf-8"))
        return AllocationPolicy.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise InvalidInputError(f"Invalid allocation policy file {policy_path}: {exc}") from exc


ACTIVE_POLICY = load_policy(ALLOCATION_POLICY_PATH)
