# ABOUTME: Goal sizing helpers: retirement corpus, education and car costs, tax savings, and a suggested risk tolerance.
# ABOUTME: Outputs feed project() as target amounts and risk tolerance; rates are fractions (0.06 = 6 %).

from datetime import date

from core.errors import InvalidInputError
from core.schemas import (
    CarPurchaseEstimate,
    RetirementEstimate,
    RiskRecommendation,
    RiskTolerance,
    TaxSavings,
)
from planner.policy import ACTIVE_POLICY, AllocationPolicy
from planner.projection import _require_amount, _require_number, inflation_adjusted_amount

EDUCATION_INFLATION = 0.10
AUTO_INFLATION = 0.06
CAR_DOWN_PAYMENT_FRACTION = 0.20

# Section 80C caps the deduction at 1.5 lakh; NPS adds 50,000 under 80CCD(1B).
SECTION_80C_LIMIT = 150_000.0
SECTION_80CCD_LIMIT = 50_000.0
_TAX_SECTIONS = {
    "ELSS": ("80C", SECTION_80C_LIMIT),
    "PPF": ("80C", SECTION_80C_LIMIT),
    "EPF": ("80C", SECTION_80C_LIMIT),
    "NPS": ("80C + 80CCD", SECTION_80C_LIMIT + SECTION_80CCD_LIMIT),
}


def retirement_corpus(
    monthly_expenses: float,
    lifestyle_factor: float,
    years_to_retirement: float,
    years_in_retirement: float = 25,
    inflation_rate: float = 0.06,
) -> RetirementEstimate:
    """Corpus needed on the retirement date to fund `years_in_retirement` years of expenses.

    Today's monthly expenses are scaled by `lifestyle_factor` (1.0 keeps the
    current lifestyle) and inflated to the retirement date. The corpus covers
    that monthly need for every month of retirement, with no growth assumed
    after retiring.
    """
    expenses = _require_amount(monthly_expenses, "monthly_expenses")
    factor = _require_amount(lifestyle_factor, "lifestyle_factor")
    years_left = _require_amount(years_to_retirement, "years_to_retirement")
    years_retired = _require_amount(years_in_retirement, "years_in_retirement")
    if expenses == 0 or factor == 0 or years_retired == 0:
        return RetirementEstimate(monthly_need_at_retirement=0.0, total_corpus_required=0.0)

    monthly_need = inflation_adjusted_amount(expenses * factor, years_left, inflation_rate)
    return RetirementEstimate(
        monthly_need_at_retirement=monthly_need,
        total_corpus_required=monthly_need * 12 * years_retired,
    )


def education_cost(
    current_cost: float,
    years_to_education: float,
    inflation_rate: float = EDUCATION_INFLATION,
) -> float:
    return inflation_adjusted_amount(current_cost, years_to_education, inflation_rate)


def car_purchase_cost(
    current_price: float,
    years_to_purchase: float,
    inflation_rate: float = AUTO_INFLATION,
    down_payment_fraction: float = CAR_DOWN_PAYMENT_FRACTION,
) -> CarPurchaseEstimate:
    """Future car price and its split into the down payment (the savings goal) and the loan."""
    if not 0.0 <= down_payment_fraction <= 1.0:
        raise InvalidInputError(f"down_payment_fraction must be between 0 and 1, got {down_payment_fraction!r}")
    future_price = inflation_adjusted_amount(current_price, years_to_purchase, inflation_rate)
    down_payment = future_price * down_payment_fraction
    return CarPurchaseEstimate(
        future_price=future_price,
        down_payment=down_payment,
        loan_amount=future_price - down_payment,
    )


def age_on(date_of_birth: date, today: date | None = None) -> int:
    """Completed years of age on `today`."""
    today = today or date.today()
    if date_of_birth > today:
        raise InvalidInputError(f"date_of_birth {date_of_birth} is in the future")
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def recommend_risk_tolerance(
    age: int,
    time_horizon_years: float,
    policy: AllocationPolicy | None = None,
) -> RiskRecommendation:
    """Suggest a risk tolerance for one goal.

    Short horizons (< 3 years) stay Conservative and medium ones (< 7 years)
    Moderate whatever the client's age. Long horizons are Aggressive below 45
    and Moderate from 45 on. The allocation and expected return come from the
    policy table so the suggestion can go straight into project().
    """
    years = _require_number(time_horizon_years, "time_horizon_years")
    client_age = _require_number(age, "age")
    if client_age < 0:
        raise InvalidInputError(f"age cannot be negative, got {age!r}")
    if policy is None:
        policy = ACTIVE_POLICY

    if years < 3:
        risk = RiskTolerance.CONSERVATIVE
    elif years < 7:
        risk = RiskTolerance.MODERATE
    elif client_age < 45:
        risk = RiskTolerance.AGGRESSIVE
    else:
        risk = RiskTolerance.MODERATE

    allocation = policy.allocation_for(years, risk)
    return RiskRecommendation(
        risk_tolerance=risk,
        allocation=allocation,
        expected_return=policy.blended_return(allocation),
    )


def tax_savings(annual_investment: float, instrument: str, tax_bracket: float = 0.30) -> TaxSavings:
    """Income tax saved by a year's investment in a deductible instrument (ELSS, PPF, EPF, NPS)."""
    amount = _require_amount(annual_investment, "annual_investment")
    if not 0.0 <= tax_bracket <= 1.0:
        raise InvalidInputError(f"tax_bracket must be between 0 and 1, got {tax_bracket!r}")
    section, limit = _TAX_SECTIONS.get(instrument.upper(), (None, 0.0))
    eligible = min(amount, limit)
    saved = eligible * tax_bracket
    return TaxSavings(
        eligible_amount=eligible,
        tax_saved=saved,
        section=section,
        effective_rate=saved / amount if amount > 0 else 0.0,
    )
