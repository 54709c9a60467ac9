"""
Derives mortgage request status from the merged field mapping.
Pure function of the mapping: same fields in, same status/reason/missing requirements out.
All money and ratio arithmetic is Decimal; threshold comparisons are inclusive.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from schemas.fields import MortgageFields
from schemas.mortgage import MortgageStatus

MIN_CREDIT_SCORE = 650
MAX_DEBT_TO_INCOME = Decimal("0.43")
ASSUMED_ANNUAL_RATE = Decimal("0.07")
ASSUMED_TERM_YEARS = 30

REASON_SUBMITTED = "Application submitted - awaiting documentation"
REASON_ADDITIONAL_INFO = "Additional information required"
REASON_MANUAL_REVIEW = "All documents received - under manual review for missing financial data"

_CENTS = Decimal("0.01")
_MAX_DTI_LABEL = f"{int(MAX_DEBT_TO_INCOME * 100)}%"


@dataclass(frozen=True)
class Evaluation:
    status: MortgageStatus
    status_reason: str
    missing_requirements: list[str] = field(default_factory=list)
    # Rounded to cents for display; the decision uses the unrounded payment
    monthly_payment: Optional[Decimal] = None
    debt_to_income: Optional[Decimal] = None


def calculate_monthly_payment(
    principal: Decimal,
    annual_rate: Decimal = ASSUMED_ANNUAL_RATE,
    years: int = ASSUMED_TERM_YEARS,
) -> Decimal:
    """
    Fixed-rate amortized monthly payment at full Decimal precision (not rounded to cents).
    M = P * r(1+r)^n / ((1+r)^n - 1), r = annual_rate / 12, n = years * 12; M = P / n when the rate is zero.
    """
    principal = Decimal(principal)
    annual_rate = Decimal(annual_rate)
    n = years * 12
    if n <= 0:
        raise ValueError("Loan term must be at least one month")
    if annual_rate == 0:
        return principal / n
    r = annual_rate / 12
    compounded = (1 + r) ** n
    return principal * (r * compounded) / (compounded - 1)


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def is_approvable(credit_score: int, debt_to_income: Decimal) -> bool:
    """Both thresholds are inclusive."""
    return credit_score >= MIN_CREDIT_SCORE and debt_to_income <= MAX_DEBT_TO_INCOME


def format_percent(ratio: Decimal) -> str:
    return f"{to_cents(ratio * 100)}%"


def evaluate(data: dict[str, Any]) -> Evaluation:
    """Run the status algorithm over the full field mapping of one request."""
    fields = MortgageFields.from_mapping(data)

    missing = fields.missing_categories()
    if missing:
        return Evaluation(
            status=MortgageStatus.REQUIRES_ADDITIONAL_INFO,
            status_reason=REASON_ADDITIONAL_INFO,
            missing_requirements=[c.value for c in missing],
        )

    income = fields.income.annual
    credit_score = fields.credit.score
    loan_amount = fields.property.loan_amount
    if not _all_positive(income, credit_score, loan_amount):
        return Evaluation(status=MortgageStatus.UNDER_REVIEW, status_reason=REASON_MANUAL_REVIEW)

    monthly_income = income / 12
    monthly_payment = calculate_monthly_payment(loan_amount)
    dti = monthly_payment / monthly_income

    if is_approvable(credit_score, dti):
        return Evaluation(
            status=MortgageStatus.APPROVED,
            status_reason=f"Application approved - Credit: {credit_score}, DTI: {format_percent(dti)}",
            monthly_payment=to_cents(monthly_payment),
            debt_to_income=dti,
        )

    reasons: list[str] = []
    if credit_score < MIN_CREDIT_SCORE:
        reasons.append(f"Credit score too low ({credit_score} < {MIN_CREDIT_SCORE})")
    if dti > MAX_DEBT_TO_INCOME:
        reasons.append(f"Debt-to-income ratio too high ({format_percent(dti)} > {_MAX_DTI_LABEL})")
    return Evaluation(
        status=MortgageStatus.REJECTED,
        status_reason=f"Application rejected: {', '.join(reasons)}",
        monthly_payment=to_cents(monthly_payment),
        debt_to_income=dti,
    )


def _all_positive(*values: Optional[Decimal | int]) -> bool:
    return all(v is not None and v > 0 for v in values)
