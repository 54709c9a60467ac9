"""
Typed view over the open mortgage field mapping.
The stored mapping stays a plain snake_case dict (income_annual, credit_score, ...);
MortgageFields.from_mapping parses it into optional per-category structs plus an extra bag.
Malformed numeric values degrade to None and are listed in invalid_fields.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from services.exceptions import ValidationError

logger = logging.getLogger(__name__)


class RequirementCategory(str, Enum):
    """Requirement categories, in the order missing ones are reported."""

    INCOME = "Income"
    CREDIT = "Credit"
    EMPLOYMENT = "Employment"
    PROPERTY = "Property"


# Canonical keys
INCOME_ANNUAL = "income_annual"
INCOME_EMPLOYMENT_TYPE = "income_employment_type"
INCOME_YEARS_EMPLOYED = "income_years_employed"
CREDIT_SCORE = "credit_score"
CREDIT_REPORT_DATE = "credit_report_date"
CREDIT_OUTSTANDING_DEBTS = "credit_outstanding_debts"
EMPLOYMENT_EMPLOYER = "employment_employer"
EMPLOYMENT_JOB_TITLE = "employment_job_title"
EMPLOYMENT_MONTHLY_SALARY = "employment_monthly_salary"
EMPLOYMENT_VERIFIED = "employment_verified"
PROPERTY_VALUE = "property_value"
PROPERTY_LOAN_AMOUNT = "property_loan_amount"
PROPERTY_TYPE = "property_type"
PROPERTY_APPRAISAL_DATE = "property_appraisal_date"
PROPERTY_APPRAISAL_COMPLETED = "property_appraisal_completed"

# Legacy keys still accepted from older clients
LEGACY_ANNUAL_INCOME = "annual_income"
LEGACY_LOAN_AMOUNT = "loan_amount"
LEGACY_INCOME_VERIFICATION = "income_verification"
LEGACY_CREDIT_REPORT = "credit_report"
LEGACY_EMPLOYMENT_VERIFICATION = "employment_verification"
LEGACY_PROPERTY_APPRAISAL = "property_appraisal"

# Ordered fallback lookups: first parseable key wins
ANNUAL_INCOME_KEYS = (INCOME_ANNUAL, LEGACY_ANNUAL_INCOME)
CREDIT_SCORE_KEYS = (CREDIT_SCORE,)
LOAN_AMOUNT_KEYS = (PROPERTY_LOAN_AMOUNT, LEGACY_LOAN_AMOUNT)

# Any one of these keys satisfies the category
CATEGORY_KEYS: dict[RequirementCategory, tuple[str, ...]] = {
    RequirementCategory.INCOME: ANNUAL_INCOME_KEYS + (LEGACY_INCOME_VERIFICATION,),
    RequirementCategory.CREDIT: CREDIT_SCORE_KEYS + (LEGACY_CREDIT_REPORT,),
    RequirementCategory.EMPLOYMENT: (EMPLOYMENT_EMPLOYER, LEGACY_EMPLOYMENT_VERIFICATION),
    RequirementCategory.PROPERTY: (PROPERTY_VALUE,) + LOAN_AMOUNT_KEYS + (LEGACY_PROPERTY_APPRAISAL,),
}


# Leading-digit exponent bounds for non-zero numbers: 0.0001 <= |x| < 1e12
MIN_EXPONENT = -4
MAX_EXPONENT = 11


def to_decimal(key: str, value: Any) -> Decimal:
    """
    Coerce a JSON value to Decimal.
    Booleans, NaN, infinities and non-zero magnitudes outside [1e-4, 1e12) are rejected.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Field '{key}' must be numeric, got {value!r}", field=key)
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValidationError(f"Field '{key}' must be numeric, got {value!r}", field=key) from e
    if not result.is_finite():
        raise ValidationError(f"Field '{key}' must be a finite number, got {value!r}", field=key)
    # adjusted() is the exponent of the leading digit; it never rounds or signals
    if result != 0 and not MIN_EXPONENT <= result.adjusted() <= MAX_EXPONENT:
        raise ValidationError(f"Field '{key}' is out of range, got {value!r}", field=key)
    return result


def to_int(key: str, value: Any) -> int:
    result = to_decimal(key, value)
    if result != result.to_integral_value():
        raise ValidationError(f"Field '{key}' must be a whole number, got {value!r}", field=key)
    return int(result)


def to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"Field '{key}' must be a boolean, got {value!r}", field=key)


def to_text(key: str, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValidationError(f"Field '{key}' must be a scalar value", field=key)
    return str(value)


class IncomeData(BaseModel):
    """Income verification data."""
    annual: Optional[Decimal] = Field(None, description="Annual income in USD")
    employment_type: Optional[str] = Field(None, description="full-time, part-time, contract, self-employed")
    years_employed: Optional[Decimal] = Field(None, description="Years employed (half years allowed)")


class CreditData(BaseModel):
    """Credit report data."""
    score: Optional[int] = Field(None, description="Credit score, nominally 300-850")
    report_date: Optional[str] = Field(None, description="ISO date of the credit report")
    outstanding_debts: Optional[Decimal] = Field(None, description="Outstanding debts in USD")


class EmploymentData(BaseModel):
    """Employment verification data."""
    employer: Optional[str] = None
    job_title: Optional[str] = None
    monthly_salary: Optional[Decimal] = None
    verified: Optional[bool] = None


class PropertyData(BaseModel):
    """Property appraisal data."""
    value: Optional[Decimal] = Field(None, description="Appraised property value in USD")
    loan_amount: Optional[Decimal] = Field(None, description="Requested loan amount in USD")
    type: Optional[str] = Field(None, description="single-family, condo, townhouse, multi-family")
    appraisal_date: Optional[str] = None
    appraisal_completed: Optional[bool] = None


Coercer = Callable[[str, Any], Any]

# attribute -> (ordered keys, coercer), per category struct
_CATEGORY_LAYOUT: dict[RequirementCategory, tuple[type[BaseModel], dict[str, tuple[tuple[str, ...], Coercer]]]] = {
    RequirementCategory.INCOME: (
        IncomeData,
        {
            "annual": (ANNUAL_INCOME_KEYS, to_decimal),
            "employment_type": ((INCOME_EMPLOYMENT_TYPE,), to_text),
            "years_employed": ((INCOME_YEARS_EMPLOYED,), to_decimal),
        },
    ),
    RequirementCategory.CREDIT: (
        CreditData,
        {
            "score": (CREDIT_SCORE_KEYS, to_int),
            "report_date": ((CREDIT_REPORT_DATE,), to_text),
            "outstanding_debts": ((CREDIT_OUTSTANDING_DEBTS,), to_decimal),
        },
    ),
    RequirementCategory.EMPLOYMENT: (
        EmploymentData,
        {
            "employer": ((EMPLOYMENT_EMPLOYER,), to_text),
            "job_title": ((EMPLOYMENT_JOB_TITLE,), to_text),
            "monthly_salary": ((EMPLOYMENT_MONTHLY_SALARY,), to_decimal),
            "verified": ((EMPLOYMENT_VERIFIED,), to_bool),
        },
    ),
    RequirementCategory.PROPERTY: (
        PropertyData,
        {
            "value": ((PROPERTY_VALUE,), to_decimal),
            "loan_amount": (LOAN_AMOUNT_KEYS, to_decimal),
            "type": ((PROPERTY_TYPE,), to_text),
            "appraisal_date": ((PROPERTY_APPRAISAL_DATE,), to_text),
            "appraisal_completed": ((PROPERTY_APPRAISAL_COMPLETED,), to_bool),
        },
    ),
}

KNOWN_KEYS: frozenset[str] = frozenset(
    key
    for category, (_, layout) in _CATEGORY_LAYOUT.items()
    for keys in [CATEGORY_KEYS[category]] + [k for k, _ in layout.values()]
    for key in keys
)


def _lookup(data: dict[str, Any], keys: tuple[str, ...], coerce: Coercer, invalid: list[str]) -> Any:
    for key in keys:
        if key not in data or data[key] is None:
            continue
        try:
            return coerce(key, data[key])
        except ValidationError as e:
            logger.warning("Ignoring malformed mortgage field: %s", e)
            invalid.append(key)
    return None


class MortgageFields(BaseModel):
    """
    Parsed mortgage fields. A category struct is present iff one of its satisfying keys
    is present in the raw mapping, even when its values failed to parse.
    """
    income: Optional[IncomeData] = None
    credit: Optional[CreditData] = None
    employment: Optional[EmploymentData] = None
    property: Optional[PropertyData] = None
    extra: dict[str, Any] = Field(default_factory=dict, description="Keys outside the known catalogue")
    invalid_fields: list[str] = Field(default_factory=list, description="Keys whose values could not be coerced")

    def category(self, category: RequirementCategory) -> Optional[BaseModel]:
        return getattr(self, category.name.lower())

    def missing_categories(self) -> list[RequirementCategory]:
        return [c for c in RequirementCategory if self.category(c) is None]

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "MortgageFields":
        data = data or {}
        invalid: list[str] = []
        parsed: dict[str, Any] = {}
        for category, (model, layout) in _CATEGORY_LAYOUT.items():
            if not any(k in data for k in CATEGORY_KEYS[category]):
                continue
            parsed[category.name.lower()] = model(
                **{attr: _lookup(data, keys, coerce, invalid) for attr, (keys, coerce) in layout.items()}
            )
        extra = {k: v for k, v in data.items() if k not in KNOWN_KEYS}
        return cls(**parsed, extra=extra, invalid_fields=list(dict.fromkeys(invalid)))
