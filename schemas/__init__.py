from schemas.fields import (
    CreditData,
    EmploymentData,
    IncomeData,
    MortgageFields,
    PropertyData,
    RequirementCategory,
)
from schemas.mortgage import (
    MortgageDataUpdate,
    MortgageRequestCreate,
    MortgageRequestResponse,
    MortgageStatus,
)

__all__ = [
    "CreditData",
    "EmploymentData",
    "IncomeData",
    "MortgageFields",
    "PropertyData",
    "RequirementCategory",
    "MortgageDataUpdate",
    "MortgageRequestCreate",
    "MortgageRequestResponse",
    "MortgageStatus",
]
