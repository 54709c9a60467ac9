from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MortgageStatus(str, Enum):
    PENDING = "Pending"
    REQUIRES_ADDITIONAL_INFO = "RequiresAdditionalInfo"
    UNDER_REVIEW = "UnderReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["MortgageStatus"]:
        """Case-insensitive lookup by value; None for blank or unknown names."""
        if not value or not value.strip():
            return None
        wanted = value.strip().lower()
        return next((s for s in cls if s.value.lower() == wanted), None)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MortgageRequestCreate(_CamelModel):
    applicant_id: str = Field(..., min_length=1, max_length=256, description="Applicant user name")


class MortgageDataUpdate(_CamelModel):
    """Partial update: keys overwrite, absent keys are preserved."""
    data: dict[str, Any] = Field(default_factory=dict)


class MortgageRequestResponse(_CamelModel):
    id: str
    applicant_id: str
    status: MortgageStatus
    status_reason: str
    missing_requirements: list[str]
    data: dict[str, Any]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, obj: Any) -> "MortgageRequestResponse":
        return cls(
            id=obj.id,
            applicant_id=obj.applicant_id,
            status=obj.status,
            status_reason=obj.status_reason,
            missing_requirements=list(obj.missing_requirements or []),
            data=dict(obj.request_data or {}),
            created_at=obj.created_at,
            updated_at=obj.updated_at,
        )
