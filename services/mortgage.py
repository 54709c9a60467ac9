from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from models import MortgageRequest
from schemas.fields import RequirementCategory
from schemas.mortgage import MortgageStatus
from services.evaluator import REASON_SUBMITTED, Evaluation, evaluate
from services.exceptions import ConcurrencyConflict, DuplicateApplicationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


async def create_mortgage_request(session: AsyncSession, applicant_id: str) -> MortgageRequest:
    """Open the single mortgage request an applicant may have, in Pending with every requirement missing."""
    applicant_id = _normalize_applicant_id(applicant_id)
    if not applicant_id:
        raise ValidationError("Applicant id cannot be empty", field="applicant_id")

    existing = await session.execute(select(MortgageRequest.id).where(MortgageRequest.applicant_id == applicant_id))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateApplicationError(applicant_id)

    now = datetime.now(timezone.utc)
    request = MortgageRequest(
        id=f"mortgage-{uuid.uuid4().hex[:12]}",
        applicant_id=applicant_id,
        status=MortgageStatus.PENDING.value,
        status_reason=REASON_SUBMITTED,
        missing_requirements=[c.value for c in RequirementCategory],
        request_data={},
        created_at=now,
        updated_at=now,
    )
    session.add(request)
    try:
        await session.flush()
    except IntegrityError as e:
        # Lost a race with another create for the same applicant
        await session.rollback()
        raise DuplicateApplicationError(applicant_id) from e

    logger.info("Created mortgage request %s for applicant %s", request.id, applicant_id)
    return request


async def get_mortgage_request(session: AsyncSession, request_id: str, *, refresh: bool = False) -> MortgageRequest:
    stmt = select(MortgageRequest).where(MortgageRequest.id == request_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError()
    return request


async def get_mortgage_request_by_applicant(session: AsyncSession, applicant_id: str) -> MortgageRequest:
    applicant_id = _normalize_applicant_id(applicant_id)
    result = await session.execute(select(MortgageRequest).where(MortgageRequest.applicant_id == applicant_id))
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError(f"No mortgage request for applicant {applicant_id}")
    return request


async def merge_mortgage_data(session: AsyncSession, request_id: str, updates: dict[str, Any]) -> MortgageRequest:
    """
    Overlay updates onto the stored field mapping (last write wins per key) and re-evaluate status.
    The write is guarded by the row version; a concurrent writer forces a reload and a fresh merge.
    """
    attempts = max(1, settings.merge_max_retries)
    for attempt in range(1, attempts + 1):
        request = await get_mortgage_request(session, request_id, refresh=attempt > 1)
        merged = dict(request.request_data or {})
        merged.update(updates or {})
        request.request_data = merged
        request.updated_at = datetime.now(timezone.utc)
        _apply_evaluation(request, evaluate(merged))
        try:
            await session.flush()
        except StaleDataError:
            await session.rollback()
            logger.warning(
                "Mortgage request %s changed during merge (attempt %d/%d); retrying",
                request_id,
                attempt,
                attempts,
            )
            continue
        logger.info("Updated mortgage request %s with %d field(s). Status: %s", request_id, len(updates or {}), request.status)
        return request
    raise ConcurrencyConflict(request_id, attempts)


async def refresh_status(session: AsyncSession, request_id: str) -> MortgageRequest:
    """Re-run evaluation against the stored fields without changing them."""
    return await merge_mortgage_data(session, request_id, {})


async def delete_mortgage_request(session: AsyncSession, request_id: str) -> None:
    request = await get_mortgage_request(session, request_id)
    await session.delete(request)
    try:
        await session.flush()
    except StaleDataError as e:
        await session.rollback()
        raise ConcurrencyConflict(request_id, 1) from e
    logger.info("Deleted mortgage request %s", request_id)


async def list_mortgage_requests(
    session: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    status: Optional[str] = None,
) -> list[MortgageRequest]:
    """Most recently updated first. Unknown status names are ignored rather than matching nothing."""
    if page < 1:
        raise ValidationError("page must be >= 1", field="page")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValidationError(f"pageSize must be between 1 and {MAX_PAGE_SIZE}", field="page_size")

    stmt = select(MortgageRequest)
    status_filter = MortgageStatus.parse(status)
    if status_filter is not None:
        stmt = stmt.where(MortgageRequest.status == status_filter.value)
    stmt = (
        stmt.order_by(MortgageRequest.updated_at.desc(), MortgageRequest.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def _normalize_applicant_id(applicant_id: Optional[str]) -> str:
    return (applicant_id or "").strip()


def _apply_evaluation(request: MortgageRequest, evaluation: Evaluation) -> None:
    request.status = evaluation.status.value
    request.status_reason = evaluation.status_reason
    request.missing_requirements = list(evaluation.missing_requirements)
