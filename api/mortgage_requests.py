from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import MortgageRequest
from schemas.mortgage import MortgageDataUpdate, MortgageRequestCreate, MortgageRequestResponse
from services import mortgage as mortgage_service
from services.exceptions import ConcurrencyConflict, DuplicateApplicationError, NotFoundError, ValidationError

router = APIRouter(prefix="/api/mortgage-requests", tags=["mortgage-requests"])


def _to_response(request: MortgageRequest) -> MortgageRequestResponse:
    return MortgageRequestResponse.from_model(request)


@router.post("", status_code=201, response_model=MortgageRequestResponse)
async def create_mortgage_request(body: MortgageRequestCreate, db: AsyncSession = Depends(get_db)):
    try:
        request = await mortgage_service.create_mortgage_request(db, body.applicant_id)
    except DuplicateApplicationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _to_response(request)


@router.get("", response_model=list[MortgageRequestResponse])
async def list_mortgage_requests(
    page: int = Query(1),
    page_size: int = Query(10, alias="pageSize"),
    status: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    try:
        requests = await mortgage_service.list_mortgage_requests(db, page=page, page_size=page_size, status=status)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return [_to_response(r) for r in requests]


@router.get("/user/{applicant_id}", response_model=MortgageRequestResponse)
async def get_mortgage_request_by_applicant(applicant_id: str, db: AsyncSession = Depends(get_db)):
    try:
        request = await mortgage_service.get_mortgage_request_by_applicant(db, applicant_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _to_response(request)


@router.get("/{request_id}", response_model=MortgageRequestResponse)
async def get_mortgage_request(request_id: str, db: AsyncSession = Depends(get_db)):
    try:
        request = await mortgage_service.get_mortgage_request(db, request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _to_response(request)


@router.put("/{request_id}/data", response_model=MortgageRequestResponse)
async def update_mortgage_data(request_id: str, body: MortgageDataUpdate, db: AsyncSession = Depends(get_db)):
    """Merge field values into the request and return it with its re-evaluated status."""
    try:
        request = await mortgage_service.merge_mortgage_data(db, request_id, body.data)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConcurrencyConflict as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _to_response(request)


@router.post("/{request_id}/refresh-status", response_model=MortgageRequestResponse)
async def refresh_mortgage_status(request_id: str, db: AsyncSession = Depends(get_db)):
    try:
        request = await mortgage_service.refresh_status(db, request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConcurrencyConflict as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _to_response(request)


@router.delete("/{request_id}", status_code=204)
async def delete_mortgage_request(request_id: str, db: AsyncSession = Depends(get_db)):
    try:
        await mortgage_service.delete_mortgage_request(db, request_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConcurrencyConflict as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return Response(status_code=204)
