"""Balances router: pupil balances and grade / school collection summaries."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.rbac import check_permission
from schoolfees.core.enums import BalanceStatus
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import GradeSummary, PupilBalance, SchoolSummary
from . import service

router = APIRouter(
    prefix="/api/v1/balances",
    tags=["balances"],
    dependencies=[Depends(check_permission("reports", "read"))],
)


@router.get("/pupils/{pupil_id}", response_model=PupilBalance)
async def get_pupil_balance(
    pupil_id: UUID,
    term_number: int = Query(..., ge=1, le=3),
    year: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> PupilBalance:
    try:
        return await service.compute_pupil_balance(db, pupil_id, term_number, year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/pupils", response_model=List[PupilBalance])
async def list_pupil_balances(
    term_number: int = Query(..., ge=1, le=3),
    year: int = Query(...),
    grade_id: Optional[UUID] = Query(None),
    status_filter: Optional[BalanceStatus] = Query(None, alias="status"),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[PupilBalance]:
    try:
        return await service.list_pupil_balances(
            db,
            term_number,
            year,
            grade_id=grade_id,
            status_filter=status_filter,
            include_inactive=include_inactive,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/grades/{grade_id}", response_model=GradeSummary)
async def get_grade_summary(
    grade_id: UUID,
    term_number: int = Query(..., ge=1, le=3),
    year: int = Query(...),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> GradeSummary:
    try:
        return await service.compute_grade_summary(
            db, grade_id, term_number, year, include_inactive=include_inactive
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/school", response_model=SchoolSummary)
async def get_school_summary(
    term_number: int = Query(..., ge=1, le=3),
    year: int = Query(...),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> SchoolSummary:
    try:
        return await service.compute_school_summary(
            db, term_number, year, include_inactive=include_inactive
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
