from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.rbac import check_permission
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import DashboardResponse, MonthlyCollection, RevenueVelocity
from . import service

router = APIRouter(
    prefix="/api/v1/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(check_permission("reports", "read"))],
)


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    term_number: int = Query(..., ge=1, le=3),
    year: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> DashboardResponse:
    try:
        return await service.get_dashboard(db, term_number, year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/monthly-collections", response_model=List[MonthlyCollection])
async def get_monthly_collections(
    year: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> List[MonthlyCollection]:
    try:
        return await service.get_monthly_collections(db, year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/revenue-velocity", response_model=RevenueVelocity)
async def get_revenue_velocity(db: AsyncSession = Depends(get_db)) -> RevenueVelocity:
    try:
        return await service.get_revenue_velocity(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
