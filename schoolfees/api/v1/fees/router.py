"""Fee catalog router: upsert, toggle, resolve, list."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import check_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import FeeStructureActiveUpdate, FeeStructureResponse, FeeStructureUpsert
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.put(
    "",
    response_model=FeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def upsert_fee_structure(
    payload: FeeStructureUpsert,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.upsert_fee_structure(db, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{fee_structure_id}/active",
    response_model=FeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "activate"))],
)
async def set_fee_structure_active(
    fee_structure_id: UUID,
    payload: FeeStructureActiveUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.set_fee_structure_active(db, fee_structure_id, payload.is_active, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/resolve",
    response_model=FeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def resolve_fee(
    grade_id: UUID,
    term_number: int = Query(..., ge=1, le=3),
    year: int = Query(...),
    db: AsyncSession = Depends(get_db),
) -> FeeStructureResponse:
    try:
        return await service.resolve_fee(db, grade_id, term_number, year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[FeeStructureResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_structures(
    grade_id: Optional[UUID] = Query(None),
    term_number: Optional[int] = Query(None, ge=1, le=3),
    year: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[FeeStructureResponse]:
    try:
        return await service.list_fee_structures(
            db,
            grade_id=grade_id,
            term_number=term_number,
            year=year,
            is_active=is_active,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
