"""Pupils router."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import check_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import PupilStatus
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import PupilCreate, PupilResponse, PupilUpdate
from . import service

router = APIRouter(prefix="/api/v1/pupils", tags=["pupils"])


@router.post(
    "",
    response_model=PupilResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("pupils", "create"))],
)
async def create_pupil(
    payload: PupilCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PupilResponse:
    try:
        return await service.create_pupil(db, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[PupilResponse],
    dependencies=[Depends(check_permission("pupils", "read"))],
)
async def list_pupils(
    grade_id: Optional[UUID] = Query(None),
    pupil_status: Optional[PupilStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> List[PupilResponse]:
    try:
        return await service.list_pupils(
            db,
            grade_id=grade_id,
            status_filter=pupil_status,
            search=search,
            limit=limit,
            offset=offset,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{pupil_id}",
    response_model=PupilResponse,
    dependencies=[Depends(check_permission("pupils", "read"))],
)
async def get_pupil(
    pupil_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PupilResponse:
    try:
        return await service.get_pupil(db, pupil_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{pupil_id}",
    response_model=PupilResponse,
    dependencies=[Depends(check_permission("pupils", "update"))],
)
async def update_pupil(
    pupil_id: UUID,
    payload: PupilUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PupilResponse:
    try:
        return await service.update_pupil(db, pupil_id, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{pupil_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("pupils", "delete"))],
)
async def delete_pupil(
    pupil_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_pupil(db, pupil_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
