from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import check_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import ParentCreate, ParentResponse
from . import service

router = APIRouter(prefix="/api/v1/parents", tags=["parents"])


@router.post(
    "",
    response_model=ParentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("parents", "create"))],
)
async def create_parent(
    payload: ParentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ParentResponse:
    try:
        return await service.create_parent(db, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[ParentResponse],
    dependencies=[Depends(check_permission("parents", "read"))],
)
async def list_parents(
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[ParentResponse]:
    try:
        return await service.list_parents(db, search=search)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
