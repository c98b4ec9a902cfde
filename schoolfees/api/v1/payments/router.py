"""Payments router: record, soft delete, approve/reject deletion, approval queue, history."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from schoolfees.auth.dependencies import get_current_user
from schoolfees.auth.rbac import check_permission
from schoolfees.auth.schemas import CurrentUser
from schoolfees.core.enums import PaymentState
from schoolfees.core.exceptions import ServiceError
from schoolfees.db.session import get_db

from .schemas import PaymentCreate, PaymentResponse, RejectDeletionRequest, SoftDeleteRequest
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("payments", "create"))],
)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.record_payment(db, payload, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def list_payments(
    pupil_id: Optional[UUID] = Query(None),
    term_number: Optional[int] = Query(None, ge=1, le=3),
    year: Optional[int] = Query(None),
    state: Optional[PaymentState] = Query(None),
    include_excluded: bool = Query(False, description="Include payments whose deletion was approved"),
    db: AsyncSession = Depends(get_db),
) -> List[PaymentResponse]:
    try:
        return await service.list_payments(
            db,
            pupil_id=pupil_id,
            term_number=term_number,
            year=year,
            state=state,
            include_excluded=include_excluded,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/pending-deletions",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("payments", "approve_delete"))],
)
async def list_pending_deletions(db: AsyncSession = Depends(get_db)) -> List[PaymentResponse]:
    try:
        return await service.list_pending_deletions(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/history/{pupil_id}",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def get_payment_history(
    pupil_id: UUID,
    include_excluded: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[PaymentResponse]:
    try:
        return await service.get_payment_history(db, pupil_id, include_excluded=include_excluded)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def get_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    try:
        return await service.get_payment(db, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{payment_id}/soft-delete",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "soft_delete"))],
)
async def soft_delete_payment(
    payment_id: UUID,
    payload: SoftDeleteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.soft_delete_payment(db, payment_id, payload.reason, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{payment_id}/approve-deletion",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "approve_delete"))],
)
async def approve_deletion(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.approve_deletion(db, payment_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{payment_id}/reject-deletion",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "approve_delete"))],
)
async def reject_deletion(
    payment_id: UUID,
    payload: RejectDeletionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.reject_deletion(db, payment_id, payload.rejection_reason, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
