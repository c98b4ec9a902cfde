"""Pupil schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from schoolfees.core.enums import PupilStatus


class PupilCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    grade_id: UUID
    parent_id: Optional[UUID] = None
    status: PupilStatus = PupilStatus.ACTIVE


class PupilUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    grade_id: Optional[UUID] = None
    parent_id: Optional[UUID] = None
    status: Optional[PupilStatus] = None


class PupilResponse(BaseModel):
    id: UUID
    full_name: str
    grade_id: UUID
    grade_name: Optional[str] = None
    parent_id: Optional[UUID] = None
    status: PupilStatus
    enrolled_at: datetime
