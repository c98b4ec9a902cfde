"""Grade schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class GradeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class GradeUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class GradeResponse(BaseModel):
    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
