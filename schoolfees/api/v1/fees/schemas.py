"""Fee catalog schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FeeStructureUpsert(BaseModel):
    grade_id: UUID
    term_number: int = Field(..., ge=1, le=3)
    year: int = Field(..., ge=2000, le=2100)
    amount: Decimal = Field(..., ge=0)


class FeeStructureActiveUpdate(BaseModel):
    is_active: bool


class FeeStructureResponse(BaseModel):
    id: UUID
    grade_id: UUID
    grade_name: Optional[str] = None
    term_number: int
    year: int
    amount: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime
