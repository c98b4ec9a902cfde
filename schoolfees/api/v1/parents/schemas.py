"""Parent schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ParentCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=30)
    account_number: Optional[str] = Field(None, max_length=50)


class ParentResponse(BaseModel):
    id: UUID
    full_name: str
    phone_number: Optional[str] = None
    account_number: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
