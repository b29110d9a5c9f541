from pydantic import BaseModel, Field
from school_platform.core.policy import Visibility
from typing import Optional
from datetime import datetime


class CompetitionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    visibility: Visibility = Visibility.PRIVATE
    tenant_id: Optional[str] = None  # defaults to the creator's tenant


class CompetitionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    visibility: Optional[Visibility] = None
    tenant_id: Optional[str] = None  # accepted only when unchanged


class CompetitionResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    visibility: Visibility
    tenant_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
