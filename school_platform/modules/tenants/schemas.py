from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1)


class TenantUpdate(BaseModel):
    name: str = Field(..., min_length=1)


class TenantResponse(BaseModel):
    id: str
    name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
