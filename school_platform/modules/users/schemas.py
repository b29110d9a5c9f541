from pydantic import BaseModel, EmailStr
from school_platform.core.policy import Role
from typing import Optional
from datetime import datetime


class UserCreate(BaseModel):
    email: EmailStr
    tenant_id: Optional[str] = None  # defaults to the creator's tenant
    role: Role = Role.STUDENT


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    tenant_id: Optional[str] = None
    role: Optional[Role] = None


class UserResponse(BaseModel):
    id: str
    email: str
    tenant_id: Optional[str] = None
    role: Role
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
