from pydantic import BaseModel
from school_platform.core.policy import Role
from typing import Optional


class MeResponse(BaseModel):
    id: str
    email: Optional[str] = None
    tenant_id: Optional[str] = None
    role: Role


class ClaimsSyncResponse(BaseModel):
    user: MeResponse
    database_user: Optional[dict] = None
    fixed: bool
