from fastapi import APIRouter, Depends
from school_platform.core.dependencies import get_auth_service, get_current_caller, get_current_token
from school_platform.core.policy import Caller
from school_platform.modules.auth.schemas import MeResponse, ClaimsSyncResponse
from school_platform.modules.auth.service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _me(caller: Caller) -> MeResponse:
    return MeResponse(id=caller.id, email=caller.email, tenant_id=caller.tenant_id, role=caller.role)


@router.get("/me", response_model=MeResponse)
async def get_me(caller: Caller = Depends(get_current_caller)):
    """Get the current authenticated caller as seen by the access engine"""
    return _me(caller)


@router.post("/me/sync", response_model=ClaimsSyncResponse)
async def sync_my_claims(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Re-read role/tenant_id from the users table and fix the token claims if they drifted"""
    user_data = service.get_current_user(token)
    claims, row, fixed = service.repair_claims(user_data, force=True)
    caller = service.caller_from_user(user_data, claims)
    return ClaimsSyncResponse(user=_me(caller), database_user=row, fixed=fixed)
