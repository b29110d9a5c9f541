from fastapi import APIRouter, Depends
from school_platform.config import settings
from school_platform.core.access import AccessControl
from school_platform.core.dependencies import get_access_control, get_auth_service, get_store, get_tenant_caller
from school_platform.core.policy import Action, Caller, EntityKind, ListScope
from school_platform.database.store import DataStore
from school_platform.modules.auth.service import AuthService
from school_platform.modules.users.schemas import UserCreate, UserUpdate, UserResponse
from school_platform.modules.users.service import UserService, claims_after
from typing import List

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(store: DataStore = Depends(get_store)) -> UserService:
    return UserService(store)


@router.get("", response_model=List[UserResponse])
async def list_users(
    limit: int = settings.default_page_size,
    offset: int = 0,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: UserService = Depends(get_user_service)
):
    """List all users (superusers only)"""
    access.authorize(caller, Action.READ_MANY, EntityKind.USER, scope=ListScope.ALL)
    return service.list_users(limit=limit, offset=offset)


@router.get("/tenant/{tenant_id}", response_model=List[UserResponse])
async def list_users_by_tenant(
    tenant_id: str,
    limit: int = settings.default_page_size,
    offset: int = 0,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: UserService = Depends(get_user_service)
):
    """List users of a tenant (school admins of that tenant, or superusers)"""
    access.authorize(caller, Action.READ_MANY, EntityKind.USER, scope=ListScope.TENANT, scope_tenant_id=tenant_id)
    return service.list_users_by_tenant(tenant_id, limit=limit, offset=offset)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: UserService = Depends(get_user_service)
):
    """Get user by ID (self, same-tenant school admin, or superuser)"""
    user = access.authorize_existing(caller, Action.READ_ONE, EntityKind.USER, {"id": user_id})
    return service.get_user(user)


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    user_data: UserCreate,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: UserService = Depends(get_user_service)
):
    """Create a user (school admins within their tenant, superusers anywhere)"""
    row = service.proposed_row(user_data, default_tenant_id=caller.tenant_id)
    access.authorize(caller, Action.CREATE, EntityKind.USER, target=row)
    return service.create_user(row)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: UserService = Depends(get_user_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Update a user; nobody may change their own role or tenant"""
    changes = user_data.model_dump(mode="json", exclude_unset=True)
    current = access.authorize_existing(caller, Action.UPDATE, EntityKind.USER, {"id": user_id}, changes=changes)
    claims = claims_after(current, changes)
    if claims is not None:
        # Claims are pushed before the users row is written
        service.validate_claims(claims)
        auth_service.sync_claims(user_id, claims["tenant_id"], claims["role"], required=True)
    return service.update_user(current, changes)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: UserService = Depends(get_user_service),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Delete a user (never yourself); their role and tenant claims are cleared first"""
    access.authorize_existing(caller, Action.DELETE, EntityKind.USER, {"id": user_id})
    auth_service.revoke_claims(user_id)
    service.delete_user(user_id)
    return None
