from fastapi import APIRouter, Depends
from school_platform.config import settings
from school_platform.core.access import AccessControl
from school_platform.core.dependencies import get_access_control, get_current_caller, get_store
from school_platform.core.policy import Action, Caller, EntityKind
from school_platform.database.store import DataStore
from school_platform.modules.tenants.schemas import TenantCreate, TenantUpdate, TenantResponse
from school_platform.modules.tenants.service import TenantService
from typing import List

router = APIRouter(prefix="/tenants", tags=["tenants"])


def get_tenant_service(store: DataStore = Depends(get_store)) -> TenantService:
    return TenantService(store)


@router.get("", response_model=List[TenantResponse])
async def list_tenants(
    limit: int = settings.default_page_size,
    offset: int = 0,
    caller: Caller = Depends(get_current_caller),
    access: AccessControl = Depends(get_access_control),
    service: TenantService = Depends(get_tenant_service)
):
    """List tenants: superusers get all, everyone else only their own tenant"""
    row_filter = access.row_filter(caller, EntityKind.TENANT)
    return service.list_tenants(row_filter=row_filter, limit=limit, offset=offset)


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: str,
    caller: Caller = Depends(get_current_caller),
    access: AccessControl = Depends(get_access_control),
    service: TenantService = Depends(get_tenant_service)
):
    """Get tenant by ID (own tenant, or any for superusers)"""
    tenant = access.authorize_existing(caller, Action.READ_ONE, EntityKind.TENANT, {"id": tenant_id})
    return service.get_tenant(tenant)


@router.post("", response_model=TenantResponse, status_code=201)
async def create_tenant(
    tenant_data: TenantCreate,
    caller: Caller = Depends(get_current_caller),
    access: AccessControl = Depends(get_access_control),
    service: TenantService = Depends(get_tenant_service)
):
    """Create a new tenant (superusers only)"""
    access.authorize(caller, Action.CREATE, EntityKind.TENANT, target=tenant_data.model_dump())
    return service.create_tenant(tenant_data)


@router.put("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: str,
    tenant_data: TenantUpdate,
    caller: Caller = Depends(get_current_caller),
    access: AccessControl = Depends(get_access_control),
    service: TenantService = Depends(get_tenant_service)
):
    """Update tenant (superusers only)"""
    access.authorize_existing(caller, Action.UPDATE, EntityKind.TENANT, {"id": tenant_id},
                              changes=tenant_data.model_dump(exclude_unset=True))
    return service.update_tenant(tenant_id, tenant_data)


@router.delete("/{tenant_id}", status_code=204)
async def delete_tenant(
    tenant_id: str,
    caller: Caller = Depends(get_current_caller),
    access: AccessControl = Depends(get_access_control),
    service: TenantService = Depends(get_tenant_service)
):
    """Delete tenant (superusers only)"""
    access.authorize_existing(caller, Action.DELETE, EntityKind.TENANT, {"id": tenant_id})
    service.delete_tenant(tenant_id)
    return None
