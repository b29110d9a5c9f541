from fastapi import APIRouter, Depends
from school_platform.config import settings
from school_platform.core.access import AccessControl
from school_platform.core.dependencies import get_access_control, get_store, get_tenant_caller
from school_platform.core.policy import Action, Caller, EntityKind, ListScope
from school_platform.database.store import DataStore
from school_platform.modules.competitions.schemas import CompetitionCreate, CompetitionUpdate, CompetitionResponse
from school_platform.modules.competitions.service import CompetitionService
from typing import List

router = APIRouter(prefix="/competitions", tags=["competitions"])


def get_competition_service(store: DataStore = Depends(get_store)) -> CompetitionService:
    return CompetitionService(store)


@router.get("", response_model=List[CompetitionResponse])
async def list_competitions(
    limit: int = settings.default_page_size,
    offset: int = 0,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: CompetitionService = Depends(get_competition_service)
):
    """List competitions visible to the caller (all for superusers)"""
    row_filter = access.row_filter(caller, EntityKind.COMPETITION)
    return service.list_competitions(row_filter=row_filter, limit=limit, offset=offset)


@router.get("/visibility/public", response_model=List[CompetitionResponse])
async def list_public_competitions(
    limit: int = settings.default_page_size,
    offset: int = 0,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: CompetitionService = Depends(get_competition_service)
):
    """List public competitions from every tenant"""
    access.authorize(caller, Action.READ_MANY, EntityKind.COMPETITION, scope=ListScope.PUBLIC)
    return service.list_public(limit=limit, offset=offset)


@router.get("/tenant/{tenant_id}", response_model=List[CompetitionResponse])
async def list_competitions_by_tenant(
    tenant_id: str,
    limit: int = settings.default_page_size,
    offset: int = 0,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: CompetitionService = Depends(get_competition_service)
):
    """List a tenant's competitions (members of that tenant, or superusers)"""
    access.authorize(caller, Action.READ_MANY, EntityKind.COMPETITION,
                     scope=ListScope.TENANT, scope_tenant_id=tenant_id)
    return service.list_by_tenant(tenant_id, limit=limit, offset=offset)


@router.get("/{competition_id}", response_model=CompetitionResponse)
async def get_competition(
    competition_id: str,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: CompetitionService = Depends(get_competition_service)
):
    """Get competition by ID, subject to visibility and grants"""
    competition = access.authorize_existing(caller, Action.READ_ONE, EntityKind.COMPETITION, {"id": competition_id})
    return service.get_competition(competition)


@router.post("", response_model=CompetitionResponse, status_code=201)
async def create_competition(
    competition_data: CompetitionCreate,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: CompetitionService = Depends(get_competition_service)
):
    """Create a competition (school admins for their tenant, superusers for any)"""
    row = service.proposed_row(competition_data, default_tenant_id=caller.tenant_id)
    access.authorize(caller, Action.CREATE, EntityKind.COMPETITION, target=row)
    return service.create_competition(row)


@router.put("/{competition_id}", response_model=CompetitionResponse)
async def update_competition(
    competition_id: str,
    competition_data: CompetitionUpdate,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: CompetitionService = Depends(get_competition_service)
):
    """Update a competition; the owning tenant cannot be changed"""
    changes = competition_data.model_dump(mode="json", exclude_unset=True)
    current = access.authorize_existing(caller, Action.UPDATE, EntityKind.COMPETITION, {"id": competition_id},
                                        changes=changes)
    return service.update_competition(current, changes)


@router.delete("/{competition_id}", status_code=204)
async def delete_competition(
    competition_id: str,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: CompetitionService = Depends(get_competition_service)
):
    """Delete a competition and its allowed-school grants"""
    access.authorize_existing(caller, Action.DELETE, EntityKind.COMPETITION, {"id": competition_id})
    service.delete_competition(competition_id)
    return None
