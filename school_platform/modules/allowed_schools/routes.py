from fastapi import APIRouter, Depends
from school_platform.config import settings
from school_platform.core.access import AccessControl
from school_platform.core.dependencies import get_access_control, get_store, get_tenant_caller
from school_platform.core.policy import Action, Caller, EntityKind, ListScope
from school_platform.database.store import DataStore
from school_platform.modules.allowed_schools.schemas import AllowedSchoolCreate, AllowedSchoolResponse
from school_platform.modules.allowed_schools.service import AllowedSchoolService
from school_platform.modules.competitions.schemas import CompetitionResponse
from school_platform.modules.tenants.schemas import TenantResponse
from typing import List

router = APIRouter(prefix="/competition-allowed-schools", tags=["competition-allowed-schools"])


def get_allowed_school_service(store: DataStore = Depends(get_store)) -> AllowedSchoolService:
    return AllowedSchoolService(store)


@router.get("", response_model=List[AllowedSchoolResponse])
async def list_allowed_schools(
    limit: int = settings.default_page_size,
    offset: int = 0,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: AllowedSchoolService = Depends(get_allowed_school_service)
):
    """List every competition/school grant (superusers only)"""
    access.authorize(caller, Action.READ_MANY, EntityKind.ALLOWED_SCHOOL, scope=ListScope.ALL)
    return service.list_grants(limit=limit, offset=offset)


@router.get("/competition/{competition_id}", response_model=List[TenantResponse])
async def list_schools_for_competition(
    competition_id: str,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: AllowedSchoolService = Depends(get_allowed_school_service)
):
    """Get schools allowed to participate in a competition"""
    access.authorize_existing(caller, Action.READ_ONE, EntityKind.ALLOWED_SCHOOL, {"id": competition_id})
    return service.list_schools_for_competition(competition_id)


@router.get("/school/{school_id}", response_model=List[CompetitionResponse])
async def list_competitions_for_school(
    school_id: str,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: AllowedSchoolService = Depends(get_allowed_school_service)
):
    """Get competitions a school can access: public, its own, and those granted to it"""
    access.authorize(caller, Action.READ_MANY, EntityKind.ALLOWED_SCHOOL,
                     scope=ListScope.TENANT, scope_tenant_id=school_id)
    return service.list_accessible_competitions(access.accessible_competition_filter(school_id))


@router.post("", response_model=AllowedSchoolResponse, status_code=201)
async def create_allowed_school(
    grant: AllowedSchoolCreate,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: AllowedSchoolService = Depends(get_allowed_school_service)
):
    """Add a school to a competition's allowed list; the competition becomes restricted"""
    competition = access.authorize_existing(caller, Action.CREATE, EntityKind.ALLOWED_SCHOOL,
                                            {"id": grant.competition_id})
    return service.create_grant(competition, grant.school_id)


@router.delete("/{competition_id}/{school_id}", status_code=204)
async def delete_allowed_school(
    competition_id: str,
    school_id: str,
    caller: Caller = Depends(get_tenant_caller),
    access: AccessControl = Depends(get_access_control),
    service: AllowedSchoolService = Depends(get_allowed_school_service)
):
    """Remove a school from a competition's allowed list"""
    access.authorize_existing(caller, Action.DELETE, EntityKind.ALLOWED_SCHOOL, {"id": competition_id})
    service.delete_grant(competition_id, school_id)
    return None
