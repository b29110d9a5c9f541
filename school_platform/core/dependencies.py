"""
Core dependencies for route protection: caller identity, data store and
access engine wiring
"""

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from school_platform.core.access import AccessControl
from school_platform.core.exceptions import AccessDenied, Unauthenticated
from school_platform.core.policy import Caller
from school_platform.database.store import DataStore, SupabaseStore
from school_platform.database.supabase_client import get_supabase, get_service_supabase
from school_platform.modules.auth.service import AuthService
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_store(supabase: Client = Depends(get_service_supabase)) -> DataStore:
    return SupabaseStore(supabase)


def get_access_control(store: DataStore = Depends(get_store)) -> AccessControl:
    return AccessControl(store)


def get_auth_service(
    supabase: Client = Depends(get_supabase),
    store: DataStore = Depends(get_store),
) -> AuthService:
    return AuthService(supabase, store)


def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("No token provided")
    return credentials.credentials


def get_current_caller(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> Caller:
    """Resolve the bearer token to the caller identity (id, tenant_id, role)"""
    return auth_service.resolve_caller(token)


def get_tenant_caller(caller: Caller = Depends(get_current_caller)) -> Caller:
    """Caller for tenant-scoped routes; non-superusers must have a tenant assigned"""
    if not caller.is_superuser and not caller.tenant_id:
        logger.warning(f"User {caller.id} does not have a tenant_id")
        raise AccessDenied("User does not have a tenant assigned")
    return caller
