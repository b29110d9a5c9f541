import hashlib
import time
from supabase import Client
from school_platform.config.settings import settings
from school_platform.core.exceptions import StoreError, Unauthenticated
from school_platform.core.policy import Caller, Role
from school_platform.database.store import USERS, DataStore
from school_platform.database.supabase_client import SupabaseClient
from typing import Dict, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}


def evict_cached_user(user_id: str) -> None:
    """Drop cached identities for a user so changed claims are picked up on the next request"""
    for cache_key in [k for k, (data, _) in _AUTH_USER_CACHE.items() if data.get("id") == user_id]:
        _AUTH_USER_CACHE.pop(cache_key, None)


def clear_auth_cache() -> None:
    _AUTH_USER_CACHE.clear()


class AuthService:
    def __init__(self, supabase: Client, store: DataStore, admin_client: Optional[Client] = None):
        self.supabase = supabase
        self.store = store
        self._admin_client = admin_client

    @property
    def admin_client(self) -> Client:
        if self._admin_client is None:
            self._admin_client = SupabaseClient.get_service_client()
        return self._admin_client

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise Unauthenticated("Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "app_metadata": user.app_metadata or {},
            }
            if len(_AUTH_USER_CACHE) < settings.auth_cache_max_size:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + settings.auth_cache_ttl_sec)
            return user_data
        except Unauthenticated:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise Unauthenticated("Invalid or expired token")
            raise Unauthenticated("Authentication failed")

    def sync_claims(self, user_id: str, tenant_id: Optional[str], role: Optional[str], required: bool = False) -> bool:
        """Write role/tenant_id into app_metadata (requires service role key). Returns False when the
        auth account cannot be updated, e.g. a users row created before the person registered.
        With required=True a failed call raises StoreError instead of returning False."""
        try:
            response = self.admin_client.auth.admin.update_user_by_id(
                user_id,
                {"app_metadata": {"tenant_id": tenant_id, "role": role}}
            )
        except Exception as e:
            logger.warning(f"Failed to update app_metadata for user {user_id}: {e}")
            if required:
                raise StoreError(f"Failed to update claims for user {user_id}")
            return False
        evict_cached_user(user_id)
        if not response or not response.user:
            logger.warning(f"No auth account to update for user {user_id}")
            return False
        logger.info(f"Updated user {user_id} app_metadata with tenant_id {tenant_id} and role {role}")
        return True

    def revoke_claims(self, user_id: str) -> bool:
        """Clear role/tenant_id so a removed user keeps no tenant rights"""
        return self.sync_claims(user_id, None, None, required=True)

    def repair_claims(self, user_data: Dict[str, Any], force: bool = False) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]], bool]:
        """Backfill missing role/tenant_id claims from the users table.

        Idempotent: claims that already match the users row are left alone.
        With force=True the users row is consulted even when claims look complete.
        Returns (claims, users row or None, whether app_metadata was written).
        """
        claims = dict(user_data.get("app_metadata") or {})
        complete = claims.get("role") and (claims.get("tenant_id") or claims.get("role") == Role.SUPERUSER.value)
        if complete and not force:
            return claims, None, False

        row = self.store.find(USERS, {"id": user_data["id"]})
        if row is None:
            logger.warning(f"User {user_data['id']} does not have a row in the users table")
            return claims, None, False

        wanted = {
            "role": row.get("role") or claims.get("role") or Role.STUDENT.value,
            "tenant_id": row.get("tenant_id") or claims.get("tenant_id"),
        }
        if wanted["role"] == claims.get("role") and wanted["tenant_id"] == claims.get("tenant_id"):
            return claims, row, False

        fixed = self.sync_claims(user_data["id"], wanted["tenant_id"], wanted["role"])
        claims.update(wanted)
        return claims, row, fixed

    def caller_from_user(self, user_data: Dict[str, Any], claims: Optional[Dict[str, Any]] = None) -> Caller:
        claims = claims if claims is not None else (user_data.get("app_metadata") or {})
        try:
            role = Role(claims.get("role") or Role.STUDENT.value)
        except ValueError:
            logger.warning(f"User {user_data['id']} has unrecognized role claim {claims.get('role')!r}")
            raise Unauthenticated("Invalid role claim")
        return Caller(
            id=user_data["id"],
            role=role,
            tenant_id=claims.get("tenant_id"),
            email=user_data.get("email"),
        )

    def resolve_caller(self, token: str) -> Caller:
        """Token -> caller identity, backfilling claims from the users table when missing"""
        user_data = self.get_current_user(token)
        claims, _, _ = self.repair_claims(user_data)
        return self.caller_from_user(user_data, claims)
