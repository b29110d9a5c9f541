from school_platform.core.exceptions import InvalidRequest
from school_platform.core.filters import Eq
from school_platform.core.policy import Role
from school_platform.database.store import TENANTS, USERS, DataStore
from school_platform.modules.users.schemas import UserCreate, UserUpdate, UserResponse
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: DataStore):
        self.store = store

    def _require_tenant(self, tenant_id: Optional[str], role: str) -> None:
        """Non-superuser accounts must belong to an existing tenant"""
        if role == Role.SUPERUSER.value and not tenant_id:
            return
        if not tenant_id:
            raise InvalidRequest("tenant_id is required")
        if self.store.find(TENANTS, {"id": tenant_id}) is None:
            raise InvalidRequest(f"Tenant {tenant_id} does not exist")

    def validate_claims(self, claims: Dict[str, Any]) -> None:
        self._require_tenant(claims.get("tenant_id"), claims["role"])

    def proposed_row(self, user_data: UserCreate, default_tenant_id: Optional[str]) -> Dict[str, Any]:
        """Row that a create request would insert; tenant defaults to the creator's"""
        return {
            "email": user_data.email,
            "tenant_id": user_data.tenant_id or default_tenant_id,
            "role": user_data.role.value,
        }

    def create_user(self, row: Dict[str, Any]) -> UserResponse:
        self._require_tenant(row.get("tenant_id"), row["role"])
        created = self.store.insert(USERS, row)
        logger.info(f"Created user {created['id']} with role {created['role']} in tenant {created.get('tenant_id')}")
        return UserResponse(**created)

    def get_user(self, user: Dict[str, Any]) -> UserResponse:
        return UserResponse(**user)

    def list_users(self, limit: int = 100, offset: int = 0) -> List[UserResponse]:
        rows = self.store.list(USERS, order_by="created_at", desc=True, limit=limit, offset=offset)
        return [UserResponse(**row) for row in rows]

    def list_users_by_tenant(self, tenant_id: str, limit: int = 100, offset: int = 0) -> List[UserResponse]:
        rows = self.store.list(USERS, Eq("tenant_id", tenant_id), order_by="created_at", desc=True,
                               limit=limit, offset=offset)
        return [UserResponse(**row) for row in rows]

    def update_user(self, current: Dict[str, Any], changes: Dict[str, Any]) -> UserResponse:
        # role/tenant_id are not nullable; an explicit null means "leave as is"
        update_data = {k: v for k, v in changes.items() if v is not None}
        if not update_data:
            return UserResponse(**current)
        if "tenant_id" in update_data or "role" in update_data:
            self._require_tenant(
                update_data.get("tenant_id", current.get("tenant_id")),
                update_data.get("role", current.get("role")),
            )
        row = self.store.update(USERS, {"id": current["id"]}, update_data)
        return UserResponse(**row)

    def delete_user(self, user_id: str) -> None:
        self.store.delete(USERS, {"id": user_id})
        logger.info(f"Deleted user {user_id}")


def claims_after(current: Dict[str, Any], changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """role/tenant_id the user will hold after applying changes, or None when neither moves"""
    claims = {
        "tenant_id": changes.get("tenant_id") or current.get("tenant_id"),
        "role": changes.get("role") or current.get("role"),
    }
    if claims["tenant_id"] == current.get("tenant_id") and claims["role"] == current.get("role"):
        return None
    return claims
