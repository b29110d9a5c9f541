from school_platform.core.exceptions import InvalidRequest
from school_platform.core.filters import Eq, RowFilter
from school_platform.core.policy import Visibility
from school_platform.database.store import ALLOWED_SCHOOLS, COMPETITIONS, TENANTS, DataStore
from school_platform.modules.competitions.schemas import CompetitionCreate, CompetitionResponse
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

# Columns that may be written through an update; tenant_id never changes
UPDATABLE_FIELDS = ("title", "description", "visibility")


class CompetitionService:
    def __init__(self, store: DataStore):
        self.store = store

    def proposed_row(self, competition_data: CompetitionCreate, default_tenant_id: Optional[str]) -> Dict[str, Any]:
        return {
            "title": competition_data.title,
            "description": competition_data.description,
            "visibility": competition_data.visibility.value,
            "tenant_id": competition_data.tenant_id or default_tenant_id,
        }

    def create_competition(self, row: Dict[str, Any]) -> CompetitionResponse:
        tenant_id = row.get("tenant_id")
        if not tenant_id:
            raise InvalidRequest("tenant_id is required")
        if self.store.find(TENANTS, {"id": tenant_id}) is None:
            raise InvalidRequest(f"Tenant {tenant_id} does not exist")
        created = self.store.insert(COMPETITIONS, row)
        logger.info(f"Created competition {created['id']} ({created['visibility']}) for tenant {tenant_id}")
        return CompetitionResponse(**created)

    def get_competition(self, competition: Dict[str, Any]) -> CompetitionResponse:
        return CompetitionResponse(**competition)

    def list_competitions(self, row_filter: Optional[RowFilter] = None, limit: int = 100, offset: int = 0) -> List[CompetitionResponse]:
        rows = self.store.list(COMPETITIONS, row_filter, order_by="created_at", desc=True, limit=limit, offset=offset)
        return [CompetitionResponse(**row) for row in rows]

    def list_by_tenant(self, tenant_id: str, limit: int = 100, offset: int = 0) -> List[CompetitionResponse]:
        return self.list_competitions(Eq("tenant_id", tenant_id), limit=limit, offset=offset)

    def list_public(self, limit: int = 100, offset: int = 0) -> List[CompetitionResponse]:
        return self.list_competitions(Eq("visibility", Visibility.PUBLIC.value), limit=limit, offset=offset)

    def update_competition(self, current: Dict[str, Any], changes: Dict[str, Any]) -> CompetitionResponse:
        update_data = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        # title/visibility are not nullable; description may be cleared
        update_data = {k: v for k, v in update_data.items() if v is not None or k == "description"}
        if not update_data:
            return CompetitionResponse(**current)
        row = self.store.update(COMPETITIONS, {"id": current["id"]}, update_data)
        return CompetitionResponse(**row)

    def delete_competition(self, competition_id: str) -> None:
        # Remove grants first
        for grant in self.store.list(ALLOWED_SCHOOLS, Eq("competition_id", competition_id)):
            self.store.delete(ALLOWED_SCHOOLS, {"competition_id": competition_id, "school_id": grant["school_id"]})
        self.store.delete(COMPETITIONS, {"id": competition_id})
        logger.info(f"Deleted competition {competition_id}")
