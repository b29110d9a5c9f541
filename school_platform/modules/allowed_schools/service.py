from school_platform.core.exceptions import InvalidRequest
from school_platform.core.filters import Eq, In, RowFilter
from school_platform.core.policy import Visibility
from school_platform.database.store import ALLOWED_SCHOOLS, COMPETITIONS, TENANTS, DataStore
from school_platform.modules.allowed_schools.schemas import AllowedSchoolResponse
from school_platform.modules.competitions.schemas import CompetitionResponse
from school_platform.modules.tenants.schemas import TenantResponse
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)


class AllowedSchoolService:
    def __init__(self, store: DataStore):
        self.store = store

    def list_grants(self, limit: int = 100, offset: int = 0) -> List[AllowedSchoolResponse]:
        rows = self.store.list(ALLOWED_SCHOOLS, limit=limit, offset=offset)
        return [AllowedSchoolResponse(**row) for row in rows]

    def list_schools_for_competition(self, competition_id: str) -> List[TenantResponse]:
        """Tenants holding a grant for this competition"""
        grants = self.store.list(ALLOWED_SCHOOLS, Eq("competition_id", competition_id))
        school_ids = [g["school_id"] for g in grants]
        if not school_ids:
            return []
        rows = self.store.list(TENANTS, In("id", school_ids), order_by="name")
        return [TenantResponse(**row) for row in rows]

    def list_accessible_competitions(self, row_filter: RowFilter) -> List[CompetitionResponse]:
        """Competitions matching a school's accessibility filter; one entry per competition"""
        rows = self.store.list(COMPETITIONS, row_filter, order_by="created_at", desc=True)
        unique = {row["id"]: row for row in rows}
        logger.info(f"Found {len(unique)} accessible competitions")
        return [CompetitionResponse(**row) for row in unique.values()]

    def create_grant(self, competition: Dict[str, Any], school_id: str) -> AllowedSchoolResponse:
        """Grant a school access to a competition and force it to restricted visibility.

        Idempotent: granting the same pair twice leaves one grant. The visibility
        flip and the insert are separate writes; the flip goes first so a grant
        is never visible on a competition that is not restricted.
        """
        if self.store.find(TENANTS, {"id": school_id}) is None:
            raise InvalidRequest(f"School {school_id} does not exist")

        if competition.get("visibility") != Visibility.RESTRICTED.value:
            self.store.update(COMPETITIONS, {"id": competition["id"]}, {"visibility": Visibility.RESTRICTED.value})
            logger.info(f"Competition {competition['id']} visibility set to restricted")

        key = {"competition_id": competition["id"], "school_id": school_id}
        existing = self.store.find(ALLOWED_SCHOOLS, key)
        if existing is not None:
            return AllowedSchoolResponse(**existing)
        row = self.store.insert(ALLOWED_SCHOOLS, key)
        logger.info(f"Granted school {school_id} access to competition {competition['id']}")
        return AllowedSchoolResponse(**row)

    def delete_grant(self, competition_id: str, school_id: str) -> None:
        """Remove a grant; the competition keeps its current visibility"""
        self.store.delete(ALLOWED_SCHOOLS, {"competition_id": competition_id, "school_id": school_id})
        logger.info(f"Revoked school {school_id} access to competition {competition_id}")
