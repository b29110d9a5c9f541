"""
Data store collaborator: per-table CRUD over Supabase (PostgREST).

Every method raises NotFoundError when the addressed row is absent and
StoreError for any other backend failure. Keys are column -> value mappings
so composite keys (competition_allowed_schools) work the same way as ids.
"""

from typing import Any, Dict, List, Optional, Protocol
import logging

from postgrest.exceptions import APIError
from supabase import Client

from school_platform.core.exceptions import NotFoundError, StoreError
from school_platform.core.filters import RowFilter

logger = logging.getLogger(__name__)

TENANTS = "tenants"
USERS = "users"
COMPETITIONS = "competitions"
ALLOWED_SCHOOLS = "competition_allowed_schools"

ENTITY_NAMES = {
    TENANTS: "Tenant",
    USERS: "User",
    COMPETITIONS: "Competition",
    ALLOWED_SCHOOLS: "Allowed school",
}

# PostgREST: "JSON object requested, multiple (or no) rows returned"
NO_ROWS_CODE = "PGRST116"


def entity_name(table: str) -> str:
    return ENTITY_NAMES.get(table, "Resource")


class DataStore(Protocol):
    def get(self, table: str, key: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def find(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def list(
        self,
        table: str,
        row_filter: Optional[RowFilter] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        ...

    def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update(self, table: str, key: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete(self, table: str, key: Dict[str, Any]) -> Dict[str, Any]:
        ...


class SupabaseStore:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _match(self, query, key: Dict[str, Any]):
        for column, value in key.items():
            query = query.eq(column, value)
        return query

    def _execute(self, table: str, query):
        try:
            return query.execute()
        except APIError as e:
            if getattr(e, "code", None) == NO_ROWS_CODE:
                raise NotFoundError(entity_name(table))
            logger.error(f"Supabase error on {table}: {e}")
            raise StoreError(str(e))
        except Exception as e:
            logger.error(f"Supabase request on {table} failed: {e}")
            raise StoreError(str(e))

    def find(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the row matching key, or None when absent"""
        query = self._match(self.supabase.table(table).select("*"), key).limit(1)
        result = self._execute(table, query)
        if not result.data:
            return None
        return result.data[0]

    def get(self, table: str, key: Dict[str, Any]) -> Dict[str, Any]:
        row = self.find(table, key)
        if row is None:
            raise NotFoundError(entity_name(table))
        return row

    def list(
        self,
        table: str,
        row_filter: Optional[RowFilter] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        if row_filter is not None and row_filter.is_empty():
            return []
        query = self.supabase.table(table).select("*")
        if row_filter is not None:
            query = row_filter.apply(query)
        if order_by:
            query = query.order(order_by, desc=desc)
        if limit is not None:
            query = query.limit(limit).offset(offset)
        result = self._execute(table, query)
        return result.data or []

    def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        result = self._execute(table, self.supabase.table(table).insert(values))
        if not result.data:
            raise StoreError(f"Failed to create {entity_name(table).lower()}")
        return result.data[0]

    def update(self, table: str, key: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
        query = self._match(self.supabase.table(table).update(values), key)
        result = self._execute(table, query)
        if not result.data:
            raise NotFoundError(entity_name(table))
        return result.data[0]

    def delete(self, table: str, key: Dict[str, Any]) -> Dict[str, Any]:
        query = self._match(self.supabase.table(table).delete(), key)
        result = self._execute(table, query)
        if not result.data:
            raise NotFoundError(entity_name(table))
        return result.data[0]
