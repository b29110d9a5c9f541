from school_platform.core.filters import RowFilter
from school_platform.database.store import TENANTS, DataStore
from school_platform.modules.tenants.schemas import TenantCreate, TenantUpdate, TenantResponse
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class TenantService:
    def __init__(self, store: DataStore):
        self.store = store

    def create_tenant(self, tenant_data: TenantCreate) -> TenantResponse:
        row = self.store.insert(TENANTS, {"name": tenant_data.name})
        logger.info(f"Created tenant {row['id']}")
        return TenantResponse(**row)

    def get_tenant(self, tenant: dict) -> TenantResponse:
        return TenantResponse(**tenant)

    def list_tenants(self, row_filter: Optional[RowFilter] = None, limit: int = 100, offset: int = 0) -> List[TenantResponse]:
        rows = self.store.list(TENANTS, row_filter, order_by="created_at", desc=True, limit=limit, offset=offset)
        return [TenantResponse(**row) for row in rows]

    def update_tenant(self, tenant_id: str, tenant_data: TenantUpdate) -> TenantResponse:
        row = self.store.update(TENANTS, {"id": tenant_id}, {"name": tenant_data.name})
        return TenantResponse(**row)

    def delete_tenant(self, tenant_id: str) -> None:
        self.store.delete(TENANTS, {"id": tenant_id})
        logger.info(f"Deleted tenant {tenant_id}")
