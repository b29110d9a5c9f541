"""
Access control engine: resolves the facts the rule table needs through the
data store, evaluates policy.decide() and turns denials into AccessDenied.

A missing target surfaces as NotFoundError, never as a denial, so routes can
answer 404 and 403 distinctly. Denials that hold whatever the target is are
raised before the lookup.
"""

from dataclasses import replace
from typing import Any, Dict, Optional, Tuple
import logging

from school_platform.core.exceptions import AccessDenied
from school_platform.core.filters import Eq, RowFilter
from school_platform.core.policy import (
    AccessRequest,
    Action,
    Caller,
    Decision,
    Deny,
    EntityKind,
    ListScope,
    Visibility,
    decide,
    precheck,
    school_accessible_filter,
)
from school_platform.database.store import (
    ALLOWED_SCHOOLS,
    COMPETITIONS,
    TENANTS,
    USERS,
    DataStore,
)

logger = logging.getLogger(__name__)

# Table holding the row a request's target refers to
TARGET_TABLES = {
    EntityKind.TENANT: TENANTS,
    EntityKind.USER: USERS,
    EntityKind.COMPETITION: COMPETITIONS,
    EntityKind.ALLOWED_SCHOOL: COMPETITIONS,
}


class AccessControl:
    def __init__(self, store: DataStore):
        self.store = store

    # Ownership lookups

    def grant_exists(self, competition_id: str, school_id: Optional[str]) -> bool:
        if not school_id:
            return False
        grant = self.store.find(ALLOWED_SCHOOLS, {"competition_id": competition_id, "school_id": school_id})
        return grant is not None

    def granted_competition_ids(self, school_id: Optional[str]) -> Tuple[str, ...]:
        """Ids of competitions with a grant naming this school"""
        if not school_id:
            return ()
        grants = self.store.list(ALLOWED_SCHOOLS, Eq("school_id", school_id))
        return tuple(dict.fromkeys(g["competition_id"] for g in grants))

    def accessible_competition_filter(self, school_id: Optional[str]) -> RowFilter:
        return school_accessible_filter(school_id, self.granted_competition_ids(school_id))

    def _resolve_facts(self, req: AccessRequest) -> AccessRequest:
        if req.caller.is_superuser:
            return req
        target = req.target or {}
        if (
            req.action == Action.READ_ONE
            and req.kind in (EntityKind.COMPETITION, EntityKind.ALLOWED_SCHOOL)
            and target.get("visibility") == Visibility.RESTRICTED.value
            and target.get("tenant_id") != req.caller.tenant_id
        ):
            return replace(req, has_grant=self.grant_exists(target.get("id"), req.caller.tenant_id))
        if req.action == Action.READ_MANY and req.kind == EntityKind.COMPETITION and req.scope == ListScope.ALL:
            return replace(req, granted_competition_ids=self.granted_competition_ids(req.caller.tenant_id))
        return req

    # Decisions

    def _raise_if_denied(self, req: AccessRequest, decision: Optional[Decision]):
        if isinstance(decision, Deny):
            logger.info(
                f"Denied {req.action.value} on {req.kind.value} for user {req.caller.id} "
                f"({req.caller.role.value}): {decision.reason}"
            )
            raise AccessDenied(decision.reason)

    def check(
        self,
        caller: Caller,
        action: Action,
        kind: EntityKind,
        target: Optional[Dict[str, Any]] = None,
        changes: Optional[Dict[str, Any]] = None,
        scope: ListScope = ListScope.ALL,
        scope_tenant_id: Optional[str] = None,
    ) -> Decision:
        """Return the decision without raising"""
        req = AccessRequest(
            caller=caller,
            action=action,
            kind=kind,
            target=target,
            changes=changes,
            scope=scope,
            scope_tenant_id=scope_tenant_id,
        )
        return decide(self._resolve_facts(req))

    def authorize(
        self,
        caller: Caller,
        action: Action,
        kind: EntityKind,
        target: Optional[Dict[str, Any]] = None,
        changes: Optional[Dict[str, Any]] = None,
        scope: ListScope = ListScope.ALL,
        scope_tenant_id: Optional[str] = None,
    ) -> Decision:
        """Return Allow/AllowFiltered or raise AccessDenied"""
        req = AccessRequest(
            caller=caller,
            action=action,
            kind=kind,
            target=target,
            changes=changes,
            scope=scope,
            scope_tenant_id=scope_tenant_id,
        )
        self._raise_if_denied(req, precheck(req))
        decision = decide(self._resolve_facts(req))
        self._raise_if_denied(req, decision)
        return decision

    def authorize_existing(
        self,
        caller: Caller,
        action: Action,
        kind: EntityKind,
        key: Dict[str, Any],
        changes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Look up the target by key, authorize against it and return the row.

        For allowed-school requests the key addresses the referenced competition.
        Raises NotFoundError when the row is absent, AccessDenied on denial.
        """
        early = precheck(AccessRequest(caller=caller, action=action, kind=kind, target=dict(key), changes=changes))
        self._raise_if_denied(AccessRequest(caller=caller, action=action, kind=kind), early)

        target = self.store.get(TARGET_TABLES[kind], key)
        self.authorize(caller, action, kind, target=target, changes=changes)
        return target

    def row_filter(self, caller: Caller, kind: EntityKind) -> Optional[RowFilter]:
        """Authorize an unscoped listing; None means every row is visible"""
        decision = self.authorize(caller, Action.READ_MANY, kind)
        return getattr(decision, "row_filter", None)
