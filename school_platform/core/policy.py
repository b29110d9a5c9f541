"""
Tenant-scoped authorization rules.

One ordered rule table per (entity, action), consulted by every route. Each
rule either returns a decision or passes (None); the first decision wins and a
request that no rule decides is denied with the entry's default reason.
Superusers are allowed before the table is consulted, except for entity
invariants (INVARIANTS) which hold for every role.

decide() is pure: any facts that need the data store (the target row, whether
a grant exists, which competitions are granted to a tenant) are resolved by
AccessControl and carried on the AccessRequest.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union

from school_platform.core.filters import AllOf, AnyOf, Eq, In, RowFilter


class Role(str, Enum):
    STUDENT = "student"
    SCHOOL_ADMIN = "school_admin"
    SUPERUSER = "superuser"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    RESTRICTED = "restricted"


class Action(str, Enum):
    READ_ONE = "read_one"
    READ_MANY = "read_many"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityKind(str, Enum):
    TENANT = "tenant"
    USER = "user"
    COMPETITION = "competition"
    ALLOWED_SCHOOL = "allowed_school"


class ListScope(str, Enum):
    ALL = "all"  # unscoped listing; non-superusers get a row filter
    TENANT = "tenant"  # listing for one tenant (scope_tenant_id)
    PUBLIC = "public"  # public competitions only


@dataclass(frozen=True)
class Caller:
    id: str
    role: Role
    tenant_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_superuser(self) -> bool:
        return self.role == Role.SUPERUSER


@dataclass(frozen=True)
class Allow:
    allowed: ClassVar[bool] = True


@dataclass(frozen=True)
class AllowFiltered:
    row_filter: RowFilter
    allowed: ClassVar[bool] = True


@dataclass(frozen=True)
class Deny:
    reason: str
    allowed: ClassVar[bool] = False


Decision = Union[Allow, AllowFiltered, Deny]

ALLOW = Allow()


@dataclass(frozen=True)
class AccessRequest:
    caller: Caller
    action: Action
    kind: EntityKind
    # Existing row for read_one/update/delete, proposed row for create.
    # For allowed-school requests this is the referenced competition.
    target: Optional[Dict[str, Any]] = None
    changes: Optional[Dict[str, Any]] = None
    scope: ListScope = ListScope.ALL
    scope_tenant_id: Optional[str] = None
    # Resolved facts
    has_grant: bool = False
    granted_competition_ids: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Rule:
    check: Callable[[AccessRequest], Optional[Decision]]
    # False when the rule only looks at the caller and the request body,
    # so it can run before the target row is fetched
    needs_target: bool = True


def allow_if(predicate: Callable[[AccessRequest], bool], needs_target: bool = True) -> Rule:
    return Rule(lambda req: ALLOW if predicate(req) else None, needs_target)


def deny_if(predicate: Callable[[AccessRequest], bool], reason: str, needs_target: bool = True) -> Rule:
    return Rule(lambda req: Deny(reason) if predicate(req) else None, needs_target)


def filter_with(builder: Callable[[AccessRequest], RowFilter]) -> Rule:
    return Rule(lambda req: AllowFiltered(builder(req)), needs_target=False)


def always_allow() -> Rule:
    return Rule(lambda req: ALLOW, needs_target=False)


def deny_always(reason: str) -> Rule:
    return Rule(lambda req: Deny(reason), needs_target=False)


def school_accessible_filter(tenant_id: Optional[str], granted_competition_ids=()) -> RowFilter:
    """Competitions a school can see: public ones, its own, and restricted ones granted to it"""
    return AnyOf(
        Eq("visibility", Visibility.PUBLIC.value),
        Eq("tenant_id", tenant_id) if tenant_id else In("tenant_id", ()),
        AllOf(
            Eq("visibility", Visibility.RESTRICTED.value),
            In("id", granted_competition_ids),
        ),
    )


# Predicates

def _is_admin(req: AccessRequest) -> bool:
    return req.caller.role == Role.SCHOOL_ADMIN


def _is_student(req: AccessRequest) -> bool:
    return req.caller.role == Role.STUDENT


def _target(req: AccessRequest, key: str) -> Any:
    return (req.target or {}).get(key)


def _change(req: AccessRequest, key: str) -> Any:
    return (req.changes or {}).get(key)


def _same_tenant(req: AccessRequest, tenant_id: Optional[str]) -> bool:
    return req.caller.tenant_id is not None and tenant_id == req.caller.tenant_id


def _target_in_caller_tenant(req: AccessRequest) -> bool:
    return _same_tenant(req, _target(req, "tenant_id"))


def _is_self(req: AccessRequest) -> bool:
    return _target(req, "id") == req.caller.id


def _target_is_superuser(req: AccessRequest) -> bool:
    return _target(req, "role") == Role.SUPERUSER.value


def _is_public(req: AccessRequest) -> bool:
    return _target(req, "visibility") == Visibility.PUBLIC.value


def _restricted_and_granted(req: AccessRequest) -> bool:
    return _target(req, "visibility") == Visibility.RESTRICTED.value and req.has_grant


def _scope_mismatch(req: AccessRequest) -> bool:
    return not _same_tenant(req, req.scope_tenant_id)


def _scoped(scope: ListScope) -> Callable[[AccessRequest], bool]:
    return lambda req: req.scope == scope


def _sets_role_or_tenant(req: AccessRequest) -> bool:
    return _change(req, "role") is not None or _change(req, "tenant_id") is not None


def _changes_competition_tenant(req: AccessRequest) -> bool:
    new_tenant = _change(req, "tenant_id")
    return new_tenant is not None and new_tenant != _target(req, "tenant_id")


# Rule table

RULES: Dict[Tuple[EntityKind, Action], Tuple[Rule, ...]] = {
    (EntityKind.TENANT, Action.READ_ONE): (
        allow_if(lambda req: _same_tenant(req, _target(req, "id")), needs_target=False),
        deny_always("Access denied: Cannot view other tenants"),
    ),
    (EntityKind.TENANT, Action.READ_MANY): (
        filter_with(lambda req: Eq("id", req.caller.tenant_id) if req.caller.tenant_id else In("id", ())),
    ),
    (EntityKind.TENANT, Action.CREATE): (deny_always("Only superusers can manage tenants"),),
    (EntityKind.TENANT, Action.UPDATE): (deny_always("Only superusers can manage tenants"),),
    (EntityKind.TENANT, Action.DELETE): (deny_always("Only superusers can manage tenants"),),

    (EntityKind.USER, Action.READ_ONE): (
        allow_if(_is_self, needs_target=False),
        deny_if(_is_student, "Insufficient permissions", needs_target=False),
        allow_if(lambda req: _is_admin(req) and _target_in_caller_tenant(req)),
    ),
    (EntityKind.USER, Action.READ_MANY): (
        deny_if(_scoped(ListScope.ALL), "Only superusers can list all users", needs_target=False),
        deny_if(_is_student, "Insufficient permissions", needs_target=False),
        deny_if(_scope_mismatch, "Access denied: tenant mismatch", needs_target=False),
        always_allow(),
    ),
    (EntityKind.USER, Action.CREATE): (
        deny_if(_target_is_superuser, "Only superusers can create superuser accounts"),
        deny_if(lambda req: _is_admin(req) and not _target_in_caller_tenant(req),
                "Cannot create users for other tenants"),
        allow_if(_is_admin),
    ),
    (EntityKind.USER, Action.UPDATE): (
        allow_if(_is_self, needs_target=False),
        deny_if(_is_student, "Insufficient permissions", needs_target=False),
        deny_if(lambda req: _is_admin(req) and not _target_in_caller_tenant(req),
                "Cannot update users from other tenants"),
        deny_if(lambda req: _is_admin(req) and (_target_is_superuser(req) or _change(req, "role") == Role.SUPERUSER.value),
                "Cannot update superuser accounts"),
        deny_if(lambda req: _is_admin(req) and _change(req, "tenant_id") is not None and not _same_tenant(req, _change(req, "tenant_id")),
                "Cannot change tenant_id to another tenant"),
        allow_if(_is_admin),
    ),
    (EntityKind.USER, Action.DELETE): (
        deny_if(_is_self, "Cannot delete your own account", needs_target=False),
        deny_if(_is_student, "Insufficient permissions", needs_target=False),
        deny_if(lambda req: _is_admin(req) and not _target_in_caller_tenant(req),
                "Cannot delete users from other tenants"),
        deny_if(lambda req: _is_admin(req) and _target_is_superuser(req), "Cannot delete superuser accounts"),
        allow_if(_is_admin),
    ),

    (EntityKind.COMPETITION, Action.READ_ONE): (
        allow_if(_is_public),
        allow_if(_target_in_caller_tenant),
        allow_if(_restricted_and_granted),
    ),
    (EntityKind.COMPETITION, Action.READ_MANY): (
        allow_if(_scoped(ListScope.PUBLIC), needs_target=False),
        deny_if(lambda req: req.scope == ListScope.TENANT and _scope_mismatch(req),
                "Access denied: tenant mismatch", needs_target=False),
        allow_if(_scoped(ListScope.TENANT), needs_target=False),
        filter_with(lambda req: school_accessible_filter(req.caller.tenant_id, req.granted_competition_ids)),
    ),
    (EntityKind.COMPETITION, Action.CREATE): (
        deny_if(lambda req: not _is_admin(req), "Only school administrators can create competitions",
                needs_target=False),
        deny_if(lambda req: not _target_in_caller_tenant(req), "Cannot create competitions for other tenants"),
        always_allow(),
    ),
    (EntityKind.COMPETITION, Action.UPDATE): (
        deny_if(_is_student, "Students cannot update competitions", needs_target=False),
        deny_if(lambda req: _is_admin(req) and not _target_in_caller_tenant(req),
                "Cannot update competitions from other tenants"),
        allow_if(_is_admin),
    ),
    (EntityKind.COMPETITION, Action.DELETE): (
        deny_if(_is_student, "Students cannot delete competitions", needs_target=False),
        deny_if(lambda req: _is_admin(req) and not _target_in_caller_tenant(req),
                "Cannot delete competitions from other tenants"),
        allow_if(_is_admin),
    ),

    # Target is the referenced competition
    (EntityKind.ALLOWED_SCHOOL, Action.READ_ONE): (
        allow_if(lambda req: _is_admin(req) and _target_in_caller_tenant(req)),
        allow_if(_restricted_and_granted),
        allow_if(_is_public),
        allow_if(_target_in_caller_tenant),
    ),
    (EntityKind.ALLOWED_SCHOOL, Action.READ_MANY): (
        deny_if(_scoped(ListScope.ALL), "Only superusers can list all allowed schools", needs_target=False),
        deny_if(_scope_mismatch, "Access denied: tenant mismatch", needs_target=False),
        always_allow(),
    ),
    (EntityKind.ALLOWED_SCHOOL, Action.CREATE): (
        deny_if(lambda req: not _is_admin(req), "Only school administrators can manage competition visibility",
                needs_target=False),
        deny_if(lambda req: not _target_in_caller_tenant(req),
                "Cannot manage allowed schools for competitions from other tenants"),
        always_allow(),
    ),
    (EntityKind.ALLOWED_SCHOOL, Action.DELETE): (
        deny_if(lambda req: not _is_admin(req), "Only school administrators can manage competition visibility",
                needs_target=False),
        deny_if(lambda req: not _target_in_caller_tenant(req),
                "Cannot manage allowed schools for competitions from other tenants"),
        always_allow(),
    ),
}

# Hold for every caller, superusers included
INVARIANTS: Dict[Tuple[EntityKind, Action], Tuple[Rule, ...]] = {
    (EntityKind.USER, Action.UPDATE): (
        deny_if(lambda req: _is_self(req) and _sets_role_or_tenant(req), "Cannot change your own role or tenant",
                needs_target=False),
    ),
    (EntityKind.COMPETITION, Action.UPDATE): (
        deny_if(_changes_competition_tenant, "Cannot change the owner tenant of a competition"),
    ),
}

DEFAULT_REASONS: Dict[EntityKind, str] = {
    EntityKind.TENANT: "Access denied: Cannot view other tenants",
    EntityKind.USER: "Insufficient permissions",
    EntityKind.COMPETITION: "Access denied to this competition",
    EntityKind.ALLOWED_SCHOOL: "Access denied",
}


def _first_decision(rules: Tuple[Rule, ...], req: AccessRequest) -> Optional[Decision]:
    for rule in rules:
        decision = rule.check(req)
        if decision is not None:
            return decision
    return None


def decide(req: AccessRequest) -> Decision:
    key = (req.kind, req.action)
    if key not in RULES:
        return Deny(f"Unsupported operation: {req.action.value} on {req.kind.value}")

    violation = _first_decision(INVARIANTS.get(key, ()), req)
    if violation is not None:
        return violation

    if req.caller.is_superuser:
        return ALLOW

    decision = _first_decision(RULES[key], req)
    if decision is None:
        return Deny(DEFAULT_REASONS[req.kind])
    return decision


def precheck(req: AccessRequest) -> Optional[Deny]:
    """Evaluate the leading rules that need no target row.

    Returns a denial that holds whatever the target turns out to be, so the
    caller can reject before looking the target up (no existence leak).
    """
    for rule in INVARIANTS.get((req.kind, req.action), ()):
        if not rule.needs_target:
            decision = rule.check(req)
            if isinstance(decision, Deny):
                return decision
    if req.caller.is_superuser:
        return None
    for rule in RULES.get((req.kind, req.action), ()):
        if rule.needs_target:
            return None
        decision = rule.check(req)
        if isinstance(decision, Deny):
            return decision
        if decision is not None:
            return None
    return None
