"""
Shared fixtures: an in-memory data store, a seeded two-school world and a
TestClient factory that injects the caller and the store.
"""

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from school_platform.core.dependencies import get_auth_service, get_current_caller, get_store
from school_platform.core.exceptions import NotFoundError
from school_platform.core.filters import RowFilter, filter_rows
from school_platform.core.policy import Caller, Role
from school_platform.database.store import ALLOWED_SCHOOLS, COMPETITIONS, TENANTS, USERS, entity_name
from school_platform.main import app
from school_platform.modules.auth.service import AuthService, clear_auth_cache


class MemoryStore:
    """DataStore over plain lists, used in place of Supabase in tests"""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            TENANTS: [], USERS: [], COMPETITIONS: [], ALLOWED_SCHOOLS: [],
        }
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.calls: List[tuple] = []

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def _matching(self, table: str, key: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [r for r in self._rows(table) if all(r.get(k) == v for k, v in key.items())]

    def find(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.calls.append(("find", table, dict(key)))
        rows = self._matching(table, key)
        return dict(rows[0]) if rows else None

    def get(self, table: str, key: Dict[str, Any]) -> Dict[str, Any]:
        row = self.find(table, key)
        if row is None:
            raise NotFoundError(entity_name(table))
        return row

    def list(self, table: str, row_filter: Optional[RowFilter] = None, order_by: Optional[str] = None,
             desc: bool = False, limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
        self.calls.append(("list", table, row_filter))
        rows = filter_rows(self._rows(table), row_filter)
        if order_by:
            rows = sorted(rows, key=lambda r: str(r.get(order_by)), reverse=desc)
        if limit is not None:
            rows = rows[offset:offset + limit]
        return [dict(r) for r in rows]

    def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("insert", table, dict(values)))
        row = dict(values)
        if table != ALLOWED_SCHOOLS:
            row.setdefault("id", str(uuid.uuid4()))
            self._clock += timedelta(seconds=1)
            row.setdefault("created_at", self._clock.isoformat())
        self._rows(table).append(row)
        return dict(row)

    def update(self, table: str, key: Dict[str, Any], values: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("update", table, dict(key), dict(values)))
        rows = self._matching(table, key)
        if not rows:
            raise NotFoundError(entity_name(table))
        for row in rows:
            row.update(values)
        return dict(rows[0])

    def delete(self, table: str, key: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("delete", table, dict(key)))
        rows = self._matching(table, key)
        if not rows:
            raise NotFoundError(entity_name(table))
        self.tables[table] = [r for r in self._rows(table) if r not in rows]
        return dict(rows[0])

    def count(self, table: str, **key) -> int:
        return len(self._matching(table, key))


def as_caller(user: Dict[str, Any]) -> Caller:
    return Caller(id=user["id"], role=Role(user["role"]), tenant_id=user.get("tenant_id"), email=user.get("email"))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def world(store: MemoryStore) -> SimpleNamespace:
    """Schools A, B and C with their staff and students, a superuser, and competitions of every visibility"""
    school_a = store.insert(TENANTS, {"name": "Northside High"})
    school_b = store.insert(TENANTS, {"name": "Southside Academy"})
    school_c = store.insert(TENANTS, {"name": "Eastside College"})

    def user(email, role, tenant):
        return store.insert(USERS, {"email": email, "role": role, "tenant_id": tenant["id"] if tenant else None})

    def competition(title, visibility, tenant):
        return store.insert(COMPETITIONS, {
            "title": title, "description": None, "visibility": visibility, "tenant_id": tenant["id"],
        })

    w = SimpleNamespace(
        school_a=school_a,
        school_b=school_b,
        school_c=school_c,
        admin_a=user("admin@north.example.com", "school_admin", school_a),
        student_a=user("pupil@north.example.com", "student", school_a),
        admin_b=user("admin@south.example.com", "school_admin", school_b),
        student_b=user("pupil@south.example.com", "student", school_b),
        student_c=user("pupil@east.example.com", "student", school_c),
        root=user("root@platform.example.com", "superuser", None),
        public_a=competition("Spelling Bee", "public", school_a),
        private_a=competition("Chess Club Ladder", "private", school_a),
        restricted_a=competition("Robotics Invitational", "restricted", school_a),
        public_b=competition("Science Fair", "public", school_b),
        private_b=competition("Debate Trials", "private", school_b),
        restricted_b=competition("Math Olympiad", "restricted", school_b),
        restricted_c=competition("Coding Cup", "restricted", school_c),
    )
    # B invites A to its olympiad; C invites B to its coding cup
    store.insert(ALLOWED_SCHOOLS, {"competition_id": w.restricted_b["id"], "school_id": school_a["id"]})
    store.insert(ALLOWED_SCHOOLS, {"competition_id": w.restricted_c["id"], "school_id": school_b["id"]})
    return w


@pytest.fixture
def admin_client():
    """Supabase admin client stand-in; records app_metadata updates"""
    return MagicMock()


@pytest.fixture
def client_as(store: MemoryStore, admin_client):
    """Return a TestClient that acts as the given user row (or Caller)"""

    def make(user) -> TestClient:
        caller = user if isinstance(user, Caller) else as_caller(user)
        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_current_caller] = lambda: caller
        app.dependency_overrides[get_auth_service] = lambda: AuthService(MagicMock(), store, admin_client=admin_client)
        return TestClient(app)

    yield make
    app.dependency_overrides.clear()
    clear_auth_cache()


def ids(rows) -> set:
    return {row["id"] for row in rows}
