from __future__ import annotations

import copy
import os
from collections.abc import Iterator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from backoffice.api.deps import get_marks, get_supabase
from backoffice.api.main import create_app
from backoffice.clients.supabase import AuthError, SupabaseClient, SupabaseError
from backoffice.db.marks import MarkStore

ADMIN_TOKEN = "admin-token"
USER_TOKEN = "user-token"


@pytest.fixture(scope="session", autouse=True)
def _env() -> Iterator[None]:
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
    os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
    yield


def _matches(row: dict[str, Any], column: str, expr: str) -> bool:
    op, _, raw = expr.partition(".")
    value = row.get(column)
    if op == "eq":
        return str(value) == raw
    if op == "neq":
        return str(value) != raw
    if op == "is":
        return value is None
    if op == "in":
        options = [o.strip('"') for o in raw.strip("()").split(",")]
        return str(value) in options
    return True


class FakeSupabase(SupabaseClient):
    """In-memory stand-in for the hosted backend, answering at the HTTP boundary.

    Understands the filters the query builder emits (eq/neq/is/in) plus offset/limit
    and exact counts; embedded selects are served from whatever the rows already hold.
    """

    def __init__(
        self,
        tables: dict[str, list[dict[str, Any]]] | None = None,
        users: dict[str, dict[str, Any]] | None = None,
        fail: set[str] | None = None,
    ) -> None:
        super().__init__(api_key="test-key")
        self.tables = copy.deepcopy(tables or {})
        self.users = users or {}
        self.fail = set(fail or ())
        # tables whose requests fail at the transport layer, after retries
        self.unreachable: set[str] = set()
        self.calls: list[tuple[str, str, list[tuple[str, str]], Any]] = []
        self.removed: list[tuple[str, list[str]]] = []

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        bearer: str | None = None,
    ) -> httpx.Response:
        plist = list(params.items()) if isinstance(params, dict) else list(params or [])
        self.calls.append((method, path, plist, json))
        table = path.rsplit("/", 1)[-1]
        if table in self.unreachable:
            raise httpx.ConnectError(
                "connection refused", request=httpx.Request(method, f"http://supabase.test{path}")
            )
        if table in self.fail:
            raise SupabaseError(f"{table} unavailable", status_code=503)
        rows = self.tables.setdefault(table, [])
        if method == "POST":
            new = json if isinstance(json, list) else [json]
            rows.extend(new)
            return self._response(method, path, new)

        offset, limit = 0, None
        matched = list(rows)
        for column, expr in plist:
            if column in ("select", "order"):
                continue
            if column == "offset":
                offset = int(expr)
            elif column == "limit":
                limit = int(expr)
            else:
                matched = [r for r in matched if _matches(r, column, expr)]

        if method == "PATCH":
            for r in matched:
                r.update(json)
        elif method == "DELETE":
            self.tables[table] = [r for r in rows if r not in matched]

        total = len(matched)
        page = matched[offset : offset + limit if limit is not None else None]
        extra = {}
        if headers and "count=exact" in headers.get("Prefer", ""):
            extra["content-range"] = f"{offset}-{offset + len(page) - 1}/{total}" if page else f"*/{total}"
        return self._response(method, path, copy.deepcopy(page), extra)

    @staticmethod
    def _response(
        method: str, path: str, payload: Any, headers: dict[str, str] | None = None
    ) -> httpx.Response:
        return httpx.Response(
            200,
            json=payload,
            headers=headers or {},
            request=httpx.Request(method, f"http://supabase.test{path}"),
        )

    async def get_user(self, token: str) -> dict[str, Any]:
        user = self.users.get(token)
        if user is None:
            raise AuthError("invalid token", status_code=401)
        return user

    async def remove_objects(self, bucket: str, paths: list[str]) -> None:
        if "storage" in self.fail:
            raise SupabaseError("storage unavailable", status_code=503)
        self.removed.append((bucket, paths))


class FakeRedis:
    def __init__(self) -> None:
        self.sets: dict[str, set[str]] = {}

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))

    async def sadd(self, key: str, *members: str) -> int:
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.update(members)
        return len(s) - before

    async def srem(self, key: str, *members: str) -> int:
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.difference_update(members)
        return before - len(s)

    async def sismember(self, key: str, member: str) -> bool:
        return member in self.sets.get(key, set())


SEED: dict[str, list[dict[str, Any]]] = {
    "student": [
        {"stud_id": 1, "user_id": "admin-uuid", "stud_fname": "Ada", "stud_lname": "Admin",
         "stud_school": "North", "is_role": 1, "stud_warning_count": 0},
        {"stud_id": 2, "user_id": "seller-uuid", "stud_fname": "Sam", "stud_lname": "Seller",
         "stud_school": "North", "stud_email": "sam@uni.test", "is_role": 0, "stud_warning_count": 0},
        {"stud_id": 3, "user_id": "buyer-uuid", "stud_fname": "Bea", "stud_lname": "Buyer",
         "stud_school": "South", "stud_email": "bea@uni.test", "is_role": 0, "stud_warning_count": 2},
        {"stud_id": 4, "user_id": "banned-uuid", "stud_fname": "Ben", "stud_lname": "Banned",
         "stud_school": None, "is_role": 2, "stud_warning_count": 0},
    ],
    "item": [
        {"item_id": 10, "item_name": "Calculator", "item_type": "Electronics", "item_status": "available",
         "item_condition": "Good", "item_price_type": "fixed", "item_price": 75, "stud_id": 2,
         "photos": ["https://cdn.test/item-photos/calc.jpg"], "created_at": "2026-10-10T08:00:00Z"},
        {"item_id": 11, "item_name": "Textbook", "item_type": "Books", "item_status": "sold",
         "item_condition": "Like New", "item_price_type": "negotiable", "item_price_min": 10,
         "item_price_max": 30, "stud_id": 2, "photos": [], "created_at": "2026-09-01T08:00:00Z"},
        {"item_id": 12, "item_name": "Desk lamp", "item_type": "Electronics", "item_status": "available",
         "item_condition": "Fair", "item_price_type": "free", "stud_id": 3, "photos": None,
         "created_at": "2026-10-17T08:00:00Z"},
    ],
    "transactions": [
        {"transac_id": 100, "status": "completed", "created_at": "2026-09-05T08:00:00Z",
         "updated_at": "2026-09-06T09:00:00Z",
         "item": {"item_id": 11, "item_name": "Textbook", "item_price_type": "negotiable",
                  "created_at": "2026-09-01T08:00:00Z"},
         "buyer": {"stud_id": 3, "stud_fname": "Bea", "stud_lname": "Buyer"},
         "seller": {"stud_id": 2, "stud_fname": "Sam", "stud_lname": "Seller"}},
        {"transac_id": 101, "status": "pending", "created_at": "2026-10-11T08:00:00Z",
         "updated_at": "2026-10-11T08:00:00Z",
         "item": {"item_id": 10, "item_name": "Calculator", "item_price_type": "fixed",
                  "created_at": "2026-10-10T08:00:00Z"},
         "buyer": {"stud_id": 3, "stud_fname": "Bea", "stud_lname": "Buyer"},
         "seller": {"stud_id": 2, "stud_fname": "Sam", "stud_lname": "Seller"}},
    ],
    "report": [
        {"report_id": 7, "violation_type": "fake listings", "created_at": "2026-10-01T08:00:00Z"},
        {"report_id": 8, "violation_type": "spam", "created_at": "2026-10-02T08:00:00Z"},
    ],
    "notifications": [],
}

USERS = {
    ADMIN_TOKEN: {"id": "admin-uuid", "email": "ada@uni.test"},
    USER_TOKEN: {"id": "seller-uuid", "email": "sam@uni.test"},
}


@pytest.fixture()
def supabase() -> FakeSupabase:
    return FakeSupabase(tables=SEED, users=USERS)


@pytest.fixture()
def fake_supabase_cls() -> type[FakeSupabase]:
    return FakeSupabase


@pytest.fixture()
def marks() -> MarkStore:
    return MarkStore(FakeRedis())


@pytest.fixture()
def client(supabase: FakeSupabase, marks: MarkStore) -> Iterator[TestClient]:
    app = create_app()
    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_marks] = lambda: marks
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
