from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, cast

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import settings
from ..logging import get_logger

_log = get_logger()

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_SERVER_ERROR = 500
# PostgREST code for "JSON object requested, multiple (or no) rows returned"
NO_SINGLE_ROW = "PGRST116"


class SupabaseError(Exception):
    """Error reported by the hosted backend (PostgREST, GoTrue or Storage)."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class NotFoundError(SupabaseError):
    pass


class AuthError(SupabaseError):
    pass


@dataclass
class QueryResult:
    data: list[dict[str, Any]] = field(default_factory=list)
    count: int | None = None

    def first(self) -> dict[str, Any] | None:
        return self.data[0] if self.data else None


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.ReadTimeout, httpx.ConnectTimeout)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= HTTP_SERVER_ERROR
    return False


def _retryer() -> AsyncRetrying:
    return AsyncRetrying(
        reraise=True,
        stop=stop_after_attempt(settings.RETRY_MAX),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=3),
        retry=retry_if_exception(_should_retry),
    )


def _client(api_key: str, bearer: str | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=str(settings.SUPABASE_URL).rstrip("/"),
        timeout=httpx.Timeout(settings.HTTP_TIMEOUT, read=settings.HTTP_TIMEOUT),
        headers={
            "apikey": api_key,
            "Authorization": f"Bearer {bearer or api_key}",
            "User-Agent": settings.USER_AGENT,
        },
        http2=True,
    )


def _error_from(resp: httpx.Response) -> SupabaseError:
    code: str | None = None
    message = f"HTTP {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = cast(str | None, body.get("code") or body.get("error_code") or body.get("error"))
        message = str(body.get("message") or body.get("msg") or body.get("error_description") or message)
    if resp.status_code in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        return AuthError(message, status_code=resp.status_code, code=code)
    return SupabaseError(message, status_code=resp.status_code, code=code)


def _compact(columns: str) -> str:
    # Multi-line embedded selects are sent without whitespace
    return "".join(columns.split())


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quoted(value: Any) -> str:
    text = _literal(value)
    if any(ch in text for ch in ',.:() "'):
        return '"' + text.replace('"', '\\"') + '"'
    return text


def _parse_count(content_range: str | None) -> int | None:
    # Content-Range: 0-24/3573 or */0
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[-1]
    return int(total) if total.isdigit() else None


class Query:
    """PostgREST query builder for one table.

    Mirrors the small subset of the supabase-js builder the admin dashboards use:
    equality, inequality and membership filters, one ordering, offset paging and
    an optional exact row count.
    """

    def __init__(self, client: SupabaseClient, table: str) -> None:
        self._client = client
        self._table = table
        self._method = "GET"
        self._params: list[tuple[str, str]] = []
        self._prefer: list[str] = []
        self._body: Any = None
        self._single = False

    def select(self, columns: str = "*", count: str | None = None) -> Query:
        self._params.append(("select", _compact(columns)))
        if count:
            self._prefer.append(f"count={count}")
        return self

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> Query:
        self._method = "POST"
        self._body = rows
        self._prefer.append("return=representation")
        return self

    def update(self, values: dict[str, Any]) -> Query:
        self._method = "PATCH"
        self._body = values
        self._prefer.append("return=representation")
        return self

    def delete(self) -> Query:
        self._method = "DELETE"
        self._prefer.append("return=representation")
        return self

    def eq(self, column: str, value: Any) -> Query:
        op = "is" if value is None else "eq"
        self._params.append((column, f"{op}.{_literal(value)}"))
        return self

    def neq(self, column: str, value: Any) -> Query:
        op = "not.is" if value is None else "neq"
        self._params.append((column, f"{op}.{_literal(value)}"))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> Query:
        joined = ",".join(_quoted(v) for v in values)
        self._params.append((column, f"in.({joined})"))
        return self

    def order(self, column: str, desc: bool = False) -> Query:
        self._params.append(("order", f"{column}.{'desc' if desc else 'asc'}"))
        return self

    def limit(self, n: int) -> Query:
        self._params.append(("limit", str(max(0, n))))
        return self

    def range(self, start: int, end: int) -> Query:
        """Inclusive row range, as in supabase-js."""
        start = max(0, start)
        self._params.append(("offset", str(start)))
        self._params.append(("limit", str(max(0, end - start + 1))))
        return self

    def single(self) -> Query:
        self._single = True
        return self

    async def execute(self) -> QueryResult:
        headers: dict[str, str] = {}
        if self._prefer:
            headers["Prefer"] = ",".join(self._prefer)
        resp = await self._client.request(
            self._method,
            f"/rest/v1/{self._table}",
            params=self._params,
            json=self._body,
            headers=headers,
        )
        try:
            payload = resp.json() if resp.content else []
        except ValueError as exc:
            raise SupabaseError(
                f"invalid JSON from {self._table}", status_code=resp.status_code
            ) from exc
        rows = cast(list[dict[str, Any]], payload if isinstance(payload, list) else [payload])
        count = _parse_count(resp.headers.get("content-range"))
        _log.debug(
            "supabase_query",
            table=self._table,
            method=self._method,
            rows=len(rows),
            count=count,
        )
        if self._single and len(rows) != 1:
            raise NotFoundError(
                f"expected a single {self._table} row, got {len(rows)}",
                status_code=406,
                code=NO_SINGLE_ROW,
            )
        return QueryResult(data=rows, count=count)


class SupabaseClient:
    """Thin async client for the hosted backend's REST, auth and storage APIs."""

    def __init__(self, api_key: str | None = None, access_token: str | None = None) -> None:
        self._api_key = api_key if api_key is not None else settings.server_key()
        self._access_token = access_token

    def table(self, name: str) -> Query:
        return Query(self, name)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        bearer: str | None = None,
    ) -> httpx.Response:
        try:
            async with _client(self._api_key, bearer or self._access_token) as client:
                async for attempt in _retryer():
                    with attempt:
                        resp = await client.request(
                            method, path, params=params, json=json, headers=headers
                        )
                        if resp.status_code >= HTTP_SERVER_ERROR:
                            resp.raise_for_status()
                        if resp.status_code >= HTTP_BAD_REQUEST:
                            raise _error_from(resp)
                        return resp
        except httpx.HTTPStatusError as exc:
            raise _error_from(exc.response) from exc
        raise SupabaseError(f"no response for {method} {path}")

    async def get_user(self, token: str) -> dict[str, Any]:
        """Resolve an access token to its auth user (GoTrue `/auth/v1/user`)."""
        if not token:
            raise AuthError("token missing", status_code=HTTP_UNAUTHORIZED)
        # Validation runs with the anon key so that a revoked session is rejected
        anon = SupabaseClient(api_key=settings.SUPABASE_KEY)
        resp = await anon.request("GET", "/auth/v1/user", bearer=token)
        try:
            user = resp.json()
        except ValueError as exc:
            raise SupabaseError("invalid JSON from auth", status_code=resp.status_code) from exc
        if not isinstance(user, dict) or not user.get("id"):
            raise AuthError("invalid token", status_code=HTTP_UNAUTHORIZED)
        return user

    async def remove_objects(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        await self.request("DELETE", f"/storage/v1/object/{bucket}", json={"prefixes": paths})
        _log.info("storage_objects_removed", bucket=bucket, count=len(paths))


def service_client() -> SupabaseClient:
    return SupabaseClient(api_key=settings.server_key())
