from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any, Literal

import httpx

from ..clients.supabase import NotFoundError, SupabaseClient, SupabaseError
from ..config import settings
from ..logging import get_logger
from ..models.marketplace import ROLE_ADMIN, ROLE_BANNED, ROLE_RESTRICTED, ROLE_USER, Person, UserSummary
from .notifications import ITEM_REMOVED, WARNING, notify

_log = get_logger()

FETCH_ERRORS = (SupabaseError, httpx.HTTPError)

ITEM_COLUMNS = """
    item_id, item_name, item_description, item_condition, item_status,
    item_type, item_price_type, item_price_min, item_price_max, item_price,
    photos, created_at, stud_id, student:stud_id (stud_school)
"""
REPORT_COLUMNS = """
    report_id,
    reporter_user_id (stud_fname, stud_lname),
    reported_user_id (stud_fname, stud_lname),
    violation_type, violation_details, photo_urls, created_at
"""
TRANSACTION_COLUMNS = """
    transac_id, status, created_at, updated_at,
    buyer:buyer_id (stud_id, stud_fname, stud_lname),
    seller:seller_id (stud_id, stud_fname, stud_lname),
    item:item_uuid (item_id, item_name)
"""
USER_COLUMNS = (
    "stud_id, stud_fname, stud_lname, stud_school, stud_email, stud_picture, "
    "stud_warning_count, stud_phone, is_role"
)

UserStatus = Literal["active", "warned", "banned", "restricted"]
UserAction = Literal["warn", "ban", "unban", "restrict", "unrestrict"]


# Listings


async def list_items(
    client: SupabaseClient,
    school: str | None = None,
    item_types: Sequence[str] = (),
    statuses: Sequence[str] = (),
    page: int = 1,
    per_page: int | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """One page of listings, newest first, with the exact total for paging."""
    per_page = per_page or settings.ITEMS_PER_PAGE
    query = client.table("item").select(ITEM_COLUMNS, count="exact")
    if school:
        students = await client.table("student").select("stud_id").eq("stud_school", school).execute()
        stud_ids = [row["stud_id"] for row in students.data if row.get("stud_id") is not None]
        if not stud_ids:
            return [], 0
        query = query.in_("stud_id", stud_ids)
    if item_types:
        query = query.in_("item_type", item_types)
    if statuses:
        query = query.in_("item_status", statuses)
    start = (max(1, page) - 1) * per_page
    result = await query.order("created_at", desc=True).range(start, start + per_page - 1).execute()
    total = result.count if result.count is not None else len(result.data)
    return result.data, total


def categorize_items(
    items: Iterable[dict[str, Any]], pinned: set[int], verified: set[int]
) -> dict[str, list[dict[str, Any]]]:
    sections: dict[str, list[dict[str, Any]]] = {"pinned": [], "verified": [], "regular": []}
    for item in items:
        item_id = item.get("item_id")
        if item_id in pinned:
            sections["pinned"].append(item)
        elif item_id in verified:
            sections["verified"].append(item)
        else:
            sections["regular"].append(item)
    return sections


def _photo_paths(photos: Any) -> list[str]:
    if not isinstance(photos, list):
        return []
    return [str(url).rsplit("/", 1)[-1] for url in photos if url]


async def _user_uuid(client: SupabaseClient, stud_id: Any) -> str | None:
    if stud_id is None:
        return None
    try:
        result = await client.table("student").select("user_id").eq("stud_id", stud_id).single().execute()
    except FETCH_ERRORS as exc:
        _log.warning("student_lookup_failed", stud_id=stud_id, error=str(exc))
        return None
    row = result.first() or {}
    return row.get("user_id")


async def delete_item(client: SupabaseClient, item_id: int, admin_uuid: str | None = None) -> dict[str, Any]:
    """Remove a listing, its stored photos, and tell the seller why.

    Raises NotFoundError when no row was deleted. Photo and notification failures are
    logged and do not undo the deletion.
    """
    result = await client.table("item").delete().eq("item_id", item_id).execute()
    row = result.first()
    if row is None:
        raise NotFoundError(f"item {item_id} not found", status_code=404)
    _log.info("item_deleted", item_id=item_id, item_name=row.get("item_name"))

    paths = _photo_paths(row.get("photos"))
    try:
        await client.remove_objects(settings.PHOTO_BUCKET, paths)
    except FETCH_ERRORS as exc:
        _log.warning("item_photos_remove_failed", item_id=item_id, count=len(paths), error=str(exc))

    seller_uuid = await _user_uuid(client, row.get("stud_id"))
    if seller_uuid:
        await notify(
            client,
            ITEM_REMOVED,
            f'The item "{row.get("item_name")}" has been removed by the admin '
            "as it violated the rules and regulation of the app.",
            receiver_uuid=seller_uuid,
            sender_uuid=admin_uuid,
        )
    else:
        _log.warning("notification_skipped", item_id=item_id, reason="seller not found")
    return row


# Reports


async def list_reports(client: SupabaseClient) -> list[dict[str, Any]]:
    result = await client.table("report").select(REPORT_COLUMNS).order("created_at", desc=True).execute()
    return result.data


def split_reports(
    reports: Iterable[dict[str, Any]], resolved: set[int]
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    open_reports: list[dict[str, Any]] = []
    done: list[dict[str, Any]] = []
    for report in reports:
        (done if report.get("report_id") in resolved else open_reports).append(report)
    return open_reports, done


# Transactions


def _name(person: Any) -> str:
    if not isinstance(person, dict):
        return ""
    return f"{person.get('stud_fname') or ''} {person.get('stud_lname') or ''}"


def transaction_matches(tx: dict[str, Any], search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    item = tx.get("item") if isinstance(tx.get("item"), dict) else {}
    haystack = (
        str(tx.get("transac_id", "")),
        _name(tx.get("buyer")),
        _name(tx.get("seller")),
        str(item.get("item_name") or ""),
    )
    return any(needle in h.lower() for h in haystack)


async def list_transactions(
    client: SupabaseClient, status: str | None = None, search: str | None = None
) -> list[dict[str, Any]]:
    query = client.table("transactions").select(TRANSACTION_COLUMNS)
    if status:
        query = query.eq("status", status)
    result = await query.order("created_at", desc=True).execute()
    if not search:
        return result.data
    return [tx for tx in result.data if transaction_matches(tx, search)]


# Users


async def list_users(client: SupabaseClient) -> list[Person]:
    result = await client.table("student").select(USER_COLUMNS).neq("is_role", ROLE_ADMIN).execute()
    return [Person.model_validate(row) for row in result.data]


def user_status(user: Person) -> UserStatus:
    if user.is_role == ROLE_BANNED:
        return "banned"
    if user.is_role == ROLE_RESTRICTED:
        return "restricted"
    if (user.stud_warning_count or 0) >= 1:
        return "warned"
    return "active"


def user_summary(users: Sequence[Person]) -> UserSummary:
    active = sum(1 for u in users if u.is_role == ROLE_USER and (u.stud_warning_count or 0) == 0)
    flagged = sum(1 for u in users if user_status(u) != "active")
    return UserSummary(total=len(users), active=active, flagged=flagged)


def filter_users(
    users: Iterable[Person],
    search: str | None = None,
    school: str | None = None,
    status: UserStatus | None = None,
) -> list[Person]:
    needle = (search or "").strip().lower()
    out: list[Person] = []
    for user in users:
        if needle and not (
            needle in user.full_name.lower()
            or needle in str(user.stud_id).lower()
            or needle in (user.stud_email or "").lower()
        ):
            continue
        if school and (user.stud_school or "Unknown") != school:
            continue
        if status == "active" and not (user.is_role == ROLE_USER and (user.stud_warning_count or 0) == 0):
            continue
        if status is not None and status != "active" and user_status(user) != status:
            continue
        out.append(user)
    return out


def schools(users: Iterable[Person]) -> list[str]:
    return sorted({u.stud_school or "Unknown" for u in users})


def ordinal(n: int) -> str:
    if n % 100 in (11, 12, 13):
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


async def _update_student(client: SupabaseClient, stud_id: int, values: dict[str, Any]) -> Person:
    result = await client.table("student").update(values).eq("stud_id", stud_id).execute()
    row = result.first()
    if row is None:
        raise NotFoundError(f"student {stud_id} not found", status_code=404)
    _log.info("student_updated", stud_id=stud_id, fields=sorted(values))
    return Person.model_validate(row)


async def warn_user(client: SupabaseClient, stud_id: int, sender_uuid: str | None = None) -> Person:
    current = await client.table("student").select("stud_warning_count").eq("stud_id", stud_id).single().execute()
    count = int((current.first() or {}).get("stud_warning_count") or 0) + 1
    user = await _update_student(client, stud_id, {"stud_warning_count": count})
    await notify(
        client,
        WARNING,
        "You have received a warning from admin, please always follow the rules and "
        f"regulation of the app (current warning: {count})",
        receiver_id=stud_id,
        sender_uuid=sender_uuid,
        metadata={"warning": ordinal(count)},
    )
    return user


async def apply_user_action(
    client: SupabaseClient, stud_id: int, action: UserAction, sender_uuid: str | None = None
) -> Person:
    if action == "warn":
        return await warn_user(client, stud_id, sender_uuid=sender_uuid)
    if action == "ban":
        values: dict[str, Any] = {"is_role": ROLE_BANNED}
    elif action == "unban":
        values = {"is_role": ROLE_USER}
    elif action == "restrict":
        values = {"is_role": ROLE_RESTRICTED, "restriction_start_date": datetime.now(timezone.utc).isoformat()}
    elif action == "unrestrict":
        values = {"is_role": ROLE_USER, "restriction_start_date": None}
    else:
        raise ValueError(f"unknown user action: {action}")
    return await _update_student(client, stud_id, values)
