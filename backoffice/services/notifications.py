from __future__ import annotations

from typing import Any

import httpx

from ..clients.supabase import SupabaseClient, SupabaseError
from ..logging import get_logger

_log = get_logger()

ITEM_REMOVED = "admin_item_removal"
WARNING = "warning"


async def notify(
    client: SupabaseClient,
    category: str,
    message: str,
    *,
    receiver_id: int | None = None,
    receiver_uuid: str | None = None,
    sender_uuid: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> bool:
    """Insert a notification for one recipient. Fire-and-forget: failures are logged.

    Returns True when the row was written.
    """
    if receiver_id is None and receiver_uuid is None:
        _log.warning("notification_skipped", category=category, reason="no recipient")
        return False
    row: dict[str, Any] = {
        "receiver_id": receiver_id,
        "receiver_uuid": receiver_uuid,
        "sender_uuid": sender_uuid,
        "type": category,
        "content": message,
        "is_read": False,
    }
    if metadata:
        row["metadata"] = metadata
    try:
        await client.table("notifications").insert(row).execute()
    except (SupabaseError, httpx.HTTPError) as exc:
        _log.warning(
            "notification_failed",
            category=category,
            receiver_id=receiver_id,
            receiver_uuid=receiver_uuid,
            error=str(exc),
        )
        return False
    _log.info("notification_sent", category=category, receiver_id=receiver_id, receiver_uuid=receiver_uuid)
    return True
