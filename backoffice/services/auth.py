from __future__ import annotations

from ..clients.supabase import NO_SINGLE_ROW, AuthError, NotFoundError, SupabaseClient
from ..config import settings
from ..logging import get_logger
from ..models.marketplace import AdminIdentity

_log = get_logger()


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise AuthError("Authorization header missing", status_code=401)
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Token missing", status_code=401)
    return token


async def verify_admin(client: SupabaseClient, token: str) -> AdminIdentity:
    """Validate the session token and look up the user's role.

    A user without a student row is a valid session but not an administrator.
    """
    user = await client.get_user(token)
    user_id = str(user["id"])
    try:
        result = await client.table("student").select("is_role").eq("user_id", user_id).single().execute()
    except NotFoundError as exc:
        if exc.code != NO_SINGLE_ROW:
            raise
        _log.info("admin_check_no_student", user_id=user_id)
        return AdminIdentity(user_id=user_id, email=user.get("email"), is_admin=False)
    row = result.first() or {}
    is_admin = row.get("is_role") == settings.ADMIN_ROLE
    return AdminIdentity(user_id=user_id, email=user.get("email"), is_admin=is_admin)
