from __future__ import annotations

from typing import Any, Literal

from ..logging import get_logger
from .store import get_redis, ns

_log = get_logger()

MarkKind = Literal["pinned", "verified", "resolved"]
MARK_KINDS: tuple[str, ...] = ("pinned", "verified", "resolved")


class MarkStore:
    """Admin bookkeeping of pinned/verified listings and resolved reports.

    Each kind is a Redis set of ids under `marks:{kind}`.
    """

    def __init__(self, redis: Any | None = None) -> None:
        self._redis = redis if redis is not None else get_redis()

    @staticmethod
    def _key(kind: str) -> str:
        if kind not in MARK_KINDS:
            raise ValueError(f"unknown mark kind: {kind}")
        return ns("marks", kind)

    async def get(self, kind: MarkKind) -> set[int]:
        members = await self._redis.smembers(self._key(kind))
        out: set[int] = set()
        for m in members:
            try:
                out.add(int(m))
            except (TypeError, ValueError):
                _log.warning("mark_malformed", kind=kind, member=m)
        return out

    async def add(self, kind: MarkKind, ident: int) -> None:
        await self._redis.sadd(self._key(kind), str(ident))

    async def remove(self, kind: MarkKind, ident: int) -> None:
        await self._redis.srem(self._key(kind), str(ident))

    async def toggle(self, kind: MarkKind, ident: int) -> bool:
        """Flip the mark; returns whether the id is marked afterwards."""
        key = self._key(kind)
        if await self._redis.sismember(key, str(ident)):
            await self._redis.srem(key, str(ident))
            marked = False
        else:
            await self._redis.sadd(key, str(ident))
            marked = True
        _log.info("mark_toggled", kind=kind, id=ident, marked=marked)
        return marked
