from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import settings
from ..db.store import get_redis
from ..logging import configure_logging, get_logger, request_id_middleware
from .routes import auth, export, health, items, reports, stats, transactions, users


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - integration lifecycle
    get_logger().info("app_started", version=__version__, supabase=str(settings.SUPABASE_URL))
    try:
        yield
    finally:
        if get_redis.cache_info().currsize:
            await get_redis().aclose()
            get_redis.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Marketplace Admin Back-office", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
    )
    app.middleware("http")(request_id_middleware)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(stats.router)
    app.include_router(export.router)
    app.include_router(items.router)
    app.include_router(reports.router)
    app.include_router(transactions.router)
    app.include_router(users.router)

    return app


app = create_app()
