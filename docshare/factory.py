"""
FastAPI application factory.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import get_settings
from .core.database import init_db, close_db
from .core.redis import close_redis
from .api.router import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Docshare",
        description="Document sharing backend",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins if origins != ["*"] else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting Docshare (env=%s)", settings.env)

        # Create database tables
        await init_db()

        # Log feature flag state
        from .core.flags import get_flags
        flags = get_flags()
        logger.info(
            "Flags: auth0=%s s3=%s redis=%s trigger=%s edge_config=%s webhooks=%s",
            flags.use_auth0, flags.use_s3, flags.use_redis,
            flags.use_trigger, flags.use_edge_config, flags.use_webhooks,
        )

        logger.info("Docshare is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        from .services.jobs import close_dispatcher
        from .services.notion import close_client
        await close_dispatcher()
        await close_client()
        await close_db()
        await close_redis()
        logger.info("Docshare shut down")

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
