"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter, Depends

from ..core.dependencies import require_team

router = APIRouter()


# ── Health (no auth) ─────────────────────────────────────────────────

@router.get("/health")
async def health():
    from ..core.database import check_db

    db_ok = await check_db()
    return {"status": "ok" if db_ok else "degraded", "service": "docshare", "database": db_ok}


# ── Auth config (no auth) ───────────────────────────────────────────

@router.get("/auth/config")
async def auth_config():
    from ..core.config import get_settings
    from ..core.flags import get_flags

    flags = get_flags()
    if not flags.use_auth0:
        return {"auth_enabled": False, "message": "Dev mode — no auth required"}

    settings = get_settings()
    return {
        "auth_enabled": True,
        "domain": settings.auth0_domain,
        "audience": settings.auth0_audience,
    }


# ── Routes ───────────────────────────────────────────────────────────

from .documents import documents_router
from .progress import progress_router

router.include_router(documents_router, prefix="/v1", dependencies=[Depends(require_team)])
# Progress authenticates inside the route (get_authenticated_user)
router.include_router(progress_router)
