"""
Conversion progress endpoint, polled by the upload UI.

GET /progress?documentVersionId=<id>

Only a missing session (401) or a missing id (400) produce an error status.
Backend faults are answered with a synthetic low percentage. The read is not
team-scoped, so team membership and X-Team-Id are not checked here.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.auth import AuthenticatedUser
from ..core.dependencies import get_authenticated_user, get_progress_store
from ..services.progress import read_progress

logger = logging.getLogger(__name__)

progress_router = APIRouter(tags=["progress"])


@progress_router.get("/progress")
async def get_progress_status(
    document_version_id: Optional[str] = Query(default=None, alias="documentVersionId"),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    open_store=Depends(get_progress_store),
):
    if not document_version_id:
        raise HTTPException(status_code=400, detail="Missing documentVersionId")
    return await read_progress(open_store, document_version_id)
