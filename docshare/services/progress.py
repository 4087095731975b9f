"""
Conversion progress for UI polling.

Workers write `processing:<versionId>` → {"status", "percentage"} into Redis.
Reads fail open: the progress bar must keep moving even if Redis is down.
"""

import json
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

NOT_STARTED = {"status": "processing", "percentage": 10}
READ_FAILED = {"status": "processing", "percentage": 5}


def progress_key(version_id: str) -> str:
    return f"processing:{version_id}"


async def get_progress(store, version_id: str) -> dict:
    """
    Current progress for a document version.

    `store` is an async Redis-like client (or None when Redis is disabled).
    Missing record → NOT_STARTED. Any error → READ_FAILED.
    """
    try:
        if store is None:
            return dict(NOT_STARTED)

        raw = await store.get(progress_key(version_id))
        if raw is None:
            return dict(NOT_STARTED)

        progress = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if not isinstance(progress, dict):
            raise ValueError(f"Unexpected progress record: {progress!r}")
        return progress

    except Exception as e:
        logger.error("Progress read failed for version %s: %s", version_id, e)
        return dict(READ_FAILED)


async def read_progress(open_store: Callable[[], Awaitable[Any]], version_id: str) -> dict:
    """
    Open the store, then read. A store that cannot be opened (bad REDIS_URL,
    connection refused) is reported like any other read failure.
    """
    try:
        store = await open_store()
    except Exception as e:
        logger.error("Progress store unavailable for version %s: %s", version_id, e)
        return dict(READ_FAILED)
    return await get_progress(store, version_id)
