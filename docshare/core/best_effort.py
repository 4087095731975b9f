"""
Best-effort phases. Anything that runs after a document is committed goes
through here: failures are logged with team/document/version context and
swallowed, so they can never fail the request that created the document.
"""

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


async def best_effort(
    phase: str,
    operation: Callable[[], Awaitable[Any]],
    **context: Any,
) -> bool:
    """
    Await `operation()`. Returns True on success, False if it raised.
    `context` (team_id, document_id, version_id, ...) is attached to the log record.
    """
    try:
        await operation()
        return True
    except Exception as e:
        details = " ".join(f"{k}={v}" for k, v in context.items())
        logger.warning(
            "Best-effort phase '%s' failed (non-fatal) %s: %s",
            phase, details, e,
            exc_info=True,
            extra={"phase": phase, **context},
        )
        return False
