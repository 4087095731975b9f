"""
Realtime notifications. Thin wrapper around core.redis.
"""

from ..core import redis as _redis


# ── Document events ──────────────────────────────────────────────────

async def document_created(team_id: str, document_id: str, doc_type: str = None):
    await _redis.notify_team(
        team_id, "document.created", {"document_id": document_id, "type": doc_type}
    )
