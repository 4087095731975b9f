"""
Outgoing team webhooks.

Each delivery is a signed JSON envelope POSTed to every endpoint the team has
subscribed to the event. Per-endpoint failures are logged, never raised, so one
broken receiver cannot affect another. The webhook table is read in a session
of its own; deliveries may run concurrently with other work on the request
session.
"""

import hashlib
import hmac
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.database import session_scope
from ..core.flags import get_flags
from ..models.webhook import Webhook

logger = logging.getLogger(__name__)

DOCUMENT_CREATED = "document.created"
LINK_CREATED = "link.created"

SIGNATURE_HEADER = "X-Webhook-Signature"


def sign_payload(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def build_envelope(event: str, data: dict) -> dict:
    return {
        "id": f"evt_{uuid.uuid4().hex}",
        "event": event,
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


class WebhookSender:
    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self._session_factory = session_factory
        self._http = http

    async def _subscribers(self, team_id: str, event: str) -> list[Webhook]:
        scope = self._session_factory() if self._session_factory else session_scope()
        async with scope as session:
            result = await session.execute(
                select(Webhook).where(Webhook.team_id == team_id)
            )
            hooks = result.scalars().all()
        return [h for h in hooks if event in (h.triggers or [])]

    async def _deliver(self, client: httpx.AsyncClient, hook: Webhook, envelope: dict) -> bool:
        body = json.dumps(envelope, separators=(",", ":")).encode()
        try:
            resp = await client.post(
                hook.url,
                content=body,
                headers={
                    "Content-Type": "application/json",
                    SIGNATURE_HEADER: sign_payload(body, hook.secret),
                },
            )
            resp.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning(
                "Webhook delivery failed (webhook=%s event=%s): %s",
                hook.id, envelope["event"], e,
            )
            return False

    async def send(self, team_id: str, event: str, data: dict) -> int:
        """Deliver an event to the team's subscribers. Returns the number delivered."""
        if not get_flags().use_webhooks:
            return 0

        hooks = await self._subscribers(team_id, event)
        if not hooks:
            return 0

        envelope = build_envelope(event, data)
        timeout = get_settings().webhook_timeout_seconds

        if self._http is not None:
            results = [await self._deliver(self._http, h, envelope) for h in hooks]
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                results = [await self._deliver(client, h, envelope) for h in hooks]

        delivered = sum(results)
        logger.info("Webhook %s for team %s: %d/%d delivered", event, team_id, delivered, len(hooks))
        return delivered

    async def send_document_created(self, team_id: str, data: dict) -> int:
        return await self.send(team_id, DOCUMENT_CREATED, data)

    async def send_link_created(self, team_id: str, data: dict) -> int:
        return await self.send(team_id, LINK_CREATED, data)


_sender: Optional[WebhookSender] = None


def get_webhook_sender() -> WebhookSender:
    global _sender
    if _sender is None:
        _sender = WebhookSender()
    return _sender
