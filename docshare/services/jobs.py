"""
Conversion job dispatcher. Submits tasks to the trigger.dev REST API.

Deduplication is the queue's job: every submission carries an idempotency
key, and trigger.dev collapses repeated triggers with the same key into one
run. The concurrency key partitions execution slots per team.

API: POST {TRIGGER_API_URL}/api/v1/tasks/{task_id}/trigger
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from ..core.config import get_settings
from ..core.exceptions import JobDispatchError
from ..core.flags import get_flags

logger = logging.getLogger(__name__)

# ── Task identifiers ──────────────────────────────────────────────────

CONVERT_KEYNOTE_TO_PDF = "convert-keynote-to-pdf"
CONVERT_FILES_TO_PDF = "convert-files-to-pdf"
CONVERT_CAD_TO_PDF = "convert-cad-to-pdf"
PROCESS_VIDEO = "process-video"
CONVERT_PDF_TO_IMAGE = "convert-pdf-to-image-route"

# ── Queues ────────────────────────────────────────────────────────────

KNOWN_PLANS = ("free", "starter", "pro", "business", "datarooms", "datarooms-plus")


def conversion_queue(plan: Optional[str]) -> str:
    """Queue name for a team plan. Plan modifiers ("business+old") are dropped."""
    plan_name = (plan or "").split("+", 1)[0].strip().lower()
    if plan_name not in KNOWN_PLANS:
        plan_name = "free"
    return f"conversion-{plan_name}"


@dataclass(frozen=True)
class TaskOptions:
    idempotency_key: str
    queue: str
    concurrency_key: str
    tags: list[str] = field(default_factory=list)

    def to_api(self) -> dict:
        return {
            "idempotencyKey": self.idempotency_key,
            "tags": list(self.tags),
            "queue": {"name": self.queue},
            "concurrencyKey": self.concurrency_key,
        }


class JobDispatcher:
    """Submits conversion tasks. Never retries; the caller decides what a failure means."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.trigger_api_url).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.trigger_secret_key
        self._http = http

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(connect=5, read=15, write=5, pool=5),
            )
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def submit(self, task_kind: str, payload: dict, options: TaskOptions) -> Optional[str]:
        """
        Enqueue one task. Returns the run id, or None when FF_USE_TRIGGER is off.
        Raises JobDispatchError when the queue rejects the submission.
        """
        if not get_flags().use_trigger:
            logger.info(
                "Trigger disabled, skipping %s (idempotency_key=%s)",
                task_kind, options.idempotency_key,
            )
            return None

        url = f"{self.base_url}/api/v1/tasks/{task_kind}/trigger"
        try:
            resp = await self._client().post(
                url,
                json={"payload": payload, "options": options.to_api()},
                headers={
                    "Authorization": f"Bearer {self.secret_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise JobDispatchError(task_kind, f"request failed: {e}") from e

        if resp.status_code >= 400:
            logger.error("Trigger %s error %d: %s", task_kind, resp.status_code, resp.text[:500])
            raise JobDispatchError(task_kind, f"HTTP {resp.status_code}", resp.status_code)

        run_id = resp.json().get("id")
        logger.info(
            "Triggered %s run=%s queue=%s key=%s",
            task_kind, run_id, options.queue, options.idempotency_key,
        )
        return run_id


_dispatcher: Optional[JobDispatcher] = None


def get_dispatcher() -> JobDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = JobDispatcher()
    return _dispatcher


async def close_dispatcher() -> None:
    global _dispatcher
    if _dispatcher:
        await _dispatcher.close()
        _dispatcher = None
