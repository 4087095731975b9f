"""
Notion page resolution.

Notion documents are stored as a URL (notion.so, *.notion.site or a custom
domain) or a bare page id. Before a Notion document is created we must find
the underlying page id and confirm the page is publicly readable.

API: https://www.notion.so/api/v3 (the public, unauthenticated endpoints)
"""

import logging
import re
from typing import Optional
from urllib.parse import urlsplit

import httpx

from ..core.config import get_settings
from ..core.exceptions import NotionPageNotFound

logger = logging.getLogger(__name__)

_PAGE_ID_RE = re.compile(
    r"([a-f0-9]{8})-?([a-f0-9]{4})-?([a-f0-9]{4})-?([a-f0-9]{4})-?([a-f0-9]{12})",
    re.IGNORECASE,
)

NOTION_DOMAINS = ("notion.so", "www.notion.so")


# ── Page id parsing (pure) ────────────────────────────────────────────

def parse_page_id(value: Optional[str], uuid: bool = False) -> Optional[str]:
    """
    Extract a page id from a URL, slug or raw id.

    Query string and fragment are ignored. Returns the 32-char dashless form,
    or the dashed UUID form when uuid=True. None when no id is present.
    """
    if not value:
        return None

    candidate = value.split("?", 1)[0].split("#", 1)[0]
    last_segment = candidate.rstrip("/").rsplit("/", 1)[-1]

    match = _PAGE_ID_RE.search(last_segment) or _PAGE_ID_RE.search(candidate)
    if not match:
        return None

    parts = [p.lower() for p in match.groups()]
    return "-".join(parts) if uuid else "".join(parts)


def is_notion_domain(hostname: str) -> bool:
    return hostname in NOTION_DOMAINS or hostname.endswith(".notion.site")


def is_custom_notion_domain(url: str) -> bool:
    try:
        hostname = urlsplit(url).hostname or ""
    except ValueError:
        return False
    return bool(hostname) and not is_notion_domain(hostname)


# ── HTTP client ───────────────────────────────────────────────────────

class NotionClient:
    """Thin client over Notion's public page endpoints."""

    def __init__(self, base_url: Optional[str] = None, http: Optional[httpx.AsyncClient] = None):
        self.base_url = (base_url or get_settings().notion_api_base_url).rstrip("/")
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

    async def get_page_id_from_slug(self, url: str) -> Optional[str]:
        """
        Look up the page id behind a published slug.

        Handles `<space>.notion.site/<slug>` and custom domains that proxy a
        Notion workspace. Returns None when Notion does not know the slug.
        """
        parts = urlsplit(url)
        hostname = parts.hostname or ""
        slug = parts.path.strip("/").rsplit("/", 1)[-1]
        if not hostname or not slug:
            return None

        on_notion_site = hostname.endswith(".notion.site")
        space_domain = hostname.split(".", 1)[0] if on_notion_site else hostname

        resp = await self._client().post(
            f"{self.base_url}/getPublicPageDataForDomain",
            json={
                "type": "block-space",
                "name": "page",
                "slug": slug,
                "spaceDomain": space_domain,
                "requestedOnPublicDomain": on_notion_site,
                "requestedOnExternalDomain": not on_notion_site,
            },
        )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()

        page_id = resp.json().get("pageId")
        return parse_page_id(page_id) if page_id else None

    async def get_page(self, page_id: str) -> dict:
        """Load the first chunk of a public page. Raises NotionPageNotFound."""
        block_id = parse_page_id(page_id, uuid=True)
        if not block_id:
            raise NotionPageNotFound(f"Invalid Notion page id: {page_id}")

        try:
            resp = await self._client().post(
                f"{self.base_url}/loadPageChunk",
                json={
                    "pageId": block_id,
                    "limit": 100,
                    "cursor": {"stack": []},
                    "chunkNumber": 0,
                    "verticalColumns": False,
                },
            )
            resp.raise_for_status()
            record_map = resp.json().get("recordMap") or {}
        except httpx.HTTPError as e:
            raise NotionPageNotFound(f"Notion page {page_id} could not be loaded: {e}") from e

        blocks = record_map.get("block") or {}
        if block_id not in blocks:
            raise NotionPageNotFound(f"Notion page {page_id} is not public")
        return record_map


_client: Optional[NotionClient] = None


def get_notion_client() -> NotionClient:
    global _client
    if _client is None:
        _client = NotionClient()
    return _client


async def close_client() -> None:
    global _client
    if _client:
        await _client.close()
        _client = None


# ── Resolution ────────────────────────────────────────────────────────

async def resolve_page_id(key: str, client: Optional[NotionClient] = None) -> Optional[str]:
    """
    Resolve a Notion page id from a URL, slug or raw id.

    Direct parsing first, then a slug lookup. Lookup failures are logged and
    treated as "no page id".
    """
    page_id = parse_page_id(key)
    if page_id:
        return page_id

    client = client or get_notion_client()
    try:
        return await client.get_page_id_from_slug(key)
    except Exception as e:
        logger.warning("Notion slug lookup failed for %s (non-fatal): %s", key, e)
        return None


async def ensure_page_published(key: str, client: Optional[NotionClient] = None) -> str:
    """Resolve the page id and confirm the page is publicly readable. Returns the id."""
    client = client or get_notion_client()
    page_id = await resolve_page_id(key, client)
    if not page_id:
        raise NotionPageNotFound(f"No Notion page id found for {key}")
    await client.get_page(page_id)
    return page_id
