"""
Remote keyword blocklist for link documents.

The keyword list lives in Vercel Edge Config under the "keywords" item so it
can be changed without a deploy. Unavailability is reported with
BlocklistUnavailable and callers treat it as "no match".
"""

import logging
from typing import Iterable, Optional, Protocol

import httpx

from ..core.config import get_settings
from ..core.exceptions import BlocklistUnavailable
from ..core.flags import get_flags

logger = logging.getLogger(__name__)

EDGE_CONFIG_BASE_URL = "https://edge-config.vercel.com"


class BlocklistSource(Protocol):
    async def fetch_keywords(self) -> list[str]:
        """Return the current keyword list. Raises BlocklistUnavailable."""
        ...


class StaticBlocklist:
    """Fixed keyword list. Used locally and in tests."""

    def __init__(self, keywords: Iterable[str] = ()):
        self.keywords = list(keywords)

    async def fetch_keywords(self) -> list[str]:
        return list(self.keywords)


class EdgeConfigBlocklist:
    """Reads the "keywords" item from Vercel Edge Config."""

    def __init__(
        self,
        config_id: Optional[str] = None,
        token: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.config_id = config_id if config_id is not None else settings.edge_config_id
        self.token = token if token is not None else settings.edge_config_token
        self._http = http

    async def fetch_keywords(self) -> list[str]:
        if not get_flags().use_edge_config:
            raise BlocklistUnavailable("Edge Config disabled (FF_USE_EDGE_CONFIG=false)")
        if not self.config_id or not self.token:
            raise BlocklistUnavailable("EDGE_CONFIG_ID / EDGE_CONFIG_TOKEN not set")

        url = f"{EDGE_CONFIG_BASE_URL}/{self.config_id}/item/keywords"
        try:
            if self._http is not None:
                resp = await self._http.get(url, params={"token": self.token})
            else:
                async with httpx.AsyncClient(timeout=5) as client:
                    resp = await client.get(url, params={"token": self.token})
        except httpx.HTTPError as e:
            raise BlocklistUnavailable(f"Edge Config request failed: {e}") from e

        if resp.status_code == 404:
            return []
        if resp.status_code >= 400:
            raise BlocklistUnavailable(f"Edge Config returned {resp.status_code}")

        try:
            keywords = resp.json()
        except ValueError as e:
            raise BlocklistUnavailable("Edge Config returned invalid JSON") from e

        if not isinstance(keywords, list):
            return []
        return keywords


def find_blocked_keyword(url: str, keywords: Iterable[object]) -> Optional[str]:
    """First keyword contained in the URL. Plain substring match, no normalization."""
    for keyword in keywords:
        if isinstance(keyword, str) and keyword and keyword in url:
            return keyword
    return None


_source: Optional[BlocklistSource] = None


def get_blocklist() -> BlocklistSource:
    global _source
    if _source is None:
        _source = EdgeConfigBlocklist()
    return _source
