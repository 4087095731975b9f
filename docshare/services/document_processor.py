"""
Document ingestion. Turns a just-uploaded file reference into a persisted
Document and kicks off everything that should happen after it exists.

Phases, in order:
  1. type resolution
  2. Notion gate          (blocking, notion only)
  3. link gate            (blocking, link only)
  4. folder resolution    (defaults to root on any failure)
  5. download-only flag
  6. durable commit       (document + version 1 + optional link, one transaction)
  7. conversion dispatch  (best-effort)
  8. advanced sheet mode  (best-effort, each sub-step on its own)
  9. notifications        (best-effort, concurrent)

Only phases 2, 3 and 6 can fail the call. Once phase 6 commits, the created
document is returned no matter what happens afterwards.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.best_effort import best_effort
from ..core.config import get_settings
from ..core.exceptions import DocumentProcessingError
from ..core.storage import StorageBackend, get_storage
from ..documents import types as doc_types
from ..models.document import Document, DocumentStorageType, DocumentVersion, Folder, Link
from ..validation.security import validate_url_security
from ..validation.upload import is_https, is_parseable_url
from . import notion, realtime
from .blocklist import BlocklistSource, find_blocked_keyword, get_blocklist
from .conversions import dispatch_conversions
from .jobs import JobDispatcher, get_dispatcher
from .webhooks import WebhookSender, get_webhook_sender

logger = logging.getLogger(__name__)

NOTION_UNAVAILABLE_MESSAGE = "This Notion page isn't publicly available."
INVALID_LINK_MESSAGE = "Invalid URL format for link document."
UNSAFE_LINK_MESSAGE = "URL contains invalid characters or targets internal resources"
BLOCKED_LINK_MESSAGE = "This URL is not allowed"


@dataclass
class DocumentData:
    """An uploaded file reference, as produced by the transport layer. Never persisted as-is."""
    name: str
    key: str
    storage_type: DocumentStorageType = DocumentStorageType.VERCEL_BLOB
    content_type: Optional[str] = None
    supported_file_type: Optional[str] = None
    file_size: Optional[int] = None
    num_pages: Optional[int] = None
    enable_excel_advanced_mode: bool = False


class DocumentProcessor:
    def __init__(
        self,
        db: AsyncSession,
        *,
        notion_client: Optional[notion.NotionClient] = None,
        blocklist: Optional[BlocklistSource] = None,
        dispatcher: Optional[JobDispatcher] = None,
        storage: Optional[StorageBackend] = None,
        webhooks: Optional[WebhookSender] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.db = db
        self.notion_client = notion_client or notion.get_notion_client()
        self.blocklist = blocklist or get_blocklist()
        self.dispatcher = dispatcher or get_dispatcher()
        self.storage = storage or get_storage()
        self.webhooks = webhooks or get_webhook_sender()
        self._http = http

    async def process(
        self,
        document_data: DocumentData,
        team_id: str,
        team_plan: str,
        user_id: Optional[str] = None,
        folder_path_name: Optional[str] = None,
        create_link: bool = False,
        is_external_upload: bool = False,
    ) -> Document:
        data = document_data
        doc_type = data.supported_file_type or doc_types.get_extension(data.name)

        if doc_type == doc_types.NOTION:
            await self._check_notion(data.key, team_id)

        if doc_type == doc_types.LINK:
            await self._check_link(data.key, team_id)

        folder_id = await self._resolve_folder(team_id, folder_path_name)
        download_only = doc_types.is_download_only(doc_type, data.content_type)

        document = await self._create(
            data, doc_type, team_id, user_id, folder_id, download_only,
            create_link, is_external_upload,
        )

        # ── Everything below is best-effort ──────────────────────────
        version = document.primary_version
        ctx = {"team_id": team_id, "document_id": document.id, "version_id": version.id}

        await best_effort(
            "conversion-dispatch",
            lambda: dispatch_conversions(
                self.dispatcher,
                team_id=team_id,
                plan=team_plan,
                document_id=document.id,
                version_id=version.id,
                doc_type=doc_type,
                content_type=data.content_type,
                key=data.key,
                file_size=data.file_size,
            ),
            **ctx,
        )

        if doc_type == doc_types.SHEET and data.enable_excel_advanced_mode:
            await self._advanced_sheet_mode(document, version, team_id, ctx)

        await self._notify(document, team_id, create_link, is_external_upload, ctx)

        return document

    # ── Blocking gates ───────────────────────────────────────────────

    async def _check_notion(self, key: str, team_id: str) -> None:
        try:
            page_id = await notion.ensure_page_published(key, self.notion_client)
        except Exception as e:
            logger.info("Notion page rejected for team %s (%s): %s", team_id, key, e)
            raise DocumentProcessingError(NOTION_UNAVAILABLE_MESSAGE) from e
        logger.debug("Notion page %s is public", page_id)

    async def _check_link(self, key: str, team_id: str) -> None:
        if not is_parseable_url(key) or not is_https(key):
            raise DocumentProcessingError(INVALID_LINK_MESSAGE)
        if not validate_url_security(key):
            raise DocumentProcessingError(UNSAFE_LINK_MESSAGE)

        try:
            keywords = await self.blocklist.fetch_keywords()
        except Exception as e:
            logger.warning("Keyword blocklist unavailable, allowing link (team=%s): %s", team_id, e)
            return

        matched = find_blocked_keyword(key, keywords)
        if matched:
            logger.error(
                "Link document creation blocked: %s (team_id=%s url=%s)",
                matched, team_id, key,
                extra={"alert": True, "team_id": team_id, "url": key, "keyword": matched},
            )
            raise DocumentProcessingError(BLOCKED_LINK_MESSAGE)

    # ── Folder ───────────────────────────────────────────────────────

    async def _resolve_folder(self, team_id: str, folder_path_name: Optional[str]) -> Optional[str]:
        if not folder_path_name:
            return None

        path = "/" + folder_path_name.lstrip("/")
        try:
            result = await self.db.execute(
                select(Folder.id).where(Folder.team_id == team_id, Folder.path == path)
            )
            folder_id = result.scalar_one_or_none()
        except Exception as e:
            logger.error(
                "Folder lookup failed for team %s path %s, defaulting to root: %s",
                team_id, path, e,
            )
            await self.db.rollback()
            return None

        if folder_id is None:
            logger.info("Folder %s not found for team %s, placing document at root", path, team_id)
        return folder_id

    # ── Durable commit ───────────────────────────────────────────────

    async def _create(
        self,
        data: DocumentData,
        doc_type: str,
        team_id: str,
        user_id: Optional[str],
        folder_id: Optional[str],
        download_only: bool,
        create_link: bool,
        is_external_upload: bool,
    ) -> Document:
        version = DocumentVersion(
            team_id=team_id,
            file=data.key,
            original_file=data.key,
            content_type=data.content_type,
            type=doc_type,
            storage_type=data.storage_type,
            num_pages=data.num_pages,
            file_size=data.file_size,
            version_number=1,
            is_primary=True,
        )
        document = Document(
            team_id=team_id,
            name=data.name,
            file=data.key,
            original_file=data.key,
            content_type=data.content_type,
            type=doc_type,
            storage_type=data.storage_type,
            num_pages=data.num_pages,
            owner_id=user_id,
            folder_id=folder_id,
            advanced_excel_enabled=bool(data.enable_excel_advanced_mode),
            download_only=download_only,
            is_external_upload=is_external_upload,
            versions=[version],
            links=[Link(team_id=team_id)] if create_link else [],
        )

        self.db.add(document)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        # Detach the committed graph so later rollbacks can't expire it
        self.db.expunge(document)

        logger.info(
            "Document created: %s (team=%s type=%s version=%s link=%s)",
            document.id, team_id, doc_type, version.id, bool(create_link),
        )
        return document

    # ── Advanced sheet mode ──────────────────────────────────────────

    async def _advanced_sheet_mode(
        self, document: Document, version: DocumentVersion, team_id: str, ctx: dict
    ) -> None:
        await best_effort(
            "advanced-mode-copy",
            lambda: self.storage.copy_to_advanced_bucket(version.file, version.storage_type, team_id),
            **ctx,
        )
        await best_effort("advanced-mode-page-count", lambda: self._set_page_count(version, 1), **ctx)
        await best_effort("cache-revalidation", lambda: self._revalidate(document.id), **ctx)

    async def _set_page_count(self, version: DocumentVersion, num_pages: int) -> None:
        try:
            await self.db.execute(
                update(DocumentVersion)
                .where(DocumentVersion.id == version.id)
                .values(num_pages=num_pages)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        version.num_pages = num_pages

    async def _revalidate(self, document_id: str) -> None:
        settings = get_settings()
        if not settings.app_base_url or not settings.revalidate_token:
            return

        url = f"{settings.app_base_url.rstrip('/')}/api/revalidate"
        params = {"secret": settings.revalidate_token, "documentId": document_id}
        if self._http is not None:
            resp = await self._http.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.get(url, params=params)
        resp.raise_for_status()

    # ── Notifications ────────────────────────────────────────────────

    async def _notify(
        self,
        document: Document,
        team_id: str,
        create_link: bool,
        is_external_upload: bool,
        ctx: dict,
    ) -> None:
        pending = []

        if not is_external_upload:
            pending.append(best_effort(
                "document-created-webhook",
                lambda: self.webhooks.send_document_created(
                    team_id, {"document_id": document.id}
                ),
                **ctx,
            ))

        if create_link and document.links:
            link_id = document.links[0].id
            pending.append(best_effort(
                "link-created-webhook",
                lambda: self.webhooks.send_link_created(
                    team_id, {"document_id": document.id, "link_id": link_id}
                ),
                **ctx,
            ))

        pending.append(best_effort(
            "realtime-document-created",
            lambda: realtime.document_created(team_id, document.id, document.type),
            **ctx,
        ))

        await asyncio.gather(*pending)


async def process_document(
    db: AsyncSession,
    document_data: DocumentData,
    team_id: str,
    team_plan: str,
    user_id: Optional[str] = None,
    folder_path_name: Optional[str] = None,
    create_link: bool = False,
    is_external_upload: bool = False,
) -> Document:
    """Run the ingestion pipeline with the default collaborators."""
    processor = DocumentProcessor(db)
    return await processor.process(
        document_data,
        team_id=team_id,
        team_plan=team_plan,
        user_id=user_id,
        folder_path_name=folder_path_name,
        create_link=create_link,
        is_external_upload=is_external_upload,
    )
