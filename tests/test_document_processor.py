"""
Tests for DocumentProcessor — gates, durable commit and best-effort fan-out.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from docshare.core.exceptions import DocumentProcessingError
from docshare.models.document import Document, DocumentStorageType, DocumentVersion, Folder, Link
from docshare.services import jobs
from docshare.services.document_processor import (
    BLOCKED_LINK_MESSAGE,
    INVALID_LINK_MESSAGE,
    NOTION_UNAVAILABLE_MESSAGE,
    UNSAFE_LINK_MESSAGE,
    DocumentData,
    DocumentProcessor,
)

from .conftest import FailingBlocklist, FakeDispatcher, FakeNotionClient, FakeStorage, FakeWebhooks

TEAM = "team1"
PLAN = "pro"


def pdf_data(**overrides) -> DocumentData:
    values = dict(
        name="report.pdf",
        key="team1/doc_abc/report.pdf",
        storage_type=DocumentStorageType.S3_PATH,
        content_type="application/pdf",
        supported_file_type="pdf",
        file_size=2048,
    )
    values.update(overrides)
    return DocumentData(**values)


async def count(db_session, model) -> int:
    result = await db_session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestCreation:
    async def test_pdf_is_created_with_primary_first_version(self, processor, db_session, dispatcher):
        doc = await processor.process(pdf_data(), team_id=TEAM, team_plan=PLAN, user_id="u1")

        assert doc.id
        assert doc.type == "pdf"
        assert doc.download_only is False
        assert doc.owner_id == "u1"
        assert len(doc.versions) == 1
        version = doc.primary_version
        assert version is doc.versions[0]
        assert version.version_number == 1
        assert version.is_primary is True
        assert version.file == "team1/doc_abc/report.pdf"
        assert version.file_size == 2048
        assert doc.links == []

        assert await count(db_session, Document) == 1
        assert await count(db_session, DocumentVersion) == 1
        assert await count(db_session, Link) == 0

    async def test_pdf_dispatches_pdf_to_image_with_document_tag(self, processor, dispatcher):
        doc = await processor.process(pdf_data(), team_id=TEAM, team_plan=PLAN)

        assert dispatcher.kinds == [jobs.CONVERT_PDF_TO_IMAGE]
        _, payload, options = dispatcher.submitted[0]
        version_id = doc.primary_version.id
        assert payload == {"documentId": doc.id, "documentVersionId": version_id, "teamId": TEAM}
        assert f"document_{doc.id}" in options.tags
        assert f"team_{TEAM}" in options.tags
        assert f"version:{version_id}" in options.tags
        assert options.concurrency_key == TEAM
        assert options.queue == "conversion-pro"
        assert options.idempotency_key.startswith(f"{TEAM}-{version_id}")

    async def test_type_falls_back_to_extension(self, processor):
        data = pdf_data(supported_file_type=None, name="Annual.PDF")
        doc = await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert doc.type == "pdf"

    async def test_create_link_adds_one_team_scoped_link(self, processor, db_session, webhooks):
        doc = await processor.process(pdf_data(), team_id=TEAM, team_plan=PLAN, create_link=True)

        assert len(doc.links) == 1
        assert doc.links[0].team_id == TEAM
        assert await count(db_session, Link) == 1
        assert ("link.created", TEAM, {"document_id": doc.id, "link_id": doc.links[0].id}) in webhooks.sent

    async def test_zip_is_download_only_without_conversion(self, processor, dispatcher):
        data = pdf_data(
            name="bundle.zip", key="team1/doc_z/bundle.zip",
            content_type="application/zip", supported_file_type="zip",
        )
        doc = await processor.process(data, team_id=TEAM, team_plan=PLAN)

        assert doc.download_only is True
        assert dispatcher.submitted == []

    async def test_tsv_is_download_only(self, processor):
        data = pdf_data(
            name="rows.tsv", key="team1/doc_t/rows.tsv",
            content_type="text/tab-separated-values", supported_file_type="sheet",
        )
        doc = await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert doc.download_only is True

    async def test_existing_folder_is_used(self, processor, db_session):
        folder = Folder(team_id=TEAM, name="Deals", path="/deals/2024")
        db_session.add(folder)
        await db_session.commit()

        doc = await processor.process(
            pdf_data(), team_id=TEAM, team_plan=PLAN, folder_path_name="deals/2024"
        )
        assert doc.folder_id == folder.id

    async def test_missing_folder_defaults_to_root(self, processor):
        doc = await processor.process(
            pdf_data(), team_id=TEAM, team_plan=PLAN, folder_path_name="nowhere"
        )
        assert doc.folder_id is None


class TestConversionDispatch:
    @pytest.mark.parametrize(
        "content_type,expected",
        [
            ("video/quicktime", [jobs.PROCESS_VIDEO]),
            ("video/mp4", []),
        ],
    )
    async def test_video(self, processor, dispatcher, content_type, expected):
        data = pdf_data(
            name="clip.mov", key="team1/doc_vid1/clip.mov",
            content_type=content_type, supported_file_type="video", file_size=None,
        )
        await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert dispatcher.kinds == expected

    async def test_video_payload(self, processor, dispatcher):
        data = pdf_data(
            name="clip.mov", key="team1/doc_vid1/clip.mov",
            content_type="video/quicktime", supported_file_type="video", file_size=None,
        )
        await processor.process(data, team_id=TEAM, team_plan=PLAN)

        _, payload, _ = dispatcher.submitted[0]
        assert payload["videoUrl"] == "team1/doc_vid1/clip.mov"
        assert payload["docId"] == "doc_vid1"
        assert payload["fileSize"] == 0

    async def test_keynote_slides(self, processor, dispatcher):
        data = pdf_data(
            name="deck.key", key="team1/doc_k/deck.key",
            content_type="application/vnd.apple.keynote", supported_file_type="slides",
        )
        await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert dispatcher.kinds == [jobs.CONVERT_KEYNOTE_TO_PDF]

    async def test_docx(self, processor, dispatcher):
        data = pdf_data(
            name="memo.docx", key="team1/doc_d/memo.docx",
            content_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            supported_file_type="docs",
        )
        await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert dispatcher.kinds == [jobs.CONVERT_FILES_TO_PDF]


class TestBlockingGates:
    async def test_http_link_is_rejected(self, processor, db_session):
        data = DocumentData(name="x", key="http://internal.local/x", supported_file_type="link")
        with pytest.raises(DocumentProcessingError, match=INVALID_LINK_MESSAGE):
            await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert await count(db_session, Document) == 0

    async def test_https_localhost_link_is_rejected(self, processor, db_session):
        data = DocumentData(name="x", key="https://localhost/x", supported_file_type="link")
        with pytest.raises(DocumentProcessingError, match=UNSAFE_LINK_MESSAGE):
            await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert await count(db_session, Document) == 0

    async def test_blocklisted_link_is_rejected(self, processor, db_session):
        data = DocumentData(
            name="x", key="https://phishing-site.com/login", supported_file_type="link"
        )
        with pytest.raises(DocumentProcessingError, match=BLOCKED_LINK_MESSAGE):
            await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert await count(db_session, Document) == 0

    async def test_blocklist_outage_allows_link(self, db_session, dispatcher, webhooks, storage):
        processor = DocumentProcessor(
            db_session,
            notion_client=FakeNotionClient(),
            blocklist=FailingBlocklist(),
            dispatcher=dispatcher,
            storage=storage,
            webhooks=webhooks,
        )
        data = DocumentData(name="site", key="https://example.com/page", supported_file_type="link")
        doc = await processor.process(data, team_id=TEAM, team_plan=PLAN)

        assert doc.type == "link"
        assert dispatcher.submitted == []

    async def test_unresolvable_notion_page_is_rejected(self, processor, db_session):
        data = DocumentData(
            name="wiki", key="https://acme.notion.site/no-such-page",
            supported_file_type="notion", content_type="text/html",
        )
        with pytest.raises(DocumentProcessingError, match=NOTION_UNAVAILABLE_MESSAGE):
            await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert await count(db_session, Document) == 0

    async def test_private_notion_page_is_rejected(self, processor, db_session):
        data = DocumentData(
            name="wiki",
            key="https://www.notion.so/Roadmap-0123456789abcdef0123456789abcdef",
            supported_file_type="notion",
        )
        with pytest.raises(DocumentProcessingError, match=NOTION_UNAVAILABLE_MESSAGE):
            await processor.process(data, team_id=TEAM, team_plan=PLAN)
        assert await count(db_session, Document) == 0

    async def test_public_notion_page_via_slug_is_created(self, db_session, dispatcher, webhooks, storage, blocklist):
        page_id = "0123456789abcdef0123456789abcdef"
        url = "https://docs.acme.com/roadmap"
        processor = DocumentProcessor(
            db_session,
            notion_client=FakeNotionClient(slugs={url: page_id}, public_pages={page_id}),
            blocklist=blocklist,
            dispatcher=dispatcher,
            storage=storage,
            webhooks=webhooks,
        )
        data = DocumentData(name="Roadmap", key=url, supported_file_type="notion")
        doc = await processor.process(data, team_id=TEAM, team_plan=PLAN)

        assert doc.type == "notion"
        assert dispatcher.submitted == []

    async def test_commit_failure_propagates(self, processor, db_session, monkeypatch):
        async def broken_commit():
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(db_session, "commit", broken_commit)
        with pytest.raises(OperationalError):
            await processor.process(pdf_data(), team_id=TEAM, team_plan=PLAN)


class TestFaultIsolation:
    async def test_folder_lookup_failure_defaults_to_root(self, processor, db_session, monkeypatch):
        original_execute = db_session.execute

        async def broken_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        monkeypatch.setattr(db_session, "execute", broken_execute)
        doc = await processor.process(
            pdf_data(), team_id=TEAM, team_plan=PLAN, folder_path_name="deals"
        )
        monkeypatch.setattr(db_session, "execute", original_execute)

        assert doc is not None
        assert doc.folder_id is None
        assert await count(db_session, Document) == 1

    async def test_dispatch_failure_still_returns_document(self, db_session, webhooks, storage, notion_client, blocklist):
        processor = DocumentProcessor(
            db_session,
            notion_client=notion_client,
            blocklist=blocklist,
            dispatcher=FakeDispatcher(error=RuntimeError("queue down")),
            storage=storage,
            webhooks=webhooks,
        )
        doc = await processor.process(pdf_data(), team_id=TEAM, team_plan=PLAN)

        assert doc is not None
        assert doc.versions[0].is_primary is True
        assert await count(db_session, Document) == 1
        assert webhooks.events == ["document.created"]

    async def test_webhook_failure_still_returns_document(self, db_session, dispatcher, storage, notion_client, blocklist):
        processor = DocumentProcessor(
            db_session,
            notion_client=notion_client,
            blocklist=blocklist,
            dispatcher=dispatcher,
            storage=storage,
            webhooks=FakeWebhooks(error=RuntimeError("receiver down")),
        )
        doc = await processor.process(pdf_data(), team_id=TEAM, team_plan=PLAN, create_link=True)

        assert doc is not None
        assert len(doc.links) == 1
        assert dispatcher.kinds == [jobs.CONVERT_PDF_TO_IMAGE]

    async def test_external_upload_skips_document_webhook(self, processor, webhooks):
        await processor.process(pdf_data(), team_id=TEAM, team_plan=PLAN, is_external_upload=True)
        assert "document.created" not in webhooks.events


class TestAdvancedSheetMode:
    def sheet_data(self, **overrides) -> DocumentData:
        values = dict(
            name="model.xlsx",
            key="team1/doc_s/model.xlsx",
            storage_type=DocumentStorageType.S3_PATH,
            content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            supported_file_type="sheet",
            enable_excel_advanced_mode=True,
        )
        values.update(overrides)
        return DocumentData(**values)

    async def test_copies_file_and_sets_page_count(self, processor, db_session, storage):
        doc = await processor.process(self.sheet_data(), team_id=TEAM, team_plan=PLAN)

        assert storage.copied == [("team1/doc_s/model.xlsx", DocumentStorageType.S3_PATH, TEAM)]
        assert doc.versions[0].num_pages == 1
        result = await db_session.execute(
            select(DocumentVersion.num_pages).where(DocumentVersion.id == doc.versions[0].id)
        )
        assert result.scalar_one() == 1
        assert doc.advanced_excel_enabled is True

    async def test_copy_failure_does_not_block_page_count(self, db_session, dispatcher, webhooks, notion_client, blocklist):
        processor = DocumentProcessor(
            db_session,
            notion_client=notion_client,
            blocklist=blocklist,
            dispatcher=dispatcher,
            storage=FakeStorage(error=RuntimeError("bucket missing")),
            webhooks=webhooks,
        )
        doc = await processor.process(self.sheet_data(), team_id=TEAM, team_plan=PLAN)

        assert doc is not None
        assert doc.versions[0].num_pages == 1

    async def test_not_triggered_without_flag(self, processor, storage):
        await processor.process(
            self.sheet_data(enable_excel_advanced_mode=False), team_id=TEAM, team_plan=PLAN
        )
        assert storage.copied == []
