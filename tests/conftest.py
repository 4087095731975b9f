"""
Shared test fixtures.

Provides: in-memory SQLite async database, fake external collaborators
(notion, blocklist, job queue, storage, webhooks) and sample upload payloads.
"""

import os

# External services off before any settings/flags are cached
os.environ.setdefault("FF_USE_REDIS", "false")
os.environ.setdefault("FF_USE_S3", "false")

from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from docshare.core.database import Base
from docshare.core.exceptions import NotionPageNotFound
from docshare.models import Folder  # noqa: F401  registers all tables
from docshare.services.blocklist import StaticBlocklist
from docshare.services.document_processor import DocumentProcessor


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


# ── Fakes ─────────────────────────────────────────────────────────────

class FakeDispatcher:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.submitted = []

    async def submit(self, task_kind, payload, options):
        if self.error:
            raise self.error
        self.submitted.append((task_kind, payload, options))
        return f"run_{len(self.submitted)}"

    @property
    def kinds(self):
        return [kind for kind, _, _ in self.submitted]


class FakeWebhooks:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.sent = []

    async def send_document_created(self, team_id, data):
        return await self._send("document.created", team_id, data)

    async def send_link_created(self, team_id, data):
        return await self._send("link.created", team_id, data)

    async def _send(self, event, team_id, data):
        if self.error:
            raise self.error
        self.sent.append((event, team_id, data))
        return 1

    @property
    def events(self):
        return [event for event, _, _ in self.sent]


class FakeStorage:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.copied = []

    async def copy_to_advanced_bucket(self, file_path, storage_type, team_id):
        if self.error:
            raise self.error
        self.copied.append((file_path, storage_type, team_id))
        return f"{team_id}/copy"


class FakeNotionClient:
    def __init__(self, slugs: Optional[dict] = None, public_pages: Optional[set] = None):
        self.slugs = slugs or {}
        self.public_pages = public_pages or set()

    async def get_page_id_from_slug(self, url):
        return self.slugs.get(url)

    async def get_page(self, page_id):
        if page_id not in self.public_pages:
            raise NotionPageNotFound(page_id)
        return {"block": {page_id: {}}}


class FailingBlocklist:
    async def fetch_keywords(self):
        raise RuntimeError("edge config down")


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def webhooks():
    return FakeWebhooks()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def notion_client():
    return FakeNotionClient()


@pytest.fixture
def blocklist():
    return StaticBlocklist(["phishing-site.com"])


@pytest.fixture
def processor(db_session, dispatcher, webhooks, storage, notion_client, blocklist):
    return DocumentProcessor(
        db_session,
        notion_client=notion_client,
        blocklist=blocklist,
        dispatcher=dispatcher,
        storage=storage,
        webhooks=webhooks,
    )


@pytest.fixture
def pdf_upload() -> dict:
    return {
        "name": "report.pdf",
        "url": "team1/doc_abc/report.pdf",
        "storageType": "S3_PATH",
        "type": "pdf",
        "contentType": "application/pdf",
        "fileSize": 2048,
    }
