"""
Document endpoints.

POST /v1/documents — Validate an uploaded file reference and create the document
GET  /v1/documents — List the team's documents
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import AuthenticatedUser
from ..core.dependencies import get_db, require_team
from ..core.exceptions import DocumentProcessingError, DocumentValidationError
from ..models.document import Document
from ..services.document_processor import DocumentData, DocumentProcessor
from ..validation.upload import validate_document_upload

logger = logging.getLogger(__name__)

documents_router = APIRouter(prefix="/documents", tags=["documents"])


class VersionOut(BaseModel):
    id: str
    version_number: int
    is_primary: bool
    file: str
    content_type: Optional[str] = None
    type: Optional[str] = None
    storage_type: str
    num_pages: Optional[int] = None
    file_size: Optional[int] = None


class LinkOut(BaseModel):
    id: str
    team_id: str


class DocumentResponse(BaseModel):
    id: str
    name: str
    type: Optional[str] = None
    content_type: Optional[str] = None
    storage_type: str
    download_only: bool
    folder_id: Optional[str] = None
    owner_id: Optional[str] = None
    is_external_upload: bool
    created_at: Optional[datetime] = None
    versions: list[VersionOut] = []
    links: list[LinkOut] = []


def to_response(doc: Document) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        name=doc.name,
        type=doc.type,
        content_type=doc.content_type,
        storage_type=doc.storage_type.value,
        download_only=doc.download_only,
        folder_id=doc.folder_id,
        owner_id=doc.owner_id,
        is_external_upload=doc.is_external_upload,
        created_at=doc.created_at,
        versions=[
            VersionOut(
                id=v.id,
                version_number=v.version_number,
                is_primary=v.is_primary,
                file=v.file,
                content_type=v.content_type,
                type=v.type,
                storage_type=v.storage_type.value,
                num_pages=v.num_pages,
                file_size=v.file_size,
            )
            for v in doc.versions
        ],
        links=[LinkOut(id=link.id, team_id=link.team_id) for link in doc.links],
    )


def get_document_processor(db: AsyncSession = Depends(get_db)) -> DocumentProcessor:
    return DocumentProcessor(db)


@documents_router.post("", response_model=DocumentResponse)
async def create_document(
    payload: dict = Body(...),
    user: AuthenticatedUser = Depends(require_team),
    processor: DocumentProcessor = Depends(get_document_processor),
):
    """
    Create a document from an already-uploaded file, Notion page or link.

    The file itself is uploaded by the transport layer; this endpoint receives
    its storage key/URL. Conversion runs in the background — poll
    GET /progress for status.
    """
    try:
        request = await validate_document_upload(payload)
    except DocumentValidationError as e:
        raise HTTPException(status_code=400, detail=[err.to_dict() for err in e.errors])

    document_data = DocumentData(
        name=request.name,
        key=request.url,
        storage_type=request.storage_type,
        content_type=request.content_type,
        supported_file_type=request.type,
        file_size=request.file_size,
        num_pages=request.num_pages,
        enable_excel_advanced_mode=request.enable_excel_advanced_mode,
    )

    try:
        document = await processor.process(
            document_data,
            team_id=user.team_id,
            team_plan=user.plan,
            user_id=user.user_id,
            folder_path_name=request.folder_path_name,
            create_link=request.create_link,
        )
    except DocumentProcessingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return to_response(document)


@documents_router.get("", response_model=list[DocumentResponse])
async def list_documents(
    user: AuthenticatedUser = Depends(require_team),
    db: AsyncSession = Depends(get_db),
    limit: int = 50,
    offset: int = 0,
):
    """List documents for the current team, newest first."""
    result = await db.execute(
        select(Document)
        .where(Document.team_id == user.team_id)
        .order_by(Document.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return [to_response(d) for d in result.scalars().all()]
