"""
Document upload validation.

Two stages:
  1. Static shape — pydantic model (lengths, enums, positive integers).
  2. Cross-field rules — an ordered list of independent, possibly async
     predicates, each scoped to one field. Every rule runs; the submission
     fails if any rule fails, and each failure carries its own message.

Also hosts the stand-alone validators for Notion and link URL updates.
"""

import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.exceptions import DocumentValidationError, FieldError
from ..documents import types as doc_types
from ..models.document import DocumentStorageType
from ..services import notion
from .security import validate_path_security, validate_url_security, validate_url_ssrf_protection

logger = logging.getLogger(__name__)

# <teamOrOwnerId>/doc_<id>/<filename>.<extension>
STORAGE_PATH_PATTERN = re.compile(
    r"^[a-zA-Z0-9_-]+/doc_[a-zA-Z0-9_-]+/[a-zA-Z0-9_.-]+\.[a-zA-Z0-9]+$"
)

HTML_CONTENT_TYPE = "text/html"


def is_https(url: str) -> bool:
    return url.startswith("https://")


def is_storage_path(value: str) -> bool:
    return bool(STORAGE_PATH_PATTERN.fullmatch(value))


def is_parseable_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


# ── Stage 1: shape ────────────────────────────────────────────────────

class DocumentUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str
    storage_type: Optional[DocumentStorageType] = Field(
        default=DocumentStorageType.VERCEL_BLOB, alias="storageType"
    )
    num_pages: Optional[int] = Field(default=None, alias="numPages", gt=0)
    type: str
    folder_path_name: Optional[str] = Field(default=None, alias="folderPathName")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    create_link: bool = Field(default=False, alias="createLink")
    file_size: Optional[int] = Field(default=None, alias="fileSize", gt=0)
    enable_excel_advanced_mode: bool = Field(default=False, alias="enableExcelAdvancedMode")

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: str) -> str:
        if not v:
            raise ValueError("Document name is required")
        if len(v) > 255:
            raise ValueError("Document name too long")
        return v

    @field_validator("url")
    @classmethod
    def _url_present(cls, v: str) -> str:
        if not v:
            raise ValueError("URL is required")
        return v

    @field_validator("storage_type", mode="before")
    @classmethod
    def _storage_type_known(cls, v: Any) -> Any:
        if v is None or isinstance(v, DocumentStorageType):
            return v
        if v not in {s.value for s in DocumentStorageType}:
            raise ValueError("Invalid storage type")
        return v

    @field_validator("type")
    @classmethod
    def _type_supported(cls, v: str) -> str:
        if v not in doc_types.SUPPORTED_DOCUMENT_SIMPLE_TYPES:
            raise ValueError(
                "File type must be one of: " + ", ".join(doc_types.SUPPORTED_DOCUMENT_SIMPLE_TYPES)
            )
        return v

    @field_validator("content_type")
    @classmethod
    def _content_type_supported(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if v != HTML_CONTENT_TYPE and v not in doc_types.SUPPORTED_DOCUMENT_MIME_TYPES:
            raise ValueError("Unsupported content type")
        return v


# ── Stage 2: cross-field rules ────────────────────────────────────────

RuleCheck = Callable[[DocumentUploadRequest], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class UploadRule:
    field: str
    message: str
    check: RuleCheck


def _file_path_valid(url: str) -> bool:
    if is_https(url):
        shape_ok = validate_url_security(url)
    else:
        shape_ok = is_storage_path(url)
    return shape_ok and validate_path_security(url)


def check_url_shape(data: DocumentUploadRequest) -> bool:
    url = data.url
    if data.type == doc_types.LINK:
        return is_https(url) and is_parseable_url(url) and validate_url_security(url)

    if data.storage_type == DocumentStorageType.VERCEL_BLOB and is_https(url):
        return validate_url_security(url)

    return _file_path_valid(url)


def check_content_type(data: DocumentUploadRequest) -> bool:
    if not data.content_type:
        return data.type in (doc_types.NOTION, doc_types.LINK)

    if data.type == doc_types.LINK:
        return True

    if data.content_type == HTML_CONTENT_TYPE and data.type == doc_types.NOTION:
        return True

    return doc_types.get_supported_content_type(data.content_type) == data.type


def check_storage_type(data: DocumentUploadRequest) -> bool:
    url = data.url
    if data.type == doc_types.LINK:
        return True

    if data.storage_type is None:
        return is_https(url) and validate_url_security(url)

    if data.storage_type == DocumentStorageType.S3_PATH:
        return not is_https(url)

    # VERCEL_BLOB: a blob/Notion URL, or a storage path left over from migration
    if is_https(url):
        return validate_url_security(url)
    return is_storage_path(url)


UPLOAD_RULES: tuple[UploadRule, ...] = (
    UploadRule("url", "URL must be a valid HTTPS URL or a valid file path", check_url_shape),
    UploadRule("contentType", "Content type does not match the declared file type", check_content_type),
    UploadRule("storageType", "Storage type does not match the URL/path format", check_storage_type),
)


async def run_rules(data: DocumentUploadRequest, rules=UPLOAD_RULES) -> list[FieldError]:
    errors: list[FieldError] = []
    for rule in rules:
        result = rule.check(data)
        if inspect.isawaitable(result):
            result = await result
        if not result:
            errors.append(FieldError(rule.field, rule.message))
    return errors


def _shape_errors(exc: ValidationError) -> list[FieldError]:
    errors = []
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "__root__"
        ctx_error = (err.get("ctx") or {}).get("error")
        errors.append(FieldError(field, str(ctx_error) if ctx_error else err["msg"]))
    return errors


async def validate_document_upload(payload: dict) -> DocumentUploadRequest:
    """
    Validate a raw upload submission. Returns the parsed request.
    Raises DocumentValidationError listing every failing field.
    """
    try:
        data = DocumentUploadRequest.model_validate(payload)
    except ValidationError as e:
        raise DocumentValidationError(_shape_errors(e)) from e

    errors = await run_rules(data)
    if errors:
        logger.info("Upload rejected: %s", ", ".join(f"{e.field}" for e in errors))
        raise DocumentValidationError(errors)
    return data


# ── Stand-alone URL validators ────────────────────────────────────────

async def _notion_page_discoverable(url: str, client: Optional["notion.NotionClient"]) -> bool:
    page_id = notion.parse_page_id(url)
    if page_id:
        return True
    client = client or notion.get_notion_client()
    try:
        return bool(await client.get_page_id_from_slug(url))
    except Exception as e:
        logger.info("Notion slug lookup failed during validation: %s", e)
        return False


async def validate_notion_url(url: str, client: Optional["notion.NotionClient"] = None) -> str:
    """Validate a Notion URL for notion.so, *.notion.site and custom domains."""
    if not is_parseable_url(url):
        raise DocumentValidationError([FieldError("url", "Invalid URL format")])

    errors = []
    if not is_https(url):
        errors.append(FieldError("url", "Notion URL must use HTTPS"))
    if not await _notion_page_discoverable(url, client):
        errors.append(FieldError(
            "url",
            "Must be a valid Notion URL (supports notion.so, notion.site, and custom domains)",
        ))
    if not (validate_path_security(url) and validate_url_ssrf_protection(url)):
        errors.append(FieldError("url", "URL contains invalid characters or targets internal resources"))

    if errors:
        raise DocumentValidationError(errors)
    return url


def validate_link_url(url: str) -> str:
    """Validate the target of a link document."""
    if not is_parseable_url(url):
        raise DocumentValidationError([FieldError("url", "Invalid URL format")])

    errors = []
    if not is_https(url):
        errors.append(FieldError("url", "Link URL must use HTTPS"))
    if not validate_url_security(url):
        errors.append(FieldError("url", "URL contains invalid characters or targets internal resources"))

    if errors:
        raise DocumentValidationError(errors)
    return url
