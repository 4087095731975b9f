"""
Logical document types.

Every upload is classified into one closed set of logical types (pdf, sheet,
docs, ...). The classification drives validation, the download-only flag and
which conversion job runs. MIME types are the primary signal; a few file
extensions override it because browsers report them with generic MIME types.
"""

from pathlib import PurePosixPath
from typing import Optional

# ── Logical types ─────────────────────────────────────────────────────

PDF = "pdf"
SHEET = "sheet"
DOCS = "docs"
SLIDES = "slides"
IMAGE = "image"
CAD = "cad"
VIDEO = "video"
ZIP = "zip"
MAP = "map"
EMAIL = "email"
NOTION = "notion"
LINK = "link"

# ── MIME → logical type ───────────────────────────────────────────────

KEYNOTE_CONTENT_TYPES = frozenset({
    "application/vnd.apple.keynote",
    "application/x-iwork-keynote-sffkey",
})

TSV_CONTENT_TYPE = "text/tab-separated-values"

_CONTENT_TYPE_MAP: dict[str, str] = {
    "application/pdf": PDF,
    # spreadsheets
    "application/vnd.ms-excel": SHEET,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": SHEET,
    "application/vnd.ms-excel.sheet.macroEnabled.12": SHEET,
    "application/vnd.oasis.opendocument.spreadsheet": SHEET,
    "text/csv": SHEET,
    TSV_CONTENT_TYPE: SHEET,
    # documents
    "application/msword": DOCS,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DOCS,
    "application/vnd.oasis.opendocument.text": DOCS,
    "application/rtf": DOCS,
    "text/rtf": DOCS,
    "text/plain": DOCS,
    # presentations
    "application/vnd.ms-powerpoint": SLIDES,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": SLIDES,
    "application/vnd.oasis.opendocument.presentation": SLIDES,
    "application/vnd.apple.keynote": SLIDES,
    "application/x-iwork-keynote-sffkey": SLIDES,
    # images
    "image/png": IMAGE,
    "image/jpeg": IMAGE,
    "image/jpg": IMAGE,
    # cad
    "image/vnd.dwg": CAD,
    "image/vnd.dxf": CAD,
    # video
    "video/mp4": VIDEO,
    "video/quicktime": VIDEO,
    "video/x-msvideo": VIDEO,
    "video/webm": VIDEO,
    "video/ogg": VIDEO,
    # archives
    "application/zip": ZIP,
    "application/x-zip-compressed": ZIP,
    # maps
    "application/vnd.google-earth.kml+xml": MAP,
    "application/vnd.google-earth.kmz": MAP,
    # email
    "message/rfc822": EMAIL,
    "application/vnd.ms-outlook": EMAIL,
}

SUPPORTED_DOCUMENT_MIME_TYPES: tuple[str, ...] = tuple(_CONTENT_TYPE_MAP)

# MIME types are case-insensitive (RFC 2045)
_CONTENT_TYPE_LOOKUP: dict[str, str] = {k.lower(): v for k, v in _CONTENT_TYPE_MAP.items()}

SUPPORTED_DOCUMENT_SIMPLE_TYPES: tuple[str, ...] = (
    PDF, SHEET, DOCS, SLIDES, IMAGE, CAD, VIDEO, ZIP, MAP, EMAIL, NOTION, LINK,
)

# Extensions whose MIME type is unreliable: extension → (type, canonical content type)
_EXTENSION_OVERRIDES: dict[str, tuple[str, str]] = {
    "dwg": (CAD, "image/vnd.dwg"),
    "dxf": (CAD, "image/vnd.dxf"),
    "xlsm": (SHEET, "application/vnd.ms-excel.sheet.macroEnabled.12"),
    "kml": (MAP, "application/vnd.google-earth.kml+xml"),
    "kmz": (MAP, "application/vnd.google-earth.kmz"),
}

_DOWNLOAD_ONLY_TYPES = frozenset({ZIP, MAP, EMAIL})


def get_supported_content_type(content_type: Optional[str]) -> Optional[str]:
    """Logical type for a MIME type, or None when unsupported."""
    if not content_type:
        return None
    return _CONTENT_TYPE_LOOKUP.get(content_type.split(";", 1)[0].strip().lower())


def get_extension(name: str) -> str:
    """Lowercased file extension without the dot ("" if none)."""
    return PurePosixPath(name).suffix.lstrip(".").lower()


def classify_upload(filename: str, content_type: Optional[str]) -> tuple[str, Optional[str]]:
    """
    Classify an uploaded file. Returns (logical_type, content_type).

    The content type is rewritten for override extensions so that it agrees
    with the logical type during validation. Unknown files get type "".
    """
    override = _EXTENSION_OVERRIDES.get(get_extension(filename))
    if override:
        return override
    return get_supported_content_type(content_type) or "", content_type


def is_download_only(doc_type: Optional[str], content_type: Optional[str]) -> bool:
    """Types with no in-app viewer are served as downloads only."""
    return doc_type in _DOWNLOAD_ONLY_TYPES or content_type == TSV_CONTENT_TYPE
