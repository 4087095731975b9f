"""
All database models. Imported here so Base.metadata sees them for create_all().
"""

from .base import TeamBase
from .document import Document, DocumentStorageType, DocumentVersion, Folder, Link
from .webhook import Webhook

__all__ = [
    "TeamBase",
    "Document", "DocumentStorageType", "DocumentVersion", "Folder", "Link",
    "Webhook",
]
