"""
Documents, their versions, share links and folders.

A Document is created once, together with its first (primary, version 1)
DocumentVersion and an optional Link, in a single transaction. Conversion
workers later back-fill page counts on the version.
"""

import enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import TeamBase


class DocumentStorageType(str, enum.Enum):
    S3_PATH = "S3_PATH"
    VERCEL_BLOB = "VERCEL_BLOB"


class Folder(TeamBase):
    __tablename__ = "folders"
    __table_args__ = (UniqueConstraint("team_id", "path", name="uq_folders_team_path"),)

    name: Mapped[str] = mapped_column(String, nullable=False)
    path: Mapped[str] = mapped_column(String, nullable=False)  # "/parent/child"
    parent_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("folders.id", ondelete="CASCADE"), nullable=True
    )


class Document(TeamBase):
    __tablename__ = "documents"

    name: Mapped[str] = mapped_column(String, nullable=False)
    file: Mapped[str] = mapped_column(Text, nullable=False)
    original_file: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # pdf, sheet, notion, link, ...
    storage_type: Mapped[DocumentStorageType] = mapped_column(
        Enum(DocumentStorageType, native_enum=False),
        nullable=False,
        default=DocumentStorageType.VERCEL_BLOB,
    )
    num_pages: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    folder_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True
    )
    advanced_excel_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    download_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_external_upload: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    versions: Mapped[list["DocumentVersion"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentVersion.version_number",
        lazy="selectin",
    )
    links: Mapped[list["Link"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def primary_version(self) -> Optional["DocumentVersion"]:
        for version in self.versions:
            if version.is_primary:
                return version
        return None


class DocumentVersion(TeamBase):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_versions_number"),
    )

    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file: Mapped[str] = mapped_column(Text, nullable=False)
    original_file: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    storage_type: Mapped[DocumentStorageType] = mapped_column(
        Enum(DocumentStorageType, native_enum=False),
        nullable=False,
        default=DocumentStorageType.VERCEL_BLOB,
    )
    num_pages: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    document: Mapped["Document"] = relationship(back_populates="versions")


class Link(TeamBase):
    __tablename__ = "links"

    document_id: Mapped[str] = mapped_column(
        String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    document: Mapped["Document"] = relationship(back_populates="links")
