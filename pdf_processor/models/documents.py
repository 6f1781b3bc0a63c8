"""
SQLAlchemy ORM Models — Document Metadata

DocumentMetadata is the authoritative record for an uploaded document.
Only the orchestrator decides its field values: no column carries a Python
default, so the repository stays a pure persistence boundary.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Declarative base — shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# DocumentMetadata — document_metadata_entries
# ---------------------------------------------------------------------------

class DocumentMetadata(Base):
    """
    One accepted upload (or metadata-only registration).

    State machine (status column):
        Received   — record created by the ingestion pipeline
        Processing — reserved; not driven by the current pipeline
        Processed  — reserved
        Failed     — reserved

    file_path is NULL for metadata-only registrations.
    """

    __tablename__ = "document_metadata_entries"
    __table_args__ = (
        CheckConstraint(
            "status IN ('Received', 'Processing', 'Processed', 'Failed')",
            name="document_metadata_status_check",
        ),
        Index("idx_document_metadata_uploaded_at", "uploaded_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)

    original_file_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Sanitized display name (max 250 characters enforced by the pipeline)",
    )
    detected_document_type: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Classifier result; written by downstream processing only",
    )
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Absolute path in content storage: <base>/<uuid>.pdf",
    )
    status: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DocumentMetadata id={self.id} status={self.status} "
            f"file={self.original_file_name!r}>"
        )
