from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class UploadStatus(str, Enum):
    PENDING = "pending"
    CLASSIFYING = "classifying"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


IN_FLIGHT_STATUSES = (UploadStatus.CLASSIFYING.value, UploadStatus.PROCESSING.value)


class MediaType(str, Enum):
    PDF = "pdf"
    IMAGE = "image"


class ExtractionStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PARTIALLY_APPROVED = "partially_approved"


class ItemStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"


REVIEWABLE_ITEM_STATUSES = (ItemStatus.PENDING.value, ItemStatus.MODIFIED.value)


class Upload(Base):
    """A stored source file awaiting or having undergone extraction."""
    __tablename__ = "import_uploads"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'classifying', 'processing', 'completed', 'failed')",
            name="ck_import_uploads_status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pet_id: Mapped[int] = mapped_column(Integer, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False, index=True)
    uploaded_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    source: Mapped[str] = mapped_column(String(30), nullable=False, index=True)  # pdf_import, image_import, document_import
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)  # storage key
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    media_type: Mapped[str] = mapped_column(String(10), nullable=False)  # pdf, image
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=UploadStatus.PENDING.value, index=True)
    detected_type: Mapped[str | None] = mapped_column(String(50))
    classification_confidence: Mapped[int | None] = mapped_column(Integer)  # 0-100
    classification_explanation: Mapped[str | None] = mapped_column(Text)
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processing_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    extraction: Mapped["Extraction"] = relationship(
        "Extraction", back_populates="upload", uselist=False, cascade="all, delete-orphan"
    )


class Extraction(Base):
    """Result set of one classify+extract pass over an upload."""
    __tablename__ = "import_extractions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    upload_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("import_uploads.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    raw_response: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    mapped_data: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON)
    extraction_model: Mapped[str | None] = mapped_column(String(100))
    tokens_used: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=ExtractionStatus.PENDING_REVIEW.value)
    reviewed_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    upload: Mapped["Upload"] = relationship("Upload", back_populates="extraction")
    items: Mapped[list["ExtractionItem"]] = relationship(
        "ExtractionItem",
        back_populates="extraction",
        cascade="all, delete-orphan",
        order_by="ExtractionItem.id",
    )


class ExtractionItem(Base):
    """One candidate health record proposed by extraction, pending review."""
    __tablename__ = "import_extraction_items"
    __table_args__ = (
        # Only approved items point at a created record
        CheckConstraint(
            "(status = 'approved') = (created_record_id IS NOT NULL)",
            name="ck_import_extraction_items_created_record",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    extraction_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("import_extractions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    record_type: Mapped[str] = mapped_column(String(30), nullable=False)
    extracted_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)  # 0.0-1.0
    user_modified_data: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ItemStatus.PENDING.value)
    created_record_id: Mapped[int | None] = mapped_column(Integer)
    created_record_type: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    extraction: Mapped["Extraction"] = relationship("Extraction", back_populates="items")

    @property
    def effective_data(self) -> dict[str, Any]:
        """User edits when present, otherwise the extracted values."""
        if self.user_modified_data is not None:
            return self.user_modified_data
        return self.extracted_data
