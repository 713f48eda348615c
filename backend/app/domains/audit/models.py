from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditSource(str, Enum):
    MANUAL = "manual"
    PDF_IMPORT = "pdf_import"
    IMAGE_IMPORT = "image_import"
    DOCUMENT_IMPORT = "document_import"


class AuditLog(Base):
    """Append-only change history for pets and their health records."""
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # table name, e.g. pet_vaccinations
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    pet_id: Mapped[int | None] = mapped_column(Integer, index=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    source: Mapped[str] = mapped_column(String(30), nullable=False, default=AuditSource.MANUAL.value)
    # Plain id, not a foreign key: entries outlive the upload they came from
    source_upload_id: Mapped[int | None] = mapped_column(Integer, index=True)
    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    changed_fields: Mapped[list[str] | None] = mapped_column(JSON)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
