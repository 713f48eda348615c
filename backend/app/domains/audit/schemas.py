"""Pydantic schemas for the audit domain."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuditLogEntryResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    action: str
    changed_by: int | None = None
    changed_by_name: str | None = None
    changed_by_email: str | None = None
    source: str
    source_upload_id: int | None = None
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    changed_fields: list[str] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class AuditLogListResponse(BaseModel):
    logs: list[AuditLogEntryResponse]
    pagination: Pagination
