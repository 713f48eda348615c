"""Pydantic schemas for the import pipeline."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- Upload Schemas ---

class UploadResponse(BaseModel):
    id: int
    pet_id: int
    uploaded_by: int
    source: str
    filename: str
    original_filename: str
    file_size: int
    mime_type: str
    media_type: str
    status: str
    detected_type: str | None = None
    classification_confidence: int | None = None
    classification_explanation: str | None = None
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Extraction Schemas ---

class ExtractionItemResponse(BaseModel):
    id: int
    extraction_id: int
    record_type: str
    extracted_data: dict[str, Any]
    confidence_score: float
    user_modified_data: dict[str, Any] | None = None
    status: str
    created_record_id: int | None = None
    created_record_type: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExtractionResponse(BaseModel):
    id: int
    upload_id: int
    extraction_model: str | None = None
    tokens_used: int | None = None
    status: str
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClassificationInfo(BaseModel):
    detected_type: str | None = None
    confidence: int | None = None
    explanation: str | None = None


class ExtractionDetailResponse(BaseModel):
    extraction: ExtractionResponse
    items: list[ExtractionItemResponse]
    classification: ClassificationInfo
    summary: str


class ProcessResponse(BaseModel):
    upload: UploadResponse
    extraction: ExtractionResponse
    items: list[ExtractionItemResponse]


# --- Unified document upload ---

class ExtractedItemSummary(BaseModel):
    id: int
    record_type: str
    data: dict[str, Any]
    confidence: float
    status: str


class DocumentUploadResponse(BaseModel):
    upload_id: int
    upload: UploadResponse
    detected_type: str | None = None
    confidence: int | None = None
    explanation: str | None = None
    alternative_types: list[str] = Field(default_factory=list)
    pet_name: str | None = None
    extracted_items: list[ExtractedItemSummary]
    summary: str
    extraction_id: int


# --- Review Requests ---

class ItemIdsRequest(BaseModel):
    item_ids: list[int] = Field(default_factory=list, alias="itemIds")

    model_config = ConfigDict(populate_by_name=True)


class ModifyItemRequest(BaseModel):
    modified_data: dict[str, Any] = Field(..., alias="modifiedData")

    model_config = ConfigDict(populate_by_name=True)


# --- Review Results ---

class ApprovedItem(BaseModel):
    item_id: int
    record_type: str
    created_record_id: int


class ItemError(BaseModel):
    item_id: int
    error: str


class ApproveResponse(BaseModel):
    approved: list[ApprovedItem]
    rejected: list[int]
    errors: list[ItemError]


class RejectResponse(BaseModel):
    rejected: list[int]
