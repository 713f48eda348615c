"""Service layer for the document import pipeline."""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    ExtractionParseError,
    FileTooLarge,
    InvalidFileType,
    NotFound,
    StorageError,
    ValidationError,
)
from app.domains.audit.service import AuditLogger
from app.domains.health_records.service import HealthRecordsService, get_record_kind
from app.domains.imports.classifier import DocumentAnalyzer, extraction_hint
from app.domains.imports.llm_client import ClaudeClient
from app.domains.imports.mappers import compute_extraction_status, map_record_data, missing_required_fields
from app.domains.imports.models import (
    IN_FLIGHT_STATUSES,
    REVIEWABLE_ITEM_STATUSES,
    Extraction,
    ExtractionItem,
    ExtractionStatus,
    ItemStatus,
    MediaType,
    Upload,
    UploadStatus,
)
from app.domains.imports.storage import StorageBackend, build_storage_key
from app.domains.imports.types import ClassificationResult, ExtractionResult
from app.domains.imports.variants import ImportVariant

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProcessOutcome:
    """
    Result of one processing attempt.

    error is set when the upload failed. classification and result are only
    set when the model was called during this attempt.
    """
    upload: Upload
    extraction: Extraction | None = None
    error: str | None = None
    classification: ClassificationResult | None = None
    result: ExtractionResult | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ImportService:
    """
    Upload, classify/extract and review pipeline for one import variant.

    Storage and the LLM client are injected so the pipeline can run
    against fakes.
    """

    def __init__(
        self,
        db: Session,
        variant: ImportVariant,
        storage: StorageBackend,
        llm_client: ClaudeClient | None = None,
    ):
        self.db = db
        self.variant = variant
        self.storage = storage
        self.llm_client = llm_client
        self.health_records = HealthRecordsService(db)
        self.audit = AuditLogger(db)

    # --- Upload Operations ---

    def create_upload(
        self,
        data: bytes,
        original_filename: str,
        mime_type: str,
        pet_id: int,
        uploader_id: int,
    ) -> Upload:
        """
        Validate and store a file, then create its pending Upload row.

        Raises:
            InvalidFileType: mime type not accepted by this variant
            FileTooLarge: file exceeds the variant's size limit
            StorageError: the file could not be written
        """
        if mime_type not in self.variant.allowed_mime_types:
            raise InvalidFileType(
                f"Invalid file type: {mime_type}. Allowed types: {', '.join(self.variant.allowed_mime_types)}"
            )
        if len(data) > self.variant.max_size_bytes:
            raise FileTooLarge(f"File exceeds the maximum size of {self.variant.max_size_mb}MB")
        if not data:
            raise ValidationError("Uploaded file is empty")

        key = build_storage_key(self.variant.storage_category, pet_id, original_filename, mime_type)
        self.storage.save(data, key, mime_type)

        upload = Upload(
            pet_id=pet_id,
            uploaded_by=uploader_id,
            source=self.variant.source.value,
            filename=os.path.basename(key),
            original_filename=original_filename or os.path.basename(key),
            file_path=key,
            file_size=len(data),
            mime_type=mime_type,
            media_type=MediaType.PDF.value if mime_type == "application/pdf" else MediaType.IMAGE.value,
            status=UploadStatus.PENDING.value,
        )
        try:
            self.db.add(upload)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to record upload for {key}, removing stored file")
            try:
                self.storage.delete(key)
            except StorageError:
                logger.warning(f"Could not remove orphaned file {key}")
            raise

        self.db.refresh(upload)
        logger.info(f"Created {self.variant.name} upload {upload.id} for pet {pet_id} ({upload.file_size} bytes)")
        return upload

    def list_uploads(self, pet_id: int) -> list[Upload]:
        return (
            self.db.query(Upload)
            .filter(Upload.pet_id == pet_id, Upload.source == self.variant.source.value)
            .order_by(Upload.created_at.desc(), Upload.id.desc())
            .all()
        )

    def get_upload(self, pet_id: int, upload_id: int) -> Upload:
        upload = (
            self.db.query(Upload)
            .filter(
                Upload.id == upload_id,
                Upload.pet_id == pet_id,
                Upload.source == self.variant.source.value,
            )
            .first()
        )
        if not upload:
            raise NotFound("Upload not found")
        return upload

    def delete_upload(self, pet_id: int, upload_id: int) -> None:
        """Delete the stored file and the upload with its extraction and items."""
        upload = self.get_upload(pet_id, upload_id)

        try:
            self.storage.delete(upload.file_path)
        except StorageError as e:
            logger.warning(f"Failed to delete stored file for upload {upload_id}: {e}")

        self.db.delete(upload)
        self.db.commit()
        logger.info(f"Deleted upload {upload_id} for pet {pet_id}")

    # --- Processing ---

    def process_upload(self, pet_id: int, upload_id: int) -> ProcessOutcome:
        """
        Classify and extract an upload, storing the extraction for review.

        A completed upload returns its existing extraction. External and
        parse failures mark the upload failed and are returned, not raised.

        Raises:
            NotFound: upload does not exist for this pet
            ConflictError: the upload is already being processed
        """
        upload = self.get_upload(pet_id, upload_id)

        if upload.status == UploadStatus.COMPLETED.value and upload.extraction is not None:
            return ProcessOutcome(upload=upload, extraction=upload.extraction)

        self._claim_for_processing(upload)

        classification: ClassificationResult | None = None
        try:
            if self.llm_client is None:
                raise ExternalServiceError("LLM client is not configured")
            analyzer = DocumentAnalyzer(self.llm_client, self.variant.prompts)
            data = self.storage.load(upload.file_path)

            if analyzer.classifies:
                classification = analyzer.classify(data, upload.media_type, upload.mime_type)
                upload.detected_type = classification.document_type
                upload.classification_confidence = classification.confidence
                upload.classification_explanation = classification.explanation
                upload.status = UploadStatus.PROCESSING.value
                self.db.commit()

            result = analyzer.extract(
                data,
                upload.media_type,
                upload.mime_type,
                document_type_hint=extraction_hint(classification),
            )
        except (StorageError, ExternalServiceError, ExtractionParseError) as e:
            logger.error(f"Processing failed for upload {upload.id}: {e.message}")
            self._mark_failed(upload, e.message)
            return ProcessOutcome(upload=upload, error=e.message)
        except Exception:
            logger.exception(f"Unexpected error processing upload {upload.id}")
            self._mark_failed(upload, "Unexpected error during processing")
            raise

        try:
            extraction = self._store_extraction(upload, classification, result)
        except SQLAlchemyError:
            logger.exception(f"Failed to store extraction for upload {upload.id}")
            self._mark_failed(upload, "Failed to save extraction results")
            raise

        logger.info(f"Upload {upload.id} processed: {len(extraction.items)} items extracted")
        return ProcessOutcome(upload=upload, extraction=extraction, classification=classification, result=result)

    def _claim_for_processing(self, upload: Upload) -> None:
        """Move the upload into its first in-flight status unless another request already did."""
        started_status = (
            UploadStatus.CLASSIFYING.value
            if self.variant.prompts.classification is not None
            else UploadStatus.PROCESSING.value
        )
        claimed = (
            self.db.query(Upload)
            .filter(
                Upload.id == upload.id,
                Upload.status.notin_(IN_FLIGHT_STATUSES + (UploadStatus.COMPLETED.value,)),
            )
            .update(
                {
                    Upload.status: started_status,
                    Upload.processing_started_at: _now(),
                    Upload.processing_completed_at: None,
                    Upload.error_message: None,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        self.db.refresh(upload)

        if not claimed:
            raise ConflictError(f"Upload is already {upload.status}")

    def _mark_failed(self, upload: Upload, message: str) -> None:
        self.db.rollback()
        upload.status = UploadStatus.FAILED.value
        upload.error_message = message
        upload.processing_completed_at = _now()
        self.db.commit()
        self.db.refresh(upload)

    def _store_extraction(
        self,
        upload: Upload,
        classification: ClassificationResult | None,
        result: ExtractionResult,
    ) -> Extraction:
        """Create the extraction, its items and complete the upload in one transaction."""
        mapped_items = [
            {
                "record_type": item.record_type,
                "data": map_record_data(item.record_type, item.data),
                "confidence": item.confidence,
            }
            for item in result.items
        ]

        if classification is not None:
            raw_response: dict[str, Any] = {
                "classification": classification.raw_response,
                "extraction": result.raw_response,
            }
            tokens_used = classification.tokens_used + result.tokens_used
        else:
            raw_response = result.raw_response
            tokens_used = result.tokens_used
            if result.document_type:
                upload.detected_type = str(result.document_type)[:50]

        extraction = Extraction(
            upload_id=upload.id,
            raw_response=raw_response,
            mapped_data=mapped_items,
            extraction_model=result.model,
            tokens_used=tokens_used,
            status=ExtractionStatus.PENDING_REVIEW.value,
        )
        extraction.items = [
            ExtractionItem(
                record_type=mapped["record_type"],
                extracted_data=mapped["data"],
                confidence_score=mapped["confidence"],
                status=ItemStatus.PENDING.value,
            )
            for mapped in mapped_items
        ]

        upload.status = UploadStatus.COMPLETED.value
        upload.processing_completed_at = _now()
        upload.error_message = None

        self.db.add(extraction)
        self.db.commit()
        self.db.refresh(extraction)
        self.db.refresh(upload)
        return extraction

    # --- Review ---

    def get_extraction(self, pet_id: int, upload_id: int) -> Extraction:
        upload = self.get_upload(pet_id, upload_id)
        if upload.extraction is None:
            raise NotFound("No extraction found for this upload")
        return upload.extraction

    def get_item(self, pet_id: int, item_id: int) -> ExtractionItem:
        item = (
            self.db.query(ExtractionItem)
            .join(Extraction, Extraction.id == ExtractionItem.extraction_id)
            .join(Upload, Upload.id == Extraction.upload_id)
            .filter(
                ExtractionItem.id == item_id,
                Upload.pet_id == pet_id,
                Upload.source == self.variant.source.value,
            )
            .first()
        )
        if not item:
            raise NotFound("Extraction item not found")
        return item

    def modify_item(self, pet_id: int, item_id: int, modified_data: dict[str, Any]) -> ExtractionItem:
        """
        Store user edits for an unresolved item.

        Edits are merged over the item's current values and mapped to the
        record's fields; the extracted values are kept for comparison.
        """
        item = self.get_item(pet_id, item_id)
        if item.status not in REVIEWABLE_ITEM_STATUSES:
            raise ConflictError(f"Cannot modify an item that is already {item.status}")

        item.user_modified_data = map_record_data(item.record_type, {**item.effective_data, **modified_data})
        item.status = ItemStatus.MODIFIED.value
        self.db.commit()
        self.db.refresh(item)
        return item

    def approve_items(
        self,
        pet_id: int,
        upload_id: int,
        item_ids: list[int],
        user_id: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, list]:
        """
        Approve items one by one, creating a health record and audit entry for each.

        Each item commits or rolls back on its own; failures are reported
        in the errors list and leave the item unresolved.
        """
        extraction = self.get_extraction(pet_id, upload_id)
        items_by_id = {item.id: item for item in extraction.items}

        approved: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []

        for item_id in item_ids:
            item = items_by_id.get(item_id)
            if item is None:
                errors.append({"item_id": item_id, "error": "Item not found"})
                continue
            if item.status not in REVIEWABLE_ITEM_STATUSES:
                errors.append({"item_id": item_id, "error": f"Item already {item.status}"})
                continue

            try:
                record_id = self._approve_item(
                    pet_id, extraction.upload_id, item, user_id, ip_address, user_agent
                )
            except ValidationError as e:
                self.db.rollback()
                errors.append({"item_id": item_id, "error": e.message})
                continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception(f"Failed to approve extraction item {item_id}")
                errors.append({"item_id": item_id, "error": "Failed to create health record"})
                continue

            approved.append(
                {"item_id": item_id, "record_type": item.record_type, "created_record_id": record_id}
            )

        self._refresh_extraction_status(extraction, user_id)
        logger.info(
            f"Approved {len(approved)} of {len(item_ids)} items for upload {upload_id} ({len(errors)} errors)"
        )
        return {"approved": approved, "rejected": [], "errors": errors}

    def _approve_item(
        self,
        pet_id: int,
        upload_id: int,
        item: ExtractionItem,
        user_id: int,
        ip_address: str | None,
        user_agent: str | None,
    ) -> int:
        kind = get_record_kind(item.record_type)
        data = map_record_data(item.record_type, item.effective_data)

        missing = missing_required_fields(item.record_type, data)
        if missing:
            raise ValidationError("; ".join(missing))

        record = self.health_records.create_record(pet_id, item.record_type, data)

        item.status = ItemStatus.APPROVED.value
        item.created_record_id = record.id
        item.created_record_type = kind.table_name

        self.audit.log_create(
            kind.table_name,
            record.id,
            HealthRecordsService.record_values(item.record_type, record),
            changed_by=user_id,
            pet_id=pet_id,
            source=self.variant.source,
            source_upload_id=upload_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.commit()
        return record.id

    def reject_items(self, pet_id: int, upload_id: int, item_ids: list[int], user_id: int) -> dict[str, list]:
        """Reject unresolved items. No records or audit entries are written."""
        extraction = self.get_extraction(pet_id, upload_id)
        wanted = set(item_ids)

        rejected = []
        for item in extraction.items:
            if item.id in wanted and item.status in REVIEWABLE_ITEM_STATUSES:
                item.status = ItemStatus.REJECTED.value
                rejected.append(item.id)
        self.db.commit()

        self._refresh_extraction_status(extraction, user_id)
        return {"rejected": rejected}

    def _refresh_extraction_status(self, extraction: Extraction, user_id: int) -> None:
        """Recompute the extraction status from all of its items."""
        self.db.refresh(extraction)
        extraction.status = compute_extraction_status(item.status for item in extraction.items).value
        extraction.reviewed_by = user_id
        extraction.reviewed_at = _now()
        self.db.commit()
        self.db.refresh(extraction)
