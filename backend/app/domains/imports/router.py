"""
API routes for the import pipeline.

The same routes are mounted once per import variant
(/pets/{pet_id}/pdf-import, /photo-import and /documents).
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.core.dependencies import CurrentUser, DbSession, LLMRateLimitedUser, UploadRateLimitedUser
from app.core.rate_limit import llm_limiter
from app.domains.audit.service import get_request_metadata
from app.domains.imports.llm_client import ClaudeClient, get_llm_client
from app.domains.imports.mappers import count_by_category, summarize
from app.domains.imports.models import Extraction
from app.domains.imports.schemas import (
    ApproveResponse,
    ClassificationInfo,
    DocumentUploadResponse,
    ExtractedItemSummary,
    ExtractionDetailResponse,
    ExtractionItemResponse,
    ExtractionResponse,
    ItemIdsRequest,
    ModifyItemRequest,
    ProcessResponse,
    RejectResponse,
    UploadResponse,
)
from app.domains.imports.service import ImportService, ProcessOutcome
from app.domains.imports.storage import StorageBackend, get_storage
from app.domains.imports.variants import ImportVariant
from app.domains.pets.service import PetAccessService

logger = logging.getLogger(__name__)

Storage = Annotated[StorageBackend, Depends(get_storage)]
LLMClient = Annotated[ClaudeClient, Depends(get_llm_client)]


def _extraction_summary(extraction: Extraction) -> str:
    return summarize(count_by_category(item.record_type for item in extraction.items))


def _failure_response(outcome: ProcessOutcome) -> JSONResponse:
    upload = UploadResponse.model_validate(outcome.upload).model_dump(mode="json")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": outcome.error, "upload_id": outcome.upload.id, "upload": upload},
    )


def _document_upload_response(outcome: ProcessOutcome) -> DocumentUploadResponse:
    upload, extraction = outcome.upload, outcome.extraction
    classification, result = outcome.classification, outcome.result

    if result is not None:
        summary = summarize(result.summary.by_category)
    else:
        summary = _extraction_summary(extraction)
    pet_name = (result.pet_name if result else None) or (classification.pet_name if classification else None)

    return DocumentUploadResponse(
        upload_id=upload.id,
        upload=UploadResponse.model_validate(upload),
        detected_type=upload.detected_type,
        confidence=upload.classification_confidence,
        explanation=upload.classification_explanation,
        alternative_types=classification.alternative_types if classification else [],
        pet_name=pet_name,
        extracted_items=[
            ExtractedItemSummary(
                id=item.id,
                record_type=item.record_type,
                data=item.effective_data,
                confidence=item.confidence_score,
                status=item.status,
            )
            for item in extraction.items
        ],
        summary=summary,
        extraction_id=extraction.id,
    )


def _require_item_ids(request: ItemIdsRequest) -> list[int]:
    if not request.item_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="itemIds array is required",
        )
    return request.item_ids


def build_router(variant: ImportVariant) -> APIRouter:
    """Routes for one import variant, to be mounted under /pets."""
    router = APIRouter()
    base = f"/{{pet_id}}/{variant.route_segment}"

    # --- Upload Endpoints ---

    if variant.process_on_upload:

        @router.post(
            f"{base}/upload",
            status_code=status.HTTP_201_CREATED,
            response_model=DocumentUploadResponse,
            dependencies=[Depends(llm_limiter)],
        )
        async def upload_and_process(
            pet_id: int,
            db: DbSession,
            current_user: UploadRateLimitedUser,
            storage: Storage,
            llm_client: LLMClient,
            file: UploadFile = File(..., description="PDF or image of a pet health document"),
        ):
            """
            Upload a document, classify it and extract health records in one call.

            Requires owner or editor role on the pet.
            """
            PetAccessService(db).require_edit_access(pet_id, current_user.user_id)
            content = await file.read()

            service = ImportService(db, variant, storage, llm_client)
            upload = await run_in_threadpool(
                service.create_upload,
                content,
                file.filename or "upload",
                file.content_type or "application/octet-stream",
                pet_id,
                current_user.user_id,
            )
            outcome = await run_in_threadpool(service.process_upload, pet_id, upload.id)
            if not outcome.succeeded:
                return _failure_response(outcome)

            return _document_upload_response(outcome)

    else:

        @router.post(f"{base}/upload", status_code=status.HTTP_201_CREATED, response_model=UploadResponse)
        async def upload_file(
            pet_id: int,
            db: DbSession,
            current_user: UploadRateLimitedUser,
            storage: Storage,
            file: UploadFile = File(..., description="File to import"),
        ):
            """
            Upload a file for later processing.

            Requires owner or editor role on the pet.
            """
            PetAccessService(db).require_edit_access(pet_id, current_user.user_id)
            content = await file.read()

            service = ImportService(db, variant, storage)
            return await run_in_threadpool(
                service.create_upload,
                content,
                file.filename or "upload",
                file.content_type or "application/octet-stream",
                pet_id,
                current_user.user_id,
            )

    @router.get(f"{base}/uploads", response_model=list[UploadResponse])
    def list_uploads(
        pet_id: int,
        db: DbSession,
        current_user: CurrentUser,
        storage: Storage,
    ):
        """List a pet's uploads for this import type, newest first."""
        PetAccessService(db).require_view_access(pet_id, current_user.user_id)
        return ImportService(db, variant, storage).list_uploads(pet_id)

    @router.get(f"{base}/uploads/{{upload_id}}", response_model=UploadResponse)
    def get_upload(
        pet_id: int,
        upload_id: int,
        db: DbSession,
        current_user: CurrentUser,
        storage: Storage,
    ):
        PetAccessService(db).require_view_access(pet_id, current_user.user_id)
        return ImportService(db, variant, storage).get_upload(pet_id, upload_id)

    @router.delete(f"{base}/uploads/{{upload_id}}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_upload(
        pet_id: int,
        upload_id: int,
        db: DbSession,
        current_user: CurrentUser,
        storage: Storage,
    ):
        """Delete an upload, its stored file and its extraction."""
        PetAccessService(db).require_edit_access(pet_id, current_user.user_id)
        ImportService(db, variant, storage).delete_upload(pet_id, upload_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # --- Processing ---

    @router.post(f"{base}/uploads/{{upload_id}}/process", response_model=ProcessResponse)
    def process_upload(
        pet_id: int,
        upload_id: int,
        db: DbSession,
        current_user: LLMRateLimitedUser,
        storage: Storage,
        llm_client: LLMClient,
    ):
        """
        Classify and extract an uploaded file.

        Returns the existing extraction when the upload was already processed.
        Failures are recorded on the upload and returned with status 500.
        """
        PetAccessService(db).require_edit_access(pet_id, current_user.user_id)

        outcome = ImportService(db, variant, storage, llm_client).process_upload(pet_id, upload_id)
        if not outcome.succeeded:
            return _failure_response(outcome)

        return ProcessResponse(
            upload=UploadResponse.model_validate(outcome.upload),
            extraction=ExtractionResponse.model_validate(outcome.extraction),
            items=[ExtractionItemResponse.model_validate(i) for i in outcome.extraction.items],
        )

    # --- Review Endpoints ---

    @router.get(f"{base}/uploads/{{upload_id}}/extraction", response_model=ExtractionDetailResponse)
    def get_extraction(
        pet_id: int,
        upload_id: int,
        db: DbSession,
        current_user: CurrentUser,
        storage: Storage,
    ):
        PetAccessService(db).require_view_access(pet_id, current_user.user_id)

        service = ImportService(db, variant, storage)
        upload = service.get_upload(pet_id, upload_id)
        extraction = service.get_extraction(pet_id, upload_id)
        return ExtractionDetailResponse(
            extraction=ExtractionResponse.model_validate(extraction),
            items=[ExtractionItemResponse.model_validate(i) for i in extraction.items],
            classification=ClassificationInfo(
                detected_type=upload.detected_type,
                confidence=upload.classification_confidence,
                explanation=upload.classification_explanation,
            ),
            summary=_extraction_summary(extraction),
        )

    @router.post(f"{base}/uploads/{{upload_id}}/extraction/approve", response_model=ApproveResponse)
    def approve_items(
        pet_id: int,
        upload_id: int,
        body: ItemIdsRequest,
        request: Request,
        db: DbSession,
        current_user: CurrentUser,
        storage: Storage,
    ):
        """Approve items, creating health records. Per-item failures are listed in errors."""
        PetAccessService(db).require_edit_access(pet_id, current_user.user_id)
        item_ids = _require_item_ids(body)

        ip_address, user_agent = get_request_metadata(request)
        return ImportService(db, variant, storage).approve_items(
            pet_id,
            upload_id,
            item_ids,
            user_id=current_user.user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @router.post(f"{base}/uploads/{{upload_id}}/extraction/reject", response_model=RejectResponse)
    def reject_items(
        pet_id: int,
        upload_id: int,
        body: ItemIdsRequest,
        db: DbSession,
        current_user: CurrentUser,
        storage: Storage,
    ):
        PetAccessService(db).require_edit_access(pet_id, current_user.user_id)
        item_ids = _require_item_ids(body)

        return ImportService(db, variant, storage).reject_items(
            pet_id, upload_id, item_ids, user_id=current_user.user_id
        )

    @router.patch(f"{base}/extraction-items/{{item_id}}", response_model=ExtractionItemResponse)
    def modify_item(
        pet_id: int,
        item_id: int,
        body: ModifyItemRequest,
        db: DbSession,
        current_user: CurrentUser,
        storage: Storage,
    ):
        """Edit an item's values before approval."""
        PetAccessService(db).require_edit_access(pet_id, current_user.user_id)
        return ImportService(db, variant, storage).modify_item(pet_id, item_id, body.modified_data)

    return router
