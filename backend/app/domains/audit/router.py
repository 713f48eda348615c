"""API routes for reading a pet's audit history."""
from fastapi import APIRouter, HTTPException, Query, status

from app.core.config import settings
from app.core.dependencies import CurrentUser, DbSession
from app.domains.audit.models import AuditAction
from app.domains.audit.schemas import AuditLogEntryResponse, AuditLogListResponse, Pagination
from app.domains.audit.service import AUDITED_ENTITY_TYPES, AuditLogReader
from app.domains.pets.service import PetAccessService

router = APIRouter()


def _to_response(row) -> AuditLogEntryResponse:
    entry, name, email = row
    response = AuditLogEntryResponse.model_validate(entry)
    response.changed_by_name = name
    response.changed_by_email = email
    return response


@router.get("/{pet_id}/audit", response_model=AuditLogListResponse)
def list_pet_audit_log(
    pet_id: int,
    db: DbSession,
    current_user: CurrentUser,
    limit: int = Query(settings.AUDIT_LOG_DEFAULT_LIMIT, ge=1, le=settings.AUDIT_LOG_MAX_LIMIT),
    offset: int = Query(0, ge=0),
    entity_type: str | None = Query(None, alias="entityType"),
    action: AuditAction | None = Query(None),
    source_upload_id: int | None = Query(None, alias="sourceUploadId"),
):
    """
    Change history for a pet and all of its health records.

    Requires view access to the pet.
    """
    PetAccessService(db).require_view_access(pet_id, current_user.user_id)

    rows, total = AuditLogReader(db).list_for_pet(
        pet_id,
        entity_type=entity_type,
        action=action.value if action else None,
        source_upload_id=source_upload_id,
        limit=limit,
        offset=offset,
    )
    return AuditLogListResponse(
        logs=[_to_response(row) for row in rows],
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(rows) < total,
        ),
    )


@router.get("/{pet_id}/audit/uploads/{upload_id}", response_model=list[AuditLogEntryResponse])
def list_upload_audit_log(
    pet_id: int,
    upload_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Entries for records created from one import upload."""
    PetAccessService(db).require_view_access(pet_id, current_user.user_id)
    return [_to_response(row) for row in AuditLogReader(db).list_for_upload(pet_id, upload_id)]


@router.get("/{pet_id}/audit/{entity_type}/{entity_id}", response_model=list[AuditLogEntryResponse])
def list_record_audit_log(
    pet_id: int,
    entity_type: str,
    entity_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """History of a single pet or health record."""
    PetAccessService(db).require_view_access(pet_id, current_user.user_id)

    if entity_type not in AUDITED_ENTITY_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid entity type: {entity_type}",
        )

    rows = AuditLogReader(db).list_for_record(pet_id, entity_type, entity_id)
    return [_to_response(row) for row in rows]
