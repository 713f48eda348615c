"""API routes for a pet's health records."""
from typing import Any

from fastapi import APIRouter, Body, Request, Response, status

from app.core.dependencies import CurrentUser, DbSession
from app.domains.audit.service import get_request_metadata
from app.domains.health_records.schemas import PetHealthRecordsResponse
from app.domains.health_records.service import HealthRecordsService, RECORD_KINDS, get_record_kind
from app.domains.pets.service import PetAccessService

router = APIRouter()


@router.get("/{pet_id}/records", response_model=PetHealthRecordsResponse)
def list_health_records(
    pet_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """All vaccinations, medications, conditions, allergies, vets and emergency contacts of a pet."""
    PetAccessService(db).require_view_access(pet_id, current_user.user_id)

    records = HealthRecordsService(db).list_records(pet_id)
    return {
        kind.collection: [kind.response_schema.model_validate(r) for r in records[kind.collection]]
        for kind in RECORD_KINDS.values()
    }


@router.post("/{pet_id}/records/{record_type}", status_code=status.HTTP_201_CREATED)
def create_health_record(
    pet_id: int,
    record_type: str,
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    data: dict[str, Any] = Body(...),
):
    """Manually add a health record. Requires owner or editor role."""
    PetAccessService(db).require_edit_access(pet_id, current_user.user_id)
    kind = get_record_kind(record_type)

    ip_address, user_agent = get_request_metadata(request)
    record = HealthRecordsService(db).create_manual_record(
        pet_id,
        record_type,
        data,
        user_id=current_user.user_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return kind.response_schema.model_validate(record)


@router.delete("/{pet_id}/records/{record_type}/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_health_record(
    pet_id: int,
    record_type: str,
    record_id: int,
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
):
    """Delete a health record. Requires owner or editor role."""
    PetAccessService(db).require_edit_access(pet_id, current_user.user_id)

    ip_address, user_agent = get_request_metadata(request)
    HealthRecordsService(db).delete_record(
        pet_id,
        record_type,
        record_id,
        user_id=current_user.user_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
