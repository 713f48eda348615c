"""Audit logging (write side) and audit log queries (read side)."""
import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.domains.audit.models import AuditAction, AuditLog, AuditSource
from app.domains.health_records.models import (
    PetAllergy,
    PetCondition,
    PetEmergencyContact,
    PetMedication,
    PetVaccination,
    PetVet,
)
from app.domains.users.models import User

logger = logging.getLogger(__name__)

PET_ENTITY_TYPE = "pets"

# Child tables whose rows belong to a pet through pet_id
PET_CHILD_MODELS = {
    "pet_vaccinations": PetVaccination,
    "pet_medications": PetMedication,
    "pet_conditions": PetCondition,
    "pet_allergies": PetAllergy,
    "pet_vets": PetVet,
    "pet_emergency_contacts": PetEmergencyContact,
}

AUDITED_ENTITY_TYPES = {PET_ENTITY_TYPE, *PET_CHILD_MODELS}


def get_request_metadata(request: Request) -> tuple[str | None, str | None]:
    """Return (ip_address, user_agent) for audit attribution."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


class AuditLogger:
    """
    Writes audit entries into the caller's transaction.

    Entries are added and flushed but never committed here, so a record and
    its audit entry succeed or fail together.
    """

    def __init__(self, db: Session):
        self.db = db

    def _write(
        self,
        *,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changed_by: int | None,
        pet_id: int | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        changed_fields: list[str] | None = None,
        source: AuditSource | str = AuditSource.MANUAL,
        source_upload_id: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            pet_id=pet_id,
            action=AuditAction(action).value,
            changed_by=changed_by,
            source=AuditSource(source).value,
            source_upload_id=source_upload_id,
            old_values=jsonable_encoder(old_values) if old_values is not None else None,
            new_values=jsonable_encoder(new_values) if new_values is not None else None,
            changed_fields=changed_fields,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def log_create(
        self,
        entity_type: str,
        entity_id: int,
        new_values: dict[str, Any],
        changed_by: int | None,
        **context: Any,
    ) -> AuditLog:
        return self._write(
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.CREATE,
            changed_by=changed_by,
            new_values=new_values,
            changed_fields=list(new_values.keys()),
            **context,
        )

    def log_update(
        self,
        entity_type: str,
        entity_id: int,
        old_values: dict[str, Any],
        new_values: dict[str, Any],
        changed_by: int | None,
        **context: Any,
    ) -> AuditLog | None:
        """Record only the fields that changed; nothing is written when none did."""
        old_encoded = jsonable_encoder(old_values)
        new_encoded = jsonable_encoder(new_values)
        changed = [key for key, value in new_encoded.items() if old_encoded.get(key) != value]
        if not changed:
            return None

        return self._write(
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.UPDATE,
            changed_by=changed_by,
            old_values={key: old_encoded.get(key) for key in changed},
            new_values={key: new_encoded[key] for key in changed},
            changed_fields=changed,
            **context,
        )

    def log_delete(
        self,
        entity_type: str,
        entity_id: int,
        old_values: dict[str, Any],
        changed_by: int | None,
        **context: Any,
    ) -> AuditLog:
        return self._write(
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.DELETE,
            changed_by=changed_by,
            old_values=old_values,
            changed_fields=list(old_values.keys()),
            **context,
        )


class AuditLogReader:
    """Read-only, pet-scoped queries over the audit log, newest first."""

    def __init__(self, db: Session):
        self.db = db

    def _pet_scope(self, pet_id: int):
        """Entries about the pet itself or about any of its health records."""
        conditions = [
            AuditLog.pet_id == pet_id,
            and_(AuditLog.entity_type == PET_ENTITY_TYPE, AuditLog.entity_id == pet_id),
        ]
        for entity_type, model in PET_CHILD_MODELS.items():
            conditions.append(
                and_(
                    AuditLog.entity_type == entity_type,
                    AuditLog.entity_id.in_(select(model.id).where(model.pet_id == pet_id)),
                )
            )
        return or_(*conditions)

    def _base_query(self, pet_id: int):
        return (
            self.db.query(AuditLog, User.name, User.email)
            .outerjoin(User, User.id == AuditLog.changed_by)
            .filter(self._pet_scope(pet_id))
        )

    @staticmethod
    def _ordered(query):
        return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())

    def list_for_pet(
        self,
        pet_id: int,
        entity_type: str | None = None,
        action: str | None = None,
        source_upload_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[tuple[AuditLog, str | None, str | None]], int]:
        """Paginated history for a pet and its records, with the total count."""
        query = self._base_query(pet_id)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if action:
            query = query.filter(AuditLog.action == action)
        if source_upload_id is not None:
            query = query.filter(AuditLog.source_upload_id == source_upload_id)

        total = query.count()
        rows = self._ordered(query).offset(offset).limit(limit).all()
        return rows, total

    def list_for_record(
        self, pet_id: int, entity_type: str, entity_id: int
    ) -> list[tuple[AuditLog, str | None, str | None]]:
        query = self._base_query(pet_id).filter(
            AuditLog.entity_type == entity_type,
            AuditLog.entity_id == entity_id,
        )
        return self._ordered(query).all()

    def list_for_upload(self, pet_id: int, upload_id: int) -> list[tuple[AuditLog, str | None, str | None]]:
        query = self._base_query(pet_id).filter(AuditLog.source_upload_id == upload_id)
        return self._ordered(query).all()
