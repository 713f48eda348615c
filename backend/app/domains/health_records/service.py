"""Service layer for the health records domain."""
import logging
from dataclasses import dataclass
from typing import Any

import pydantic
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import Base
from app.core.exceptions import NotFound, ValidationError
from app.domains.audit.models import AuditSource
from app.domains.audit.service import AuditLogger
from app.domains.health_records.models import (
    PetAllergy,
    PetCondition,
    PetEmergencyContact,
    PetMedication,
    PetVaccination,
    PetVet,
)
from app.domains.health_records.schemas import (
    AllergyCreate,
    AllergyResponse,
    ConditionCreate,
    ConditionResponse,
    EmergencyContactCreate,
    EmergencyContactResponse,
    MedicationCreate,
    MedicationResponse,
    VaccinationCreate,
    VaccinationResponse,
    VetCreate,
    VetResponse,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordKind:
    """Binds an extraction record type to its table and schemas."""
    record_type: str
    model: type[Base]
    create_schema: type[BaseModel]
    response_schema: type[BaseModel]
    collection: str  # key in the per-pet listing

    @property
    def table_name(self) -> str:
        return self.model.__tablename__


RECORD_KINDS: dict[str, RecordKind] = {
    kind.record_type: kind
    for kind in (
        RecordKind("vaccination", PetVaccination, VaccinationCreate, VaccinationResponse, "vaccinations"),
        RecordKind("medication", PetMedication, MedicationCreate, MedicationResponse, "medications"),
        RecordKind("condition", PetCondition, ConditionCreate, ConditionResponse, "conditions"),
        RecordKind("allergy", PetAllergy, AllergyCreate, AllergyResponse, "allergies"),
        RecordKind("vet", PetVet, VetCreate, VetResponse, "vets"),
        RecordKind("emergency_contact", PetEmergencyContact, EmergencyContactCreate, EmergencyContactResponse, "emergency_contacts"),
    )
}


def get_record_kind(record_type: str) -> RecordKind:
    kind = RECORD_KINDS.get(record_type)
    if kind is None:
        raise NotFound(f"Unknown record type: {record_type}")
    return kind


def _format_validation_error(error: pydantic.ValidationError) -> str:
    messages = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{field}: {detail['msg']}")
    return "; ".join(messages)


class HealthRecordsService:
    """Creates, lists and deletes a pet's typed health records."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogger(db)

    def create_record(self, pet_id: int, record_type: str, data: dict[str, Any]) -> Base:
        """
        Validate data and insert a record without committing.

        Raises:
            NotFound: unknown record type
            ValidationError: data does not satisfy the record's schema
        """
        kind = get_record_kind(record_type)
        try:
            validated = kind.create_schema.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(_format_validation_error(e)) from e

        record = kind.model(pet_id=pet_id, **validated.model_dump())
        self.db.add(record)
        self.db.flush()
        return record

    def create_manual_record(
        self,
        pet_id: int,
        record_type: str,
        data: dict[str, Any],
        user_id: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Base:
        """Create a record entered by hand and audit it."""
        kind = get_record_kind(record_type)
        try:
            record = self.create_record(pet_id, record_type, data)
            self.audit.log_create(
                kind.table_name,
                record.id,
                self.record_values(record_type, record),
                changed_by=user_id,
                pet_id=pet_id,
                source=AuditSource.MANUAL,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        return record

    def get_record(self, pet_id: int, record_type: str, record_id: int) -> Base | None:
        kind = get_record_kind(record_type)
        return (
            self.db.query(kind.model)
            .filter(kind.model.id == record_id, kind.model.pet_id == pet_id)
            .first()
        )

    def delete_record(
        self,
        pet_id: int,
        record_type: str,
        record_id: int,
        user_id: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        kind = get_record_kind(record_type)
        record = self.get_record(pet_id, record_type, record_id)
        if not record:
            raise NotFound("Record not found")

        old_values = self.record_values(record_type, record)
        self.audit.log_delete(
            kind.table_name,
            record.id,
            old_values,
            changed_by=user_id,
            pet_id=pet_id,
            source=AuditSource.MANUAL,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.delete(record)
        self.db.commit()
        logger.info(f"Deleted {kind.table_name} {record_id} for pet {pet_id}")

    def list_records(self, pet_id: int) -> dict[str, list[Base]]:
        """All six record categories for a pet, keyed by collection name."""
        return {
            kind.collection: (
                self.db.query(kind.model)
                .filter(kind.model.pet_id == pet_id)
                .order_by(kind.model.created_at.desc(), kind.model.id.desc())
                .all()
            )
            for kind in RECORD_KINDS.values()
        }

    @staticmethod
    def record_values(record_type: str, record: Base) -> dict[str, Any]:
        """Schema fields of a record, as written to the audit log."""
        kind = get_record_kind(record_type)
        return {field: getattr(record, field) for field in kind.create_schema.model_fields}
