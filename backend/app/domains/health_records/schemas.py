"""Pydantic schemas for the health records domain."""
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# --- Vaccination Schemas ---

class VaccinationBase(BaseModel):
    name: str = Field(..., min_length=1)
    administered_date: date
    expiration_date: date | None = None
    administered_by: str | None = None
    lot_number: str | None = None


class VaccinationCreate(VaccinationBase):
    pass


class VaccinationResponse(VaccinationBase):
    id: int
    pet_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Medication Schemas ---

class MedicationBase(BaseModel):
    name: str = Field(..., min_length=1)
    dosage: str | None = None
    frequency: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    prescribing_vet: str | None = None
    notes: str | None = None
    is_active: bool = True


class MedicationCreate(MedicationBase):
    pass


class MedicationResponse(MedicationBase):
    id: int
    pet_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Condition Schemas ---

class ConditionBase(BaseModel):
    name: str = Field(..., min_length=1)
    diagnosed_date: date | None = None
    notes: str | None = None
    severity: str | None = None


class ConditionCreate(ConditionBase):
    pass


class ConditionResponse(ConditionBase):
    id: int
    pet_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Allergy Schemas ---

class AllergyBase(BaseModel):
    allergen: str = Field(..., min_length=1)
    reaction: str | None = None
    severity: str | None = None


class AllergyCreate(AllergyBase):
    pass


class AllergyResponse(AllergyBase):
    id: int
    pet_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Vet Schemas ---

class VetBase(BaseModel):
    clinic_name: str = Field(..., min_length=1)
    vet_name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    is_primary: bool = False


class VetCreate(VetBase):
    pass


class VetResponse(VetBase):
    id: int
    pet_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Emergency Contact Schemas ---

class EmergencyContactBase(BaseModel):
    name: str = Field(..., min_length=1)
    relationship: str | None = None
    phone: str = Field(..., min_length=1)
    email: str | None = None
    is_primary: bool = False


class EmergencyContactCreate(EmergencyContactBase):
    pass


class EmergencyContactResponse(EmergencyContactBase):
    id: int
    pet_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Aggregates ---

class PetHealthRecordsResponse(BaseModel):
    vaccinations: list[VaccinationResponse]
    medications: list[MedicationResponse]
    conditions: list[ConditionResponse]
    allergies: list[AllergyResponse]
    vets: list[VetResponse]
    emergency_contacts: list[EmergencyContactResponse]
