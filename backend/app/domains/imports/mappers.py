"""
Mapping of extracted item data onto health-record fields, approval
validation rules and extraction status aggregation.
"""
from collections.abc import Iterable
from typing import Any

from app.domains.imports.models import ExtractionStatus, ItemStatus

# Fields written to each health-record table, in column order
RECORD_FIELDS: dict[str, tuple[str, ...]] = {
    "vaccination": ("name", "administered_date", "expiration_date", "administered_by", "lot_number"),
    "medication": ("name", "dosage", "frequency", "start_date", "end_date", "prescribing_vet", "notes", "is_active"),
    "condition": ("name", "diagnosed_date", "notes", "severity"),
    "allergy": ("allergen", "reaction", "severity"),
    "vet": ("clinic_name", "vet_name", "phone", "email", "address", "is_primary"),
    "emergency_contact": ("name", "relationship", "phone", "email", "is_primary"),
}

# (field, message) pairs checked before an item may be approved
REQUIRED_FIELDS: dict[str, tuple[tuple[str, str], ...]] = {
    "vaccination": (
        ("name", "Vaccination name is required"),
        ("administered_date", "Administered date is required"),
    ),
    "medication": (("name", "Medication name is required"),),
    "condition": (("name", "Condition name is required"),),
    "allergy": (("allergen", "Allergen is required"),),
    "vet": (("clinic_name", "Clinic name is required"),),
    "emergency_contact": (
        ("name", "Contact name is required"),
        ("phone", "Phone number is required"),
    ),
}

# Plural labels used in summaries, in display order
CATEGORY_LABELS: dict[str, tuple[str, str]] = {
    "medication": ("medications", "medication"),
    "vaccination": ("vaccinations", "vaccination"),
    "condition": ("conditions", "condition"),
    "allergy": ("allergies", "allergy"),
    "vet": ("vets", "vet"),
    "emergency_contact": ("emergency_contacts", "emergency contact"),
}

_FALSE_STRINGS = {"false", "no", "0"}
_TRUE_STRINGS = {"true", "yes", "1"}


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return default


def map_record_data(record_type: str, data: dict[str, Any]) -> dict[str, Any]:
    """
    Whitelist data to the fields of record_type's table.

    Unknown keys are dropped and missing optional fields become None;
    medications default to active, vets and contacts to non-primary.
    """
    fields = RECORD_FIELDS.get(record_type)
    if fields is None:
        raise ValueError(f"Unknown record type: {record_type}")

    mapped = {field: _clean(data.get(field)) for field in fields}
    if "is_active" in mapped:
        mapped["is_active"] = _as_bool(data.get("is_active"), default=True)
    if "is_primary" in mapped:
        mapped["is_primary"] = _as_bool(data.get("is_primary"), default=False)
    return mapped


def missing_required_fields(record_type: str, data: dict[str, Any]) -> list[str]:
    """Messages for each required field that is absent or blank."""
    return [
        message
        for field, message in REQUIRED_FIELDS.get(record_type, ())
        if _clean(data.get(field)) is None
    ]


def count_by_category(record_types: Iterable[str]) -> dict[str, int]:
    counts = {plural: 0 for plural, _ in CATEGORY_LABELS.values()}
    for record_type in record_types:
        if record_type in CATEGORY_LABELS:
            counts[CATEGORY_LABELS[record_type][0]] += 1
    return counts


def summarize(by_category: dict[str, int]) -> str:
    """Human summary such as 'Found: 1 medication, 2 vaccinations'."""
    parts = []
    for plural, singular in CATEGORY_LABELS.values():
        count = by_category.get(plural, 0)
        if count > 0:
            label = singular if count == 1 else plural.replace("_", " ")
            parts.append(f"{count} {label}")

    if not parts:
        return "No health records found"
    return f"Found: {', '.join(parts)}"


def compute_extraction_status(item_statuses: Iterable[str]) -> ExtractionStatus:
    """
    Aggregate status of an extraction over all of its items.

    No item resolved: pending_review. All resolved and all approved:
    approved. All resolved and none approved: rejected. Anything else:
    partially_approved.
    """
    statuses = list(item_statuses)
    approved = sum(1 for s in statuses if s == ItemStatus.APPROVED.value)
    rejected = sum(1 for s in statuses if s == ItemStatus.REJECTED.value)
    resolved = approved + rejected

    if resolved == 0:
        return ExtractionStatus.PENDING_REVIEW
    if resolved == len(statuses):
        if approved == len(statuses):
            return ExtractionStatus.APPROVED
        if approved == 0:
            return ExtractionStatus.REJECTED
    return ExtractionStatus.PARTIALLY_APPROVED
