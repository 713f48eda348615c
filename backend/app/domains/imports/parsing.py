"""
Parsing of free-form model output into typed results.

The model is asked for JSON but may wrap it in prose or code fences, so the
first top-level JSON object is located by brace matching before decoding.
"""
import json
import logging
from typing import Any

from app.core.exceptions import ExtractionParseError
from app.domains.imports.prompts import DOCUMENT_TYPES
from app.domains.imports.types import ClassificationResult, ExtractedItem

logger = logging.getLogger(__name__)

RECORD_TYPES = ("vaccination", "medication", "condition", "allergy", "vet", "emergency_contact")

DEFAULT_ITEM_CONFIDENCE = 0.5


def _matching_brace(text: str, start: int) -> int | None:
    """Index of the brace closing the object opened at start, ignoring braces inside strings."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def find_json_object(text: str) -> dict[str, Any]:
    """
    Return the first decodable top-level JSON object in text.

    Raises:
        ExtractionParseError: if no balanced, valid JSON object is present
    """
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            try:
                value = json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                value = None
            if isinstance(value, dict):
                return value
        start = text.find("{", start + 1)

    raise ExtractionParseError("No valid JSON object found in model response")


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(low, min(high, number))


def parse_classification(text: str) -> ClassificationResult:
    data = find_json_object(text)

    document_type = data.get("document_type") or data.get("documentType") or "other"
    if document_type not in DOCUMENT_TYPES:
        logger.warning(f"Unknown document type '{document_type}' from classifier, using 'other'")
        document_type = "other"

    alternatives = data.get("alternative_types") or data.get("alternativeTypes") or []
    if not isinstance(alternatives, list):
        alternatives = []

    return ClassificationResult(
        document_type=document_type,
        confidence=int(round(_clamp(data.get("confidence"), 0, 100, 0))),
        explanation=str(data.get("explanation") or ""),
        alternative_types=[str(a) for a in alternatives],
        pet_name=data.get("pet_name") or data.get("petName"),
        raw_response=data,
    )


def parse_extracted_items(data: dict[str, Any]) -> list[ExtractedItem]:
    """Typed items from a decoded extraction response; unusable entries are dropped."""
    raw_items = data.get("items") or []
    if not isinstance(raw_items, list):
        raise ExtractionParseError("Extraction response 'items' is not a list")

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object extraction item: {raw!r}")
            continue

        record_type = raw.get("record_type") or raw.get("recordType")
        if record_type not in RECORD_TYPES:
            logger.warning(f"Skipping extraction item with unknown record type '{record_type}'")
            continue

        item_data = raw.get("data")
        if not isinstance(item_data, dict):
            logger.warning(f"Skipping {record_type} item without a data object")
            continue

        items.append(
            ExtractedItem(
                record_type=record_type,
                data=item_data,
                confidence=_clamp(raw.get("confidence"), 0.0, 1.0, DEFAULT_ITEM_CONFIDENCE),
            )
        )
    return items
