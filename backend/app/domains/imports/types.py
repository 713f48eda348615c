"""Result types produced by the classifier/extractor adapter."""
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ClassificationResult:
    document_type: str
    confidence: int  # 0-100
    explanation: str
    alternative_types: list[str] = field(default_factory=list)
    pet_name: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)
    tokens_used: int = 0
    model: str = ""


@dataclass
class ExtractedItem:
    record_type: str
    data: dict[str, Any]
    confidence: float  # 0.0-1.0


@dataclass
class ExtractionSummary:
    total_items: int
    by_category: dict[str, int]


@dataclass
class ExtractionResult:
    items: list[ExtractedItem]
    summary: ExtractionSummary
    document_type: str | None = None
    pet_name: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)
    tokens_used: int = 0
    model: str = ""

