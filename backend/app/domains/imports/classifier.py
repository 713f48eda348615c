"""Classification and extraction of pet health documents through the LLM."""
import logging

from app.domains.imports.llm_client import ClaudeClient
from app.domains.imports.mappers import count_by_category
from app.domains.imports.parsing import find_json_object, parse_classification, parse_extracted_items
from app.domains.imports.prompts import PromptSet
from app.domains.imports.types import ClassificationResult, ExtractionResult, ExtractionSummary

logger = logging.getLogger(__name__)

# Minimum classification confidence for the document type to be used as an extraction hint
HINT_CONFIDENCE_THRESHOLD = 50


def extraction_hint(classification: ClassificationResult | None) -> str | None:
    if classification is None or classification.confidence < HINT_CONFIDENCE_THRESHOLD:
        return None
    return classification.document_type


class DocumentAnalyzer:
    """
    Runs the prompts of one import variant against a file.

    Each method makes exactly one LLM call. Variants with a classification
    prompt classify first and pass the detected type to extract() as a hint.
    """

    def __init__(self, llm_client: ClaudeClient, prompts: PromptSet):
        self.llm_client = llm_client
        self.prompts = prompts

    @property
    def classifies(self) -> bool:
        return self.prompts.classification is not None

    def classify(self, data: bytes, media_type: str, mime_type: str) -> ClassificationResult:
        if self.prompts.classification is None:
            raise ValueError("This prompt set has no classification prompt")

        response = self.llm_client.complete(data, media_type, mime_type, self.prompts.classification)
        result = parse_classification(response.text)
        result.tokens_used = response.tokens_used
        result.model = response.model
        logger.info(f"Classified document as {result.document_type} ({result.confidence}%)")
        return result

    def extract(
        self,
        data: bytes,
        media_type: str,
        mime_type: str,
        document_type_hint: str | None = None,
    ) -> ExtractionResult:
        prompt = self.prompts.extraction_with_hint(document_type_hint)
        response = self.llm_client.complete(data, media_type, mime_type, prompt)

        decoded = find_json_object(response.text)
        items = parse_extracted_items(decoded)
        by_category = count_by_category(item.record_type for item in items)

        return ExtractionResult(
            items=items,
            summary=ExtractionSummary(total_items=len(items), by_category=by_category),
            document_type=decoded.get("document_type") or decoded.get("documentType"),
            pet_name=decoded.get("pet_name") or decoded.get("petName"),
            raw_response=decoded,
            tokens_used=response.tokens_used,
            model=response.model,
        )
