"""Prompt templates for document classification and health-record extraction."""
from dataclasses import dataclass

DOCUMENT_TYPES = (
    "medication_label",
    "vet_visit_summary",
    "lab_results",
    "vaccination_record",
    "receipt",
    "insurance_form",
    "pet_id",
    "medical_history",
    "prescription",
    "other",
)

CLASSIFICATION_PROMPT = """Analyze this document and determine what type of pet health document it is.

Possible document types:
- medication_label: Prescription labels, medication bottles, drug packaging
- vet_visit_summary: Veterinary visit summaries, exam reports, discharge notes
- lab_results: Blood work, urinalysis, diagnostic test results
- vaccination_record: Vaccination certificates, immunization records
- receipt: Veterinary invoices, pharmacy receipts, payment records
- insurance_form: Pet insurance claims, coverage documents, EOBs
- pet_id: Microchip registration, ID tags, pet licenses
- medical_history: Comprehensive health records, transferred records
- prescription: Written prescriptions, refill authorizations
- other: Documents that don't fit other categories

Evaluate the document and provide:
1. The most likely document type
2. A confidence score from 0-100
3. A brief explanation of why you classified it this way
4. Any alternative types it could be (if confidence < 80)

Respond with a JSON object:
{
  "document_type": "medication_label",
  "confidence": 85,
  "explanation": "Document shows a prescription label with drug name, dosage, and pharmacy information",
  "alternative_types": ["prescription"],
  "pet_name": "Max"
}

If confidence is below 50%, explain what makes the document difficult to classify.
Only classify based on what you can actually see - do not guess."""

_RECORD_TYPES_SECTION = """For each piece of information found, categorize it into one of these record types:
- vaccination: Vaccine records (name, date administered, expiration date, administered by, lot number)
- medication: Prescriptions or medications (name, dosage, frequency, start date, end date, prescribing vet, notes)
- condition: Medical conditions or diagnoses (name, diagnosed date, severity, notes)
- allergy: Allergies (allergen, reaction, severity)
- vet: Veterinarian/clinic information (clinic name, vet name, phone, email, address)
- emergency_contact: Emergency contacts mentioned (name, relationship, phone, email)

For each extracted item, provide a confidence score from 0.0 to 1.0:
- 1.0: Information is clearly and explicitly stated
- 0.8-0.9: Information is clearly stated but might have minor ambiguity
- 0.5-0.7: Information is inferred or partially legible
- Below 0.5: Information is unclear or guessed"""

_ITEMS_EXAMPLE = """  "items": [
    {
      "record_type": "vaccination",
      "data": {
        "name": "Rabies",
        "administered_date": "2024-01-15",
        "expiration_date": "2025-01-15",
        "administered_by": "Dr. Smith",
        "lot_number": "ABC123"
      },
      "confidence": 0.95
    },
    {
      "record_type": "medication",
      "data": {
        "name": "Apoquel",
        "dosage": "16mg",
        "frequency": "Once daily",
        "start_date": "2024-01-15",
        "end_date": null,
        "prescribing_vet": "Dr. Smith",
        "notes": "For allergies",
        "is_active": true
      },
      "confidence": 0.9
    }
  ]"""

_FIELD_FORMATS = """Field formats:
- Dates should be in YYYY-MM-DD format when possible, or null if not available
- severity should be: "mild", "moderate", or "severe" for conditions
- severity for allergies: "mild", "moderate", "severe", or "life-threatening"
- is_active for medications should be true for current prescriptions
- is_primary for vets should be true if this appears to be the primary vet"""

PDF_EXTRACTION_PROMPT = f"""You are analyzing a veterinary document (PDF) for a pet health records system. Extract all relevant health information from this document.

{_RECORD_TYPES_SECTION}

Respond with a JSON object in this exact format:
{{
  "document_type": "vaccination_record" | "vet_visit_summary" | "lab_results" | "prescription" | "other",
  "pet_name": "Name of pet if mentioned",
{_ITEMS_EXAMPLE}
}}

{_FIELD_FORMATS}

Only extract information that is actually present in the document. Do not make up or assume information.
If no relevant health information is found, return an empty items array."""

IMAGE_EXTRACTION_PROMPT = f"""You are analyzing an image related to pet health records. This could be a photo of:
- A vaccination card or certificate
- A medication label or prescription bottle
- A pet ID tag or microchip card
- A veterinary visit summary or medical record
- Any other pet health-related document or label

Extract all relevant health information from this image.

{_RECORD_TYPES_SECTION}

Respond with a JSON object in this exact format:
{{
  "document_type": "vaccination_record" | "medication_label" | "pet_id" | "medical_history" | "other",
  "pet_name": "Name of pet if visible",
{_ITEMS_EXAMPLE}
}}

{_FIELD_FORMATS}

Only extract information that is actually visible in the image. Do not make up or assume information.
If the image is blurry, poorly lit, or partially obscured, adjust confidence scores accordingly.
If no relevant health information is found, return an empty items array."""

DOCUMENT_EXTRACTION_PROMPT = f"""Extract all relevant pet health information from this document.

{_RECORD_TYPES_SECTION}

Respond with a JSON object:
{{
  "pet_name": "Name of pet if visible",
{_ITEMS_EXAMPLE},
  "summary": {{
    "total_items": 2,
    "by_category": {{
      "medications": 1,
      "vaccinations": 1
    }}
  }}
}}

{_FIELD_FORMATS}

Only extract information that is actually visible in the document. Do not make up or assume information.
If the document is blurry, poorly lit, or partially obscured, adjust confidence scores accordingly.
If no relevant health information is found, return an empty items array."""


@dataclass(frozen=True)
class PromptSet:
    """Prompts used by one import variant; classification is None for single-call variants."""
    extraction: str
    classification: str | None = None

    def extraction_with_hint(self, document_type: str | None) -> str:
        if not document_type:
            return self.extraction
        return f"{self.extraction}\n\nThis appears to be a {document_type.replace('_', ' ')}."


PDF_PROMPTS = PromptSet(extraction=PDF_EXTRACTION_PROMPT)
IMAGE_PROMPTS = PromptSet(extraction=IMAGE_EXTRACTION_PROMPT)
DOCUMENT_PROMPTS = PromptSet(
    extraction=DOCUMENT_EXTRACTION_PROMPT,
    classification=CLASSIFICATION_PROMPT,
)
