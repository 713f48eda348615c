"""Tests for model response parsing."""
import pytest

from app.core.exceptions import ExtractionParseError
from app.domains.imports.parsing import find_json_object, parse_classification, parse_extracted_items


class TestFindJsonObject:
    """Tests for locating the first top-level JSON object in model text."""

    def test_plain_json(self):
        assert find_json_object('{"a": 1}') == {"a": 1}

    def test_json_wrapped_in_prose_and_fences(self):
        text = 'Here is the result:\n```json\n{"items": [], "pet_name": "Max"}\n```\nLet me know!'
        assert find_json_object(text) == {"items": [], "pet_name": "Max"}

    def test_nested_objects(self):
        text = 'prefix {"outer": {"inner": {"x": 1}}, "y": [ {"z": 2} ]} suffix {"second": true}'
        assert find_json_object(text) == {"outer": {"inner": {"x": 1}}, "y": [{"z": 2}]}

    def test_braces_inside_strings_are_ignored(self):
        text = 'Result: {"notes": "give with food } twice {daily", "quote": "say \\"hi\\" }"}'
        result = find_json_object(text)
        assert result["notes"] == "give with food } twice {daily"
        assert result["quote"] == 'say "hi" }'

    def test_skips_invalid_candidate_and_uses_next(self):
        text = "{not json} and then {\"valid\": 1}"
        assert find_json_object(text) == {"valid": 1}

    def test_unclosed_brace_before_valid_object(self):
        text = 'The card says {smudged. Result: {"items": []}'
        assert find_json_object(text) == {"items": []}

    def test_no_json_raises(self):
        with pytest.raises(ExtractionParseError):
            find_json_object("I could not read this document, sorry.")

    def test_unbalanced_json_raises(self):
        with pytest.raises(ExtractionParseError):
            find_json_object('{"items": [{"record_type": "vaccination"')


class TestParseClassification:
    """Tests for classification parsing and defaults."""

    def test_full_classification(self):
        text = """{
            "document_type": "vaccination_record",
            "confidence": 92,
            "explanation": "Rabies certificate",
            "alternative_types": ["medical_history"],
            "pet_name": "Biscuit"
        }"""
        result = parse_classification(text)

        assert result.document_type == "vaccination_record"
        assert result.confidence == 92
        assert result.explanation == "Rabies certificate"
        assert result.alternative_types == ["medical_history"]
        assert result.pet_name == "Biscuit"

    def test_unknown_type_becomes_other(self):
        result = parse_classification('{"document_type": "grocery_list", "confidence": 70}')
        assert result.document_type == "other"

    def test_missing_fields_get_defaults(self):
        result = parse_classification("{}")
        assert result.document_type == "other"
        assert result.confidence == 0
        assert result.explanation == ""
        assert result.alternative_types == []

    def test_confidence_is_clamped(self):
        assert parse_classification('{"confidence": 140}').confidence == 100
        assert parse_classification('{"confidence": -3}').confidence == 0
        assert parse_classification('{"confidence": "high"}').confidence == 0


class TestParseExtractedItems:
    """Tests for extraction item parsing."""

    def test_accepts_both_record_type_spellings(self):
        items = parse_extracted_items(
            {
                "items": [
                    {"record_type": "vaccination", "data": {"name": "Rabies"}, "confidence": 0.95},
                    {"recordType": "allergy", "data": {"allergen": "Chicken"}, "confidence": 0.8},
                ]
            }
        )
        assert [i.record_type for i in items] == ["vaccination", "allergy"]
        assert items[0].confidence == 0.95

    def test_unknown_record_types_are_dropped(self):
        items = parse_extracted_items(
            {
                "items": [
                    {"record_type": "grooming", "data": {"name": "Bath"}},
                    {"record_type": "condition", "data": {"name": "Arthritis"}},
                ]
            }
        )
        assert len(items) == 1
        assert items[0].record_type == "condition"

    def test_items_without_data_object_are_dropped(self):
        items = parse_extracted_items({"items": [{"record_type": "vet", "data": "Happy Paws"}, "junk"]})
        assert items == []

    def test_confidence_defaults_and_clamps(self):
        items = parse_extracted_items(
            {
                "items": [
                    {"record_type": "vet", "data": {"clinic_name": "A"}},
                    {"record_type": "vet", "data": {"clinic_name": "B"}, "confidence": 3},
                ]
            }
        )
        assert items[0].confidence == 0.5
        assert items[1].confidence == 1.0

    def test_missing_items_is_empty(self):
        assert parse_extracted_items({"pet_name": "Max"}) == []

    def test_items_not_a_list_raises(self):
        with pytest.raises(ExtractionParseError):
            parse_extracted_items({"items": {"record_type": "vet"}})
