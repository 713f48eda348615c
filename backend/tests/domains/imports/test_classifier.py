"""Tests for DocumentAnalyzer and the Claude Messages API client."""
import json

import httpx
import pytest

from app.core.exceptions import ExternalServiceError, ExtractionParseError
from app.domains.imports.classifier import DocumentAnalyzer, extraction_hint
from app.domains.imports.llm_client import ClaudeClient, build_file_block
from app.domains.imports.prompts import DOCUMENT_PROMPTS, IMAGE_PROMPTS
from app.domains.imports.types import ClassificationResult

EXTRACTION_RESPONSE = {
    "document_type": "vaccination_record",
    "pet_name": "Biscuit",
    "items": [
        {"record_type": "vaccination", "data": {"name": "Rabies", "administered_date": "2024-01-15"}, "confidence": 0.95},
        {"record_type": "vaccination", "data": {"name": "DHPP", "administered_date": "2024-01-15"}, "confidence": 0.9},
    ],
}


class TestExtractionHint:

    def test_hint_used_at_threshold(self):
        classification = ClassificationResult(document_type="lab_results", confidence=50, explanation="")
        assert extraction_hint(classification) == "lab_results"

    def test_no_hint_below_threshold(self):
        classification = ClassificationResult(document_type="lab_results", confidence=49, explanation="")
        assert extraction_hint(classification) is None

    def test_no_hint_without_classification(self):
        assert extraction_hint(None) is None


class TestDocumentAnalyzer:

    def test_extract_builds_summary(self, llm):
        llm.queue(EXTRACTION_RESPONSE)
        analyzer = DocumentAnalyzer(llm, IMAGE_PROMPTS)

        result = analyzer.extract(b"img", "image", "image/png")

        assert len(result.items) == 2
        assert result.summary.total_items == 2
        assert result.summary.by_category["vaccinations"] == 2
        assert result.document_type == "vaccination_record"
        assert result.pet_name == "Biscuit"
        assert result.tokens_used == 100
        assert len(llm.calls) == 1

    def test_hint_is_appended_to_prompt(self, llm):
        llm.queue({"items": []})
        analyzer = DocumentAnalyzer(llm, DOCUMENT_PROMPTS)

        analyzer.extract(b"pdf", "pdf", "application/pdf", document_type_hint="vaccination_record")

        assert llm.calls[0]["prompt"].endswith("This appears to be a vaccination record.")

    def test_classify(self, llm):
        llm.queue({"document_type": "medication_label", "confidence": 85, "explanation": "Bottle label"})
        analyzer = DocumentAnalyzer(llm, DOCUMENT_PROMPTS)

        result = analyzer.classify(b"img", "image", "image/jpeg")

        assert analyzer.classifies is True
        assert result.document_type == "medication_label"
        assert result.confidence == 85
        assert result.model == "claude-test"

    def test_single_call_variants_cannot_classify(self, llm):
        analyzer = DocumentAnalyzer(llm, IMAGE_PROMPTS)
        assert analyzer.classifies is False
        with pytest.raises(ValueError):
            analyzer.classify(b"img", "image", "image/png")

    def test_non_json_response_raises_parse_error(self, llm):
        llm.queue("Sorry, I can't help with that.")
        analyzer = DocumentAnalyzer(llm, IMAGE_PROMPTS)

        with pytest.raises(ExtractionParseError):
            analyzer.extract(b"img", "image", "image/png")


class TestBuildFileBlock:

    def test_pdf_uses_document_block(self):
        block = build_file_block(b"%PDF", "pdf", "application/pdf")
        assert block["type"] == "document"
        assert block["source"]["media_type"] == "application/pdf"
        assert block["source"]["type"] == "base64"

    def test_image_uses_image_block_with_mime(self):
        block = build_file_block(b"\x89PNG", "image", "image/png")
        assert block["type"] == "image"
        assert block["source"]["media_type"] == "image/png"


class TestClaudeClient:
    """Tests for ClaudeClient against a mocked transport."""

    def _client(self, handler) -> ClaudeClient:
        return ClaudeClient(
            api_key="test-key",
            model="claude-test",
            api_url="https://api.example.test/v1/messages",
            transport=httpx.MockTransport(handler),
        )

    def test_successful_completion(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "claude-test",
                    "content": [{"type": "text", "text": '{"items": []}'}],
                    "usage": {"input_tokens": 1200, "output_tokens": 80},
                },
            )

        with self._client(handler) as client:
            response = client.complete(b"%PDF", "pdf", "application/pdf", "Extract please")

        assert response.text == '{"items": []}'
        assert response.tokens_used == 1280
        assert captured["headers"]["x-api-key"] == "test-key"
        assert captured["headers"]["anthropic-version"] == "2023-06-01"
        content = captured["body"]["messages"][0]["content"]
        assert content[0]["type"] == "document"
        assert content[1] == {"type": "text", "text": "Extract please"}

    def test_http_error_raises_external_service_error(self):
        client = self._client(lambda request: httpx.Response(529, json={"error": "overloaded"}))

        with pytest.raises(ExternalServiceError, match="529"):
            client.complete(b"img", "image", "image/png", "prompt")

    def test_timeout_raises_external_service_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = self._client(handler)
        with pytest.raises(ExternalServiceError, match="timed out"):
            client.complete(b"img", "image", "image/png", "prompt")

    def test_empty_text_raises(self):
        client = self._client(lambda request: httpx.Response(200, json={"content": [], "usage": {}}))

        with pytest.raises(ExternalServiceError):
            client.complete(b"img", "image", "image/png", "prompt")

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {"content": "not a list"},
            {"content": ["plain string block"]},
            {"usage": {"input_tokens": 5}},
        ],
    )
    def test_malformed_body_raises_external_service_error(self, body):
        client = self._client(lambda request: httpx.Response(200, json=body))

        with pytest.raises(ExternalServiceError, match="invalid response"):
            client.complete(b"img", "image", "image/png", "prompt")

    def test_null_usage_counts_as_zero(self):
        body = {
            "content": [{"type": "text", "text": "{}"}],
            "usage": {"input_tokens": None, "output_tokens": 12},
        }
        client = self._client(lambda request: httpx.Response(200, json=body))

        response = client.complete(b"img", "image", "image/png", "prompt")

        assert response.tokens_used == 12
        assert response.model == "claude-test"

    def test_missing_api_key_raises_without_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = ClaudeClient(api_key="", transport=httpx.MockTransport(handler))
        with pytest.raises(ExternalServiceError, match="not configured"):
            client.complete(b"img", "image", "image/png", "prompt")
