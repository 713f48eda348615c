"""
Anthropic Messages API client.

Sends a single document or image together with a text prompt and returns
the model's text output. No retries: any failure is reported to the caller
as ExternalServiceError.

API Documentation: https://docs.anthropic.com/en/api/messages
"""
import base64
import logging
from dataclasses import dataclass
from functools import lru_cache

import httpx

from app.core.config import settings
from app.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Text output and usage of one Messages API call."""
    text: str
    tokens_used: int
    model: str


def build_file_block(data: bytes, media_type: str, mime_type: str) -> dict:
    """Content block carrying the file: a document block for PDFs, an image block otherwise."""
    encoded = base64.standard_b64encode(data).decode("ascii")
    block_type = "document" if media_type == "pdf" else "image"
    return {
        "type": block_type,
        "source": {
            "type": "base64",
            "media_type": "application/pdf" if media_type == "pdf" else mime_type,
            "data": encoded,
        },
    }


class ClaudeClient:
    """
    Client for the Anthropic Messages API.

    Usage:
        client = ClaudeClient(api_key="...")
        response = client.complete(pdf_bytes, "pdf", "application/pdf", prompt)
        print(response.text, response.tokens_used)
    """

    def __init__(
        self,
        api_key: str,
        model: str = settings.CLAUDE_MODEL,
        max_tokens: int = settings.CLAUDE_MAX_TOKENS,
        api_url: str = settings.CLAUDE_API_URL,
        api_version: str = settings.CLAUDE_API_VERSION,
        timeout: float = settings.CLAUDE_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.api_url = api_url
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ClaudeClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def complete(self, data: bytes, media_type: str, mime_type: str, prompt: str) -> LLMResponse:
        """
        Send one file and a prompt as a single user message.

        Args:
            data: raw file bytes
            media_type: "pdf" or "image"
            mime_type: MIME type of the file, used for image blocks
            prompt: instruction text placed after the file

        Returns:
            LLMResponse with the concatenated text output

        Raises:
            ExternalServiceError: missing API key, HTTP error, timeout or malformed reply
        """
        if not self.api_key:
            raise ExternalServiceError("Claude API key is not configured")

        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        build_file_block(data, media_type, mime_type),
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }

        try:
            response = self._get_client().post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Claude API request timed out after {self.timeout}s")
            raise ExternalServiceError("Claude API request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Claude API HTTP error: {e.response.status_code} {e.response.text[:500]}")
            raise ExternalServiceError(f"Claude API returned status {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Claude API request error: {e}")
            raise ExternalServiceError(f"Failed to connect to Claude API: {e}") from e
        except ValueError as e:
            logger.error(f"Claude API returned a non-JSON body: {e}")
            raise ExternalServiceError("Claude API returned an invalid response") from e

        content = body.get("content") if isinstance(body, dict) else None
        if not isinstance(content, list) or not all(isinstance(block, dict) for block in content):
            logger.error(f"Claude API returned an unexpected body: {str(body)[:500]}")
            raise ExternalServiceError("Claude API returned an invalid response")

        text = "".join(
            str(block.get("text") or "")
            for block in content
            if block.get("type") == "text"
        )
        if not text:
            raise ExternalServiceError("No text response from Claude")

        usage = body.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        try:
            tokens_used = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)
        except (TypeError, ValueError) as e:
            raise ExternalServiceError("Claude API returned an invalid response") from e
        return LLMResponse(text=text, tokens_used=tokens_used, model=body.get("model") or self.model)


@lru_cache
def get_llm_client() -> ClaudeClient:
    """Shared client configured from settings."""
    return ClaudeClient(api_key=settings.CLAUDE_API_KEY)
