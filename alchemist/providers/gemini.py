"""
Google Gemini adapter (generateContent REST API).

API Documentation: https://ai.google.dev/api/generate-content
"""

from typing import Any

import httpx

from alchemist.providers.base import HttpProviderAdapter
from alchemist.services.errors import ErrorKind, ProviderError


class GeminiAdapter(HttpProviderAdapter):
    """Calls ``models/{model}:generateContent`` with the key in a header."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)

    @property
    def name(self) -> str:
        return "gemini"

    async def generate(
        self,
        prompt: str,
        model: str,
        credential: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        data = await self._post_json(
            f"{self.base_url}/models/{model}:generateContent",
            payload={
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": temperature,
                    "maxOutputTokens": max_output_tokens,
                },
            },
            headers={"x-goog-api-key": credential},
        )
        return self._extract_text(data)

    def _extract_text(self, data: dict[str, Any]) -> str:
        """Concatenate the text parts of the first candidate."""
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise self._malformed("candidates is not a list")
        if not candidates:
            feedback = data.get("promptFeedback")
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            detail = f"blocked ({reason})" if reason else "no candidates"
            raise ProviderError(ErrorKind.EMPTY_OUTPUT, detail, provider=self.name)

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise self._malformed("candidate is not an object")
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise self._malformed("candidate content is not an object")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise self._malformed("content parts is not a list")

        text = "".join(
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        if not text.strip():
            finish = candidate.get("finishReason", "unknown")
            raise ProviderError(
                ErrorKind.EMPTY_OUTPUT,
                f"empty candidate (finishReason={finish})",
                provider=self.name,
            )
        return text
