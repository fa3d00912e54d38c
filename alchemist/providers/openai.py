"""
OpenAI-compatible chat completions adapter.

Works with any backend exposing ``POST /chat/completions`` with bearer auth.
"""

from typing import Any

import httpx

from alchemist.providers.base import HttpProviderAdapter
from alchemist.services.errors import ErrorKind, ProviderError


class OpenAIChatAdapter(HttpProviderAdapter):
    BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)

    @property
    def name(self) -> str:
        return "openai"

    async def generate(
        self,
        prompt: str,
        model: str,
        credential: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            payload={
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": temperature,
                "max_tokens": max_output_tokens,
            },
            headers={"Authorization": f"Bearer {credential}"},
        )
        return self._extract_text(data)

    def _extract_text(self, data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not isinstance(choices, list):
            raise self._malformed("choices is not a list")
        content = None
        if choices:
            choice = choices[0]
            if not isinstance(choice, dict):
                raise self._malformed("choice is not an object")
            message = choice.get("message") or {}
            if not isinstance(message, dict):
                raise self._malformed("choice message is not an object")
            content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise self._malformed("message content is not a string")
        if not content or not content.strip():
            raise ProviderError(
                ErrorKind.EMPTY_OUTPUT, "empty completion", provider=self.name
            )
        return content
