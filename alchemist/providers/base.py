"""
Base provider adapter interface.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from alchemist.services.errors import ErrorKind, ProviderError


def classify_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code == 408:
        return ErrorKind.NETWORK
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.INVALID_REQUEST


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class ProviderAdapter(ABC):
    """
    Abstract base class for text-generation backends.

    An adapter performs exactly one network call per ``generate`` and either
    returns the raw candidate text or raises ProviderError with a kind. It
    does not retry, rotate credentials or normalize text.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier used in logs and labels."""
        ...

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model: str,
        credential: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        """Generate one candidate string."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None


class HttpProviderAdapter(ProviderAdapter):
    """Adapter talking JSON over HTTP through a shared httpx client."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._http_client

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> dict[str, Any]:
        """POST a JSON payload and return the decoded body, classifying failures."""
        client = await self._get_http_client()

        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderError(
                ErrorKind.NETWORK, f"timed out: {e}", provider=self.name
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ProviderError(
                classify_status(status),
                f"HTTP {status}: {e.response.text[:200]}",
                provider=self.name,
                retry_after=parse_retry_after(e.response.headers.get("retry-after")),
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                ErrorKind.NETWORK, str(e) or type(e).__name__, provider=self.name
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                ErrorKind.SERVER, "response body is not JSON", provider=self.name
            ) from e

        if not isinstance(data, dict):
            raise self._malformed("body is not an object")
        return data

    def _malformed(self, detail: str) -> ProviderError:
        """A 2xx body the adapter cannot read counts as a server fault."""
        return ProviderError(
            ErrorKind.SERVER, f"unexpected response shape: {detail}", provider=self.name
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
