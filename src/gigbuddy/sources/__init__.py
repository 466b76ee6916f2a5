"""Provider client base class.

Every provider client owns one httpx.AsyncClient and funnels requests through
BaseSource so that transport failures surface as gigbuddy errors, never as
httpx exceptions.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..errors import InvalidResponseError, InvalidURLError, NetworkError
from ..logging import get_logger

logger = get_logger(__name__)


class BaseSource(ABC):
    """Abstract base class for HTTP data sources with common functionality."""

    BASE_URL: str

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP client.

        Args:
            headers: Default headers sent with every request
            timeout: Request timeout in seconds
            transport: Optional transport override (e.g. httpx.MockTransport)
        """
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=timeout,
            transport=transport,
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this data source."""
        pass

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """Issue a GET request, wrapping transport failures."""
        try:
            return await self._client.get(path, params=params)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidURLError(str(e)) from e
        except httpx.HTTPError as e:
            logger.warning("request_failed", source=self.name, path=path, error=str(e))
            raise NetworkError(e) from e

    def _decode(self, response: httpx.Response) -> Any:
        """Decode a JSON body or raise InvalidResponseError."""
        try:
            return response.json()
        except ValueError as e:
            logger.error("response_decode_failed", source=self.name, error=str(e))
            raise InvalidResponseError(f"Malformed JSON from {self.name}") from e

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
