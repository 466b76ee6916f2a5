"""Setlist.fm data source implementation.

Source for historical setlists of a performer.
API documentation: https://api.setlist.fm/docs/1.0/index.html
"""

import httpx
from pydantic import ValidationError

from ..errors import ApiError, InvalidApiKeyError, InvalidResponseError, NoResultsError
from ..logging import get_logger
from ..models import Setlist, SetlistPage
from . import BaseSource

logger = get_logger(__name__)


class SetlistFmSource(BaseSource):
    """Setlist.fm API data source.

    The API key travels in the x-api-key header, never in the query string.
    """

    BASE_URL = "https://api.setlist.fm/rest/1.0"

    def __init__(
        self,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Setlist.fm source.

        Args:
            api_key: Setlist.fm API key
            timeout: Request timeout in seconds
            transport: Optional transport override for testing
        """
        super().__init__(headers={"x-api-key": api_key}, timeout=timeout, transport=transport)

    @property
    def name(self) -> str:
        return "setlist.fm"

    async def search_setlists(self, artist_name: str, page: int = 1) -> list[Setlist]:
        """Search setlists for a performer.

        Results keep the order setlist.fm returns them in (newest first).

        Raises:
            InvalidApiKeyError: the API key was rejected
            NoResultsError: setlist.fm knows no setlists for the artist
            ApiError: any other non-200 status
            NetworkError: transport failure
            InvalidResponseError: the body could not be parsed
        """
        artist_name = artist_name.strip()
        if not artist_name:
            raise ValueError("artist_name must not be blank")

        logger.info("searching_setlists", artist=artist_name, page=page, source=self.name)

        response = await self._get(
            "/search/setlists",
            params={"artistName": artist_name, "p": page},
        )

        status = response.status_code
        if status == 401:
            logger.error("setlist_fm_unauthorized")
            raise InvalidApiKeyError()
        if status == 404:
            logger.info("setlists_not_found", artist=artist_name)
            raise NoResultsError("No setlists found for this artist")
        if status != 200:
            logger.error("setlist_fm_api_error", status=status, artist=artist_name)
            raise ApiError(f"Server error (Status {status})", status_code=status)

        data = self._decode(response)
        try:
            result = SetlistPage.model_validate(data)
        except ValidationError as e:
            logger.error("setlist_payload_invalid", artist=artist_name, error=str(e))
            raise InvalidResponseError("Unexpected setlist payload from setlist.fm") from e

        logger.info(
            "setlist_search_complete",
            artist=artist_name,
            page=page,
            results=len(result.setlist),
            total=result.total,
        )
        return result.setlist
