"""Spotify Web API client for playlist creation.

Handles:
- Profile lookup
- Track search
- Playlist creation and track attachment

Every request is Bearer-authenticated with a token from SpotifyAuth.
"""

from typing import Any
from urllib.parse import quote

import httpx

from ..errors import (
    InvalidResponseError,
    NetworkError,
    PlaylistCreationFailedError,
    SearchFailedError,
)
from ..logging import get_logger
from .auth import SpotifyAuth

logger = get_logger(__name__)


class SpotifyClient:
    """Spotify API client for gigbuddy.

    Wraps httpx with token handling and structured logging.
    """

    BASE_URL = "https://api.spotify.com/v1"
    MAX_TRACKS_PER_REQUEST = 100

    def __init__(
        self,
        auth: SpotifyAuth,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Spotify client.

        Args:
            auth: Provider of valid access tokens
            timeout: Request timeout in seconds
            transport: Optional transport override for testing
        """
        self.auth = auth
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def authenticate(self) -> None:
        """Make sure a valid token is available, prompting for consent if needed."""
        await self.auth.get_valid_access_token()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        token = await self.auth.get_valid_access_token()
        try:
            return await self._client.request(
                method,
                path,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.error("spotify_request_failed", method=method, path=path, error=str(e))
            raise NetworkError(e) from e

    @staticmethod
    def _json_object(response: httpx.Response) -> dict[str, Any] | None:
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    async def current_user_id(self) -> str:
        """Get the current user's Spotify ID."""
        response = await self._request("GET", "/me")
        data = self._json_object(response) if response.status_code == 200 else None
        user_id = data.get("id") if data else None

        if not isinstance(user_id, str) or not user_id:
            logger.error("spotify_profile_lookup_failed", status=response.status_code)
            raise InvalidResponseError("Received an invalid response from Spotify")

        logger.info("spotify_user_authenticated", user_id=user_id)
        return user_id

    async def search_track(self, query: str) -> str | None:
        """Search for a track and return the URI of the best match.

        Args:
            query: Free-text search, e.g. "song name performer"

        Returns:
            The first matching track URI, or None if nothing matched

        Raises:
            SearchFailedError: the search endpoint returned an error
        """
        response = await self._request(
            "GET",
            "/search",
            params={"q": query, "type": "track", "limit": 1},
        )

        if response.status_code != 200:
            logger.error("track_search_failed", query=query, status=response.status_code)
            raise SearchFailedError(query, response.status_code)

        data = self._json_object(response)
        tracks = data.get("tracks") if data else None
        items = tracks.get("items") if isinstance(tracks, dict) else None
        first = items[0] if isinstance(items, list) and items else None
        uri = first.get("uri") if isinstance(first, dict) else None

        if not isinstance(uri, str) or not uri:
            logger.debug("track_not_found", query=query)
            return None
        return uri

    async def create_playlist(
        self,
        user_id: str,
        name: str,
        description: str = "",
        public: bool = False,
    ) -> dict[str, Any]:
        """Create a new playlist.

        Args:
            user_id: Owner's Spotify user ID
            name: Playlist name
            description: Playlist description
            public: Whether the playlist is public

        Returns:
            Playlist data dict with id and external_urls
        """
        logger.info("creating_playlist", name=name, public=public)

        response = await self._request(
            "POST",
            f"/users/{quote(user_id, safe='')}/playlists",
            json={"name": name, "description": description, "public": public},
        )

        playlist = self._json_object(response) if response.status_code in (200, 201) else None
        if not playlist or not playlist.get("id"):
            logger.error("playlist_creation_failed", name=name, status=response.status_code)
            raise PlaylistCreationFailedError("create", response.status_code)

        logger.info("playlist_created", name=name, id=playlist["id"])
        return playlist

    async def add_tracks_to_playlist(self, playlist_id: str, uris: list[str]) -> int:
        """Attach tracks to a playlist.

        Spotify accepts at most 100 URIs per request, so longer lists are
        sent in consecutive batches.

        Returns:
            Number of tracks added
        """
        added = 0
        for i in range(0, len(uris), self.MAX_TRACKS_PER_REQUEST):
            batch = uris[i : i + self.MAX_TRACKS_PER_REQUEST]
            response = await self._request(
                "POST",
                f"/playlists/{quote(playlist_id, safe='')}/tracks",
                json={"uris": batch},
            )
            if response.status_code not in (200, 201):
                logger.error(
                    "add_tracks_failed",
                    playlist_id=playlist_id,
                    batch_num=i // self.MAX_TRACKS_PER_REQUEST + 1,
                    status=response.status_code,
                )
                raise PlaylistCreationFailedError(
                    "add_tracks", response.status_code, playlist_id=playlist_id
                )
            added += len(batch)

        logger.info("tracks_added", playlist_id=playlist_id, total=added)
        return added

    async def aclose(self) -> None:
        await self._client.aclose()
