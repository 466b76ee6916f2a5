"""Pipeline orchestrator for gigbuddy.

Wires the provider clients together and runs the playlist flow:
1. Obtain a valid Spotify token
2. Look up the user's profile
3. Flatten the setlist's songs
4. Search a track for every song (misses are skipped)
5. Create the playlist
6. Attach the matched tracks
"""

import asyncio
from collections.abc import Iterable

from .config import Settings, get_settings
from .errors import NoMatchFoundError
from .gigs import GigLibrary, GigStore
from .logging import configure_logging, get_logger
from .models import Event, PlaylistRequest, PlaylistResult, Region, Setlist
from .regions import DEFAULT_REGION
from .sources.setlist_fm import SetlistFmSource
from .sources.ticketmaster import TicketmasterSource
from .spotify import (
    ConsentHandler,
    CredentialStore,
    LocalServerConsent,
    SpotifyAuth,
    SpotifyClient,
    SqliteCredentialStore,
)
from .storage import Storage

logger = get_logger(__name__)


class Pipeline:
    """Main entry point for gigbuddy."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        storage: Storage | None = None,
        credential_store: CredentialStore | None = None,
        consent: ConsentHandler | None = None,
        ticketmaster: TicketmasterSource | None = None,
        setlist_fm: SetlistFmSource | None = None,
        spotify: SpotifyClient | None = None,
    ):
        """Initialize the pipeline.

        Args:
            settings: Optional settings override
            storage: Local database, defaults to settings.data_path
            credential_store: Spotify credential persistence, defaults to storage
            consent: Spotify consent presenter, defaults to the system browser
            ticketmaster: Event discovery client override
            setlist_fm: Setlist client override
            spotify: Spotify client override
        """
        self.settings = settings or get_settings()

        # Configure logging
        configure_logging(
            level=self.settings.log_level,
            format=self.settings.log_format,
        )

        self.storage = storage or Storage(self.settings.data_path)
        self.credential_store = credential_store or SqliteCredentialStore(self.storage)
        self._consent = consent

        self.ticketmaster = ticketmaster or TicketmasterSource(
            api_key=self.settings.ticketmaster_api_key,
            page_size=self.settings.discovery_page_size,
            radius=self.settings.discovery_radius,
            unit=self.settings.discovery_unit,
            timeout=self.settings.http_timeout,
        )
        self.setlist_fm = setlist_fm or SetlistFmSource(
            api_key=self.settings.setlist_fm_api_key,
            timeout=self.settings.http_timeout,
        )

        # Spotify client (initialized lazily to defer OAuth)
        self._spotify = spotify
        self._gigs: GigLibrary | None = None

        logger.info("pipeline_initialized", data_path=str(self.storage.db_path))

    @property
    def spotify(self) -> SpotifyClient:
        """Lazy initialization of Spotify client."""
        if not self._spotify:
            consent = self._consent or LocalServerConsent(
                self.settings.spotify_redirect_uri,
                timeout=self.settings.consent_timeout,
            )
            auth = SpotifyAuth(
                client_id=self.settings.spotify_client_id,
                client_secret=self.settings.spotify_client_secret,
                redirect_uri=self.settings.spotify_redirect_uri,
                store=self.credential_store,
                consent=consent,
                timeout=self.settings.http_timeout,
            )
            self._spotify = SpotifyClient(auth, timeout=self.settings.http_timeout)
        return self._spotify

    @property
    def gigs(self) -> GigLibrary:
        """The saved gig list, loaded on first use."""
        if self._gigs is None:
            self._gigs = GigLibrary(GigStore(self.storage))
        return self._gigs

    async def discover_events(
        self,
        regions: Iterable[Region] | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> list[Event]:
        """Upcoming events across regions, optionally near a coordinate."""
        return await self.ticketmaster.discover_events(
            regions or [DEFAULT_REGION], latitude=latitude, longitude=longitude
        )

    async def search_events(self, keyword: str, regions: Iterable[Region] | None = None) -> list[Event]:
        """Keyword search across regions."""
        return await self.ticketmaster.search_events(keyword, regions or [DEFAULT_REGION])

    async def get_setlists(self, artist_name: str, page: int = 1) -> list[Setlist]:
        """Historical setlists for a performer, newest first."""
        return await self.setlist_fm.search_setlists(artist_name, page=page)

    async def _match_tracks(self, search_terms: list[str]) -> list[str | None]:
        """Search every term, keeping results aligned with their index.

        The first failed search cancels the ones still pending or queued.
        """
        semaphore = asyncio.Semaphore(self.settings.search_concurrency)

        async def search(term: str) -> str | None:
            async with semaphore:
                return await self.spotify.search_track(term)

        tasks = [asyncio.ensure_future(search(term)) for term in search_terms]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def create_playlist(self, setlist: Setlist) -> PlaylistResult:
        """Create a Spotify playlist from a setlist.

        Songs without a matching track are skipped. If the final attach step
        fails the created playlist is left in place, empty.

        Args:
            setlist: The performance to turn into a playlist

        Returns:
            PlaylistResult with matched and unmatched songs

        Raises:
            AuthenticationFailedError: no Spotify credential could be obtained
            InvalidResponseError: the profile lookup failed
            SearchFailedError: the search endpoint returned an error
            NoMatchFoundError: no song matched any track
            PlaylistCreationFailedError: creating or filling the playlist failed
        """
        request = PlaylistRequest.from_setlist(setlist)
        logger.info(
            "playlist_pipeline_start",
            artist=setlist.artist.name,
            venue=setlist.venue.name,
            songs=len(request.search_terms),
        )

        # Step 1: Make sure we hold a valid token
        await self.spotify.authenticate()

        # Step 2: Profile lookup
        user_id = await self.spotify.current_user_id()

        # Steps 3-4: Search each song
        matches = await self._match_tracks(request.search_terms)
        track_uris = [uri for uri in matches if uri]
        unmatched = [name for name, uri in zip(request.song_names, matches) if not uri]

        logger.info("tracks_matched", matched=len(track_uris), unmatched=len(unmatched))

        if not track_uris:
            logger.error("no_tracks_matched", artist=setlist.artist.name)
            raise NoMatchFoundError()

        # Step 5: Create playlist
        playlist = await self.spotify.create_playlist(
            user_id=user_id,
            name=request.name,
            description=request.description,
        )

        # Step 6: Attach tracks
        await self.spotify.add_tracks_to_playlist(playlist["id"], track_uris)

        logger.info(
            "playlist_pipeline_complete",
            playlist_id=playlist["id"],
            tracks_added=len(track_uris),
        )

        return PlaylistResult(
            playlist_id=playlist["id"],
            playlist_url=(playlist.get("external_urls") or {}).get("spotify"),
            playlist_name=request.name,
            track_uris=track_uris,
            unmatched_songs=unmatched,
            total_songs=len(request.song_names),
        )

    async def aclose(self) -> None:
        """Close all HTTP clients."""
        await self.ticketmaster.aclose()
        await self.setlist_fm.aclose()
        if self._spotify:
            await self._spotify.auth.aclose()
            await self._spotify.aclose()

    async def __aenter__(self) -> "Pipeline":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
