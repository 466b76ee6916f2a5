"""Pydantic data models for gigbuddy.

Provider payloads are parsed into these schemas; anything the rest of the
library consumes goes through them.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# A credential this close to expiry is treated as already expired
EXPIRY_MARGIN = timedelta(minutes=5)

SETLIST_DATE_FORMAT = "%d-%m-%Y"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Region(BaseModel):
    """A supported Ticketmaster market."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable region identifier")
    name: str = Field(description="Display name")
    country_code: str = Field(description="ISO 3166-1 alpha-2 code sent to the provider")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Region):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class Event(BaseModel):
    """A discovered event, normalized from a Ticketmaster payload.

    Two events are equal when they share a provider id.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Ticketmaster event id")
    name: str = Field(description="Event display name")
    start: datetime | None = Field(default=None, description="Start instant (UTC) if scheduled")
    local_date: str | None = Field(default=None, description="Raw provider date, used for ordering fallback")
    venue: str = Field(default="Unknown Venue", description="Venue name")
    city: str | None = Field(default=None, description="Venue city")
    url: str | None = Field(default=None, description="Ticket purchase URL")
    image_url: str | None = Field(default=None, description="First image URL")
    is_music: bool | None = Field(default=None, description="None when the provider gave no classification")

    @property
    def location(self) -> str:
        if self.city:
            return f"{self.venue}, {self.city}"
        return self.venue

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class _SetlistModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SetlistArtist(_SetlistModel):
    name: str
    mbid: str | None = None
    sort_name: str | None = None
    disambiguation: str | None = None


class Country(_SetlistModel):
    code: str | None = None
    name: str | None = None


class Coords(_SetlistModel):
    lat: float | None = None
    long: float | None = None


class City(_SetlistModel):
    id: str | None = None
    name: str = ""
    state: str | None = None
    state_code: str | None = None
    coords: Coords | None = None
    country: Country | None = None


class SetlistVenue(_SetlistModel):
    id: str | None = None
    name: str
    city: City = Field(default_factory=City)


class Cover(_SetlistModel):
    name: str
    mbid: str | None = None
    sort_name: str | None = None


class Song(_SetlistModel):
    name: str = ""
    info: str | None = None
    cover: Cover | None = None


class SetlistSet(_SetlistModel):
    """One segment of a performance (main set or an encore)."""

    name: str | None = None
    encore: int | None = None
    songs: list[Song] = Field(default_factory=list, alias="song")

    @property
    def display_name(self) -> str:
        if self.encore is not None:
            return f"Encore {self.encore}"
        return self.name or "Main Set"


class SetlistSets(_SetlistModel):
    items: list[SetlistSet] = Field(default_factory=list, alias="set")


class Setlist(_SetlistModel):
    """A setlist.fm record of a past performance."""

    id: str
    event_date: str = Field(description="setlist.fm date string (dd-MM-yyyy)")
    artist: SetlistArtist
    venue: SetlistVenue
    sets: SetlistSets = Field(default_factory=SetlistSets)
    url: str | None = None

    @property
    def event_day(self) -> date | None:
        try:
            return datetime.strptime(self.event_date, SETLIST_DATE_FORMAT).date()
        except ValueError:
            return None

    @property
    def formatted_date(self) -> str:
        """Human readable date, e.g. "Jun 5, 2023". Falls back to the raw string."""
        day = self.event_day
        if day is None:
            return self.event_date
        return f"{day:%b} {day.day}, {day.year}"

    @property
    def songs(self) -> list[Song]:
        """All songs across all sets, in performance order."""
        return [song for segment in self.sets.items for song in segment.songs]


class SetlistPage(_SetlistModel):
    """A page of setlist search results."""

    setlist: list[Setlist] = Field(default_factory=list)
    items_per_page: int | None = None
    page: int | None = None
    total: int | None = None


class OAuthCredential(BaseModel):
    """A Spotify access/refresh token pair."""

    access_token: str
    refresh_token: str
    expires_at: datetime = Field(description="Absolute expiry instant (UTC)")

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once `now` is within EXPIRY_MARGIN of the expiry instant."""
        now = now or utcnow()
        return now >= self.expires_at - EXPIRY_MARGIN

    @classmethod
    def from_token_response(
        cls,
        payload: dict[str, Any],
        previous_refresh_token: str | None = None,
        now: datetime | None = None,
    ) -> "OAuthCredential":
        """Build a credential from a token endpoint response.

        Refresh responses may omit refresh_token; the previous one is kept then.

        Raises:
            KeyError: access_token is missing, or no refresh token is available
        """
        now = now or utcnow()
        refresh_token = payload.get("refresh_token") or previous_refresh_token
        if not refresh_token:
            raise KeyError("refresh_token")
        return cls(
            access_token=payload["access_token"],
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=int(payload.get("expires_in", 3600))),
        )


class PlaylistRequest(BaseModel):
    """What to search for and how to name the playlist for one setlist."""

    song_names: list[str] = Field(description="Songs to look up, in setlist order")
    search_terms: list[str] = Field(description="One search query per song")
    name: str
    description: str

    @classmethod
    def from_setlist(cls, setlist: Setlist) -> "PlaylistRequest":
        performer = setlist.artist.name
        # Songs without a title (unknown or tape) cannot be searched
        song_names = [song.name for song in setlist.songs if song.name.strip()]
        venue = setlist.venue
        return cls(
            song_names=song_names,
            search_terms=[f"{name} {performer}" for name in song_names],
            name=f"GigBuddy: {performer} at {venue.name}",
            description=f"Setlist from {setlist.formatted_date} at {venue.name}, {venue.city.name}",
        )


class PlaylistResult(BaseModel):
    """Outcome of a successful playlist creation."""

    playlist_id: str = Field(description="Spotify playlist ID")
    playlist_url: str | None = Field(default=None, description="Spotify playlist URL")
    playlist_name: str
    track_uris: list[str] = Field(description="Tracks attached, in setlist order")
    unmatched_songs: list[str] = Field(default_factory=list, description="Songs with no search match")
    total_songs: int

    @property
    def matched_count(self) -> int:
        return len(self.track_uris)


class Gig(BaseModel):
    """A concert in the user's saved gig list.

    Serialized with camelCase keys so backups stay compatible across versions.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    id: UUID = Field(default_factory=uuid4)
    date: datetime
    artist: str
    location: str
    rating: int = Field(default=3, ge=1, le=5)
    ticket_count: int = Field(default=0, ge=0)
    ticketmaster_id: str | None = None
    ticketmaster_url: str | None = None
    image_url: str | None = None

    @field_validator("date")
    @classmethod
    def normalize_to_utc(cls, value: datetime) -> datetime:
        """Naive dates are taken as UTC so every saved gig compares alike."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_event(cls, event: Event) -> "Gig":
        return cls(
            date=event.start or utcnow(),
            artist=event.name,
            location=event.location,
            ticketmaster_id=event.id,
            ticketmaster_url=event.url,
            image_url=event.image_url,
        )
