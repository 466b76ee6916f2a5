"""Ticketmaster event payloads and their mapping onto Event.

Ticketmaster populates most event fields inconsistently, so every nested
field in the raw schema is optional and map_event degrades to placeholders
instead of failing.
"""

from datetime import date, datetime, time, timezone

from pydantic import BaseModel, ConfigDict, Field

from ..logging import get_logger
from ..models import Event

logger = get_logger(__name__)

UNKNOWN_VENUE = "Unknown Venue"


class RawModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RawImage(RawModel):
    url: str | None = None
    width: int | None = None
    height: int | None = None


class RawStart(RawModel):
    local_date: str | None = Field(default=None, alias="localDate")
    local_time: str | None = Field(default=None, alias="localTime")
    date_time: str | None = Field(default=None, alias="dateTime")


class RawDates(RawModel):
    start: RawStart | None = None


class RawCity(RawModel):
    name: str | None = None


class RawAddress(RawModel):
    line1: str | None = None


class RawLocation(RawModel):
    latitude: str | None = None
    longitude: str | None = None


class RawVenue(RawModel):
    name: str | None = None
    city: RawCity | None = None
    address: RawAddress | None = None
    location: RawLocation | None = None


class RawEmbedded(RawModel):
    venues: list[RawVenue] | None = None


class RawSegment(RawModel):
    name: str | None = None


class RawClassification(RawModel):
    segment: RawSegment | None = None


class RawEvent(RawModel):
    """An event exactly as the Discovery API returns it."""

    id: str
    name: str = ""
    url: str | None = None
    images: list[RawImage] = Field(default_factory=list)
    dates: RawDates | None = None
    embedded: RawEmbedded | None = Field(default=None, alias="_embedded")
    classifications: list[RawClassification] | None = None


def parse_start(start: RawStart | None) -> datetime | None:
    """Resolve the start instant, preferring the full ISO date-time.

    A date-only value maps to midnight UTC of that day.
    """
    if start is None:
        return None

    if start.date_time:
        try:
            parsed = datetime.fromisoformat(start.date_time.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("unparseable_event_datetime", value=start.date_time)
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)

    if start.local_date:
        try:
            day = date.fromisoformat(start.local_date)
        except ValueError:
            logger.debug("unparseable_event_date", value=start.local_date)
        else:
            return datetime.combine(day, time.min, tzinfo=timezone.utc)

    return None


def _is_music(classifications: list[RawClassification] | None) -> bool | None:
    if not classifications:
        return None
    segment = classifications[0].segment
    if segment is None or segment.name is None:
        return None
    return segment.name.lower() == "music"


def map_event(raw: RawEvent) -> Event:
    """Convert a raw Ticketmaster event into an Event."""
    start = raw.dates.start if raw.dates else None

    venues = raw.embedded.venues if raw.embedded and raw.embedded.venues else []
    venue = venues[0] if venues else None
    venue_name = (venue.name if venue else None) or UNKNOWN_VENUE
    city = venue.city.name if venue and venue.city else None

    image_url = raw.images[0].url if raw.images else None

    return Event(
        id=raw.id,
        name=raw.name,
        start=parse_start(start),
        local_date=start.local_date if start else None,
        venue=venue_name,
        city=city or None,
        url=raw.url,
        image_url=image_url,
        is_music=_is_music(raw.classifications),
    )
