"""Ticketmaster Discovery API event source.

Queries each requested region independently and merges the results into one
deduplicated, date-ordered list.
API documentation: https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/
"""

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import Field, ValidationError

from ..errors import ApiError, GigBuddyError, InvalidApiKeyError, InvalidResponseError
from ..logging import get_logger
from ..models import Event, Region, utcnow
from . import BaseSource
from .event_mapper import RawEvent, RawModel, map_event

logger = get_logger(__name__)


class _EmbeddedEvents(RawModel):
    events: list[RawEvent] = Field(default_factory=list)


class PageInfo(RawModel):
    size: int | None = None
    total_elements: int | None = Field(default=None, alias="totalElements")
    total_pages: int | None = Field(default=None, alias="totalPages")
    number: int | None = None


class EventSearchPage(RawModel):
    """Envelope of an /events response. `_embedded` is absent when nothing matched."""

    embedded: _EmbeddedEvents | None = Field(default=None, alias="_embedded")
    page: PageInfo | None = None

    @property
    def events(self) -> list[RawEvent]:
        return self.embedded.events if self.embedded else []


def extract_error_message(body: Any, status_code: int) -> str:
    """Pull a human readable message out of a Ticketmaster error envelope.

    The envelope varies by endpoint and gateway, so each known shape is tried
    in turn: `error`, `message`, `errors[]`, then the gateway `fault`.
    """
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict):
            message = error.get("message") or error.get("detail")
            if message:
                return str(message)

        message = body.get("message")
        if isinstance(message, str) and message:
            return message

        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, str) and first:
                return first
            if isinstance(first, dict):
                message = first.get("detail") or first.get("message") or first.get("code")
                if message:
                    return str(message)

        fault = body.get("fault")
        if isinstance(fault, dict) and fault.get("faultstring"):
            return str(fault["faultstring"])

    return f"HTTP {status_code}"


_NO_START = datetime.min.replace(tzinfo=timezone.utc)


def _event_order(event: Event) -> tuple[bool, datetime, str]:
    # Scheduled events first by instant, unscheduled ones after by raw date
    return (event.start is None, event.start or _NO_START, event.local_date or "")


def merge_events(batches: Iterable[Iterable[Event]]) -> list[Event]:
    """Deduplicate events by id and sort them by start.

    The first occurrence of an id wins. Events lacking a start instant come
    after all scheduled ones, ordered by their raw date string.
    """
    seen: dict[str, Event] = {}
    for batch in batches:
        for event in batch:
            seen.setdefault(event.id, event)
    return sorted(seen.values(), key=_event_order)


def _require_regions(regions: Iterable[Region]) -> list[Region]:
    unique = list(dict.fromkeys(regions))
    if not unique:
        raise ValueError("At least one region is required")
    return unique


class TicketmasterSource(BaseSource):
    """Ticketmaster Discovery API event source."""

    BASE_URL = "https://app.ticketmaster.com/discovery/v2"

    def __init__(
        self,
        api_key: str,
        page_size: int = 50,
        radius: int = 300,
        unit: str = "miles",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Ticketmaster source.

        Args:
            api_key: Ticketmaster consumer key
            page_size: Maximum events requested per region
            radius: Search radius around a geolocation
            unit: Radius unit ("miles" or "km")
            timeout: Request timeout in seconds
            transport: Optional transport override for testing
        """
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key
        self.page_size = page_size
        self.radius = radius
        self.unit = unit

    @property
    def name(self) -> str:
        return "ticketmaster"

    async def discover_events(
        self,
        regions: Iterable[Region],
        latitude: float | None = None,
        longitude: float | None = None,
        now: datetime | None = None,
    ) -> list[Event]:
        """Find upcoming events in each region, optionally near a coordinate.

        Args:
            regions: Regions to query (at least one)
            latitude: Optional latitude of the search center
            longitude: Optional longitude of the search center
            now: Lower bound for event start, defaults to the current time

        Returns:
            Deduplicated events in ascending start order
        """
        if (latitude is None) != (longitude is None):
            raise ValueError("latitude and longitude must be given together")
        regions = _require_regions(regions)

        start_after = (now or utcnow()).strftime("%Y-%m-%dT%H:%M:%SZ")

        def params_for(region: Region) -> dict[str, Any]:
            params: dict[str, Any] = {
                "startDateTime": start_after,
                "countryCode": region.country_code,
                "sort": "date,asc",
                "size": self.page_size,
            }
            if latitude is not None:
                params["geoPoint"] = f"{latitude},{longitude}"
                params["radius"] = self.radius
                params["unit"] = self.unit
            return params

        logger.info("discovering_events", regions=[r.id for r in regions], near=latitude is not None)
        return await self._fetch_regions(regions, params_for)

    async def search_events(self, keyword: str, regions: Iterable[Region]) -> list[Event]:
        """Search each region for events matching a keyword."""
        keyword = keyword.strip()
        if not keyword:
            raise ValueError("keyword must not be blank")

        logger.info("searching_events", keyword=keyword)
        return await self._fetch_regions(
            _require_regions(regions),
            lambda region: {
                "keyword": keyword,
                "countryCode": region.country_code,
                "size": self.page_size,
            },
        )

    async def fetch_region(self, region: Region, params: dict[str, Any]) -> list[Event]:
        """Run one /events query and map its payload."""
        response = await self._get("/events.json", params={"apikey": self.api_key, **params})

        if response.status_code == 401:
            logger.error("ticketmaster_unauthorized", region=region.id)
            raise InvalidApiKeyError()

        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = extract_error_message(body, response.status_code)
            logger.error(
                "ticketmaster_api_error",
                region=region.id,
                status=response.status_code,
                message=message,
            )
            raise ApiError(message, status_code=response.status_code)

        data = self._decode(response)
        try:
            page = EventSearchPage.model_validate(data)
        except ValidationError as e:
            logger.error("ticketmaster_payload_invalid", region=region.id, error=str(e))
            raise InvalidResponseError("Unexpected event payload from ticketmaster") from e

        events = [map_event(raw) for raw in page.events]
        logger.debug("region_events_fetched", region=region.id, count=len(events))
        return events

    async def _fetch_regions(
        self,
        regions: list[Region],
        params_for: Callable[[Region], dict[str, Any]],
    ) -> list[Event]:
        """Query all regions concurrently and merge what succeeded.

        An invalid API key fails the whole call. Any other region failure
        only drops that region, unless every region failed.
        """
        results = await asyncio.gather(
            *(self.fetch_region(region, params_for(region)) for region in regions),
            return_exceptions=True,
        )

        batches: list[list[Event]] = []
        failures: list[GigBuddyError] = []
        for region, result in zip(regions, results):
            if isinstance(result, InvalidApiKeyError):
                raise result
            if isinstance(result, GigBuddyError):
                logger.warning("region_fetch_failed", region=region.id, error=str(result))
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                batches.append(result)

        if failures and not batches:
            raise failures[0]

        events = merge_events(batches)
        logger.info(
            "events_merged",
            regions=len(regions),
            failed_regions=len(failures),
            count=len(events),
        )
        return events
