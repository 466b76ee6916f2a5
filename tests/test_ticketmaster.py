import httpx
import pytest

from conftest import NOW, tm_event, tm_page
from gigbuddy.errors import ApiError, InvalidApiKeyError, InvalidResponseError, NetworkError
from gigbuddy.models import Event
from gigbuddy.regions import region_for
from gigbuddy.sources.ticketmaster import TicketmasterSource, extract_error_message, merge_events

GB = region_for("GB")
IE = region_for("IE")
US = region_for("US")


def source_for(responses: dict[str, httpx.Response | Exception], seen: list[httpx.Request] | None = None):
    """A source whose fake API answers per countryCode."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        response = responses[request.url.params["countryCode"]]
        if isinstance(response, Exception):
            raise response
        return response

    return TicketmasterSource(api_key="tm-key", transport=httpx.MockTransport(handler))


class TestMergeEvents:
    def test_dedup_and_sort(self):
        a = Event(id="a", name="A", start=NOW.replace(month=5), local_date="2025-05-01")
        b = Event(id="b", name="B", start=NOW.replace(month=4), local_date="2025-04-01")
        b_again = Event(id="b", name="B (dup)", start=NOW.replace(month=4))
        merged = merge_events([[a, b], [b_again]])
        assert [e.id for e in merged] == ["b", "a"]
        assert merged[0].name == "B"

    def test_missing_start_falls_back_to_raw_date(self):
        tba = Event(id="tba", name="TBA", local_date="TBA")
        undated = Event(id="undated", name="Undated")
        later = Event(id="later", name="L", local_date="2025-09-01")
        merged = merge_events([[tba, later, undated]])
        assert [e.id for e in merged] == ["undated", "later", "tba"]

    def test_scheduled_events_stay_ordered_among_unscheduled(self):
        later = Event(id="later", name="L", start=NOW.replace(month=7))
        undated = Event(id="undated", name="U")
        tba = Event(id="tba", name="T", local_date="TBA")
        earlier = Event(id="earlier", name="E", start=NOW.replace(month=6), local_date="2025-06-01")

        merged = merge_events([[later], [undated], [tba, earlier]])

        assert [e.id for e in merged] == ["earlier", "later", "undated", "tba"]

    def test_order_does_not_depend_on_batch_order(self):
        events = [
            Event(id="a", name="A", start=NOW.replace(month=9)),
            Event(id="b", name="B"),
            Event(id="c", name="C", start=NOW.replace(month=4), local_date="2025-04-01"),
            Event(id="d", name="D", local_date="2025-05-01"),
        ]
        forward = merge_events([events])
        backward = merge_events([list(reversed(events))])
        assert [e.id for e in forward] == [e.id for e in backward] == ["c", "a", "b", "d"]


class TestDiscoverEvents:
    async def test_merges_regions(self):
        seen: list[httpx.Request] = []
        shared = tm_event("shared", date_time="2025-05-10T19:00:00Z")
        source = source_for(
            {
                "GB": httpx.Response(200, json=tm_page(tm_event("gb-1", date_time="2025-06-01T19:00:00Z"), shared)),
                "IE": httpx.Response(200, json=tm_page(shared, tm_event("ie-1", date_time="2025-04-01T19:00:00Z"))),
            },
            seen,
        )

        events = await source.discover_events([GB, IE], now=NOW)

        assert [e.id for e in events] == ["ie-1", "shared", "gb-1"]
        assert len(seen) == 2
        await source.aclose()

    async def test_query_parameters_without_location(self):
        seen: list[httpx.Request] = []
        source = source_for({"GB": httpx.Response(200, json=tm_page())}, seen)

        await source.discover_events([GB], now=NOW)

        params = seen[0].url.params
        assert seen[0].url.path == "/discovery/v2/events.json"
        assert params["apikey"] == "tm-key"
        assert params["countryCode"] == "GB"
        assert params["size"] == "50"
        assert params["sort"] == "date,asc"
        assert params["startDateTime"] == "2025-03-01T12:00:00Z"
        assert "geoPoint" not in params
        assert "radius" not in params

    async def test_query_parameters_with_location(self):
        seen: list[httpx.Request] = []
        source = source_for({"GB": httpx.Response(200, json=tm_page())}, seen)

        await source.discover_events([GB], latitude=51.5, longitude=-0.12, now=NOW)

        params = seen[0].url.params
        assert params["geoPoint"] == "51.5,-0.12"
        assert params["radius"] == "300"
        assert params["unit"] == "miles"

    async def test_requires_regions(self):
        source = source_for({})
        with pytest.raises(ValueError):
            await source.discover_events([])

    async def test_requires_both_coordinates(self):
        source = source_for({})
        with pytest.raises(ValueError):
            await source.discover_events([GB], latitude=51.5)

    async def test_empty_page_yields_no_events(self):
        source = source_for({"GB": httpx.Response(200, json={"page": {"totalElements": 0}})})
        assert await source.discover_events([GB]) == []


class TestSearchEvents:
    async def test_keyword_per_region(self):
        seen: list[httpx.Request] = []
        source = source_for(
            {
                "GB": httpx.Response(200, json=tm_page(tm_event("1", local_date="2025-07-01"))),
                "US": httpx.Response(200, json=tm_page(tm_event("2", local_date="2025-06-01"))),
            },
            seen,
        )

        events = await source.search_events("radiohead", [GB, US])

        assert [e.id for e in events] == ["2", "1"]
        assert {r.url.params["keyword"] for r in seen} == {"radiohead"}
        assert "geoPoint" not in seen[0].url.params

    async def test_blank_keyword(self):
        with pytest.raises(ValueError):
            await source_for({}).search_events("  ", [GB])


class TestErrors:
    async def test_unauthorized_is_invalid_api_key(self):
        source = source_for(
            {
                "GB": httpx.Response(401, json={"fault": {"faultstring": "Invalid ApiKey"}}),
                "IE": httpx.Response(200, json=tm_page(tm_event("1"))),
            }
        )
        with pytest.raises(InvalidApiKeyError):
            await source.discover_events([GB, IE])

    async def test_failed_region_is_dropped(self):
        source = source_for(
            {
                "GB": httpx.Response(500, json={"message": "boom"}),
                "IE": httpx.Response(200, json=tm_page(tm_event("ie-1"))),
            }
        )
        events = await source.discover_events([GB, IE])
        assert [e.id for e in events] == ["ie-1"]

    async def test_all_regions_failing_raises_first_error(self):
        source = source_for(
            {
                "GB": httpx.Response(429, json={"errors": [{"code": "rate", "detail": "Rate limit exceeded"}]}),
                "IE": httpx.Response(503, text="unavailable"),
            }
        )
        with pytest.raises(ApiError) as excinfo:
            await source.discover_events([GB, IE])
        assert excinfo.value.message == "Rate limit exceeded"
        assert excinfo.value.status_code == 429

    async def test_malformed_json(self):
        source = source_for({"GB": httpx.Response(200, text="{not json")})
        with pytest.raises(InvalidResponseError):
            await source.discover_events([GB])

    async def test_unexpected_shape(self):
        source = source_for({"GB": httpx.Response(200, json={"_embedded": {"events": "nope"}})})
        with pytest.raises(InvalidResponseError):
            await source.discover_events([GB])

    async def test_transport_failure(self):
        source = source_for({"GB": httpx.ConnectError("offline")})
        with pytest.raises(NetworkError):
            await source.discover_events([GB])


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"error": "Bad things"}, "Bad things"),
        ({"error": {"message": "Nested"}}, "Nested"),
        ({"message": "Plain message"}, "Plain message"),
        ({"errors": [{"detail": "Detailed"}]}, "Detailed"),
        ({"errors": ["Just text"]}, "Just text"),
        ({"fault": {"faultstring": "Gateway"}}, "Gateway"),
        ({"unrelated": True}, "HTTP 418"),
        (None, "HTTP 418"),
        (["not", "a", "dict"], "HTTP 418"),
    ],
)
def test_extract_error_message(body, expected):
    assert extract_error_message(body, 418) == expected
