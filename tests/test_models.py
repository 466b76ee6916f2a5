from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import NOW
from gigbuddy.models import Event, Gig, OAuthCredential, PlaylistRequest, Region
from gigbuddy.regions import ALL_REGIONS, DEFAULT_REGION, region_for


def credential_expiring_in(delta: timedelta) -> OAuthCredential:
    return OAuthCredential(access_token="a", refresh_token="r", expires_at=NOW + delta)


class TestOAuthCredential:
    def test_within_safety_margin_is_expired(self):
        assert credential_expiring_in(timedelta(minutes=4)).is_expired(NOW)

    def test_outside_safety_margin_is_valid(self):
        assert not credential_expiring_in(timedelta(minutes=10)).is_expired(NOW)

    def test_exactly_at_margin_is_expired(self):
        assert credential_expiring_in(timedelta(minutes=5)).is_expired(NOW)

    def test_past_expiry_is_expired(self):
        assert credential_expiring_in(timedelta(seconds=-1)).is_expired(NOW)

    def test_from_token_response(self):
        credential = OAuthCredential.from_token_response(
            {"access_token": "new", "refresh_token": "r2", "expires_in": 3600}, now=NOW
        )
        assert credential.access_token == "new"
        assert credential.refresh_token == "r2"
        assert credential.expires_at == NOW + timedelta(hours=1)

    def test_from_token_response_keeps_previous_refresh_token(self):
        credential = OAuthCredential.from_token_response(
            {"access_token": "new", "expires_in": 60}, previous_refresh_token="old-r", now=NOW
        )
        assert credential.refresh_token == "old-r"

    def test_from_token_response_requires_some_refresh_token(self):
        with pytest.raises(KeyError):
            OAuthCredential.from_token_response({"access_token": "new", "expires_in": 60}, now=NOW)


class TestRegions:
    def test_catalog_ids_are_unique(self):
        assert len({r.id for r in ALL_REGIONS}) == len(ALL_REGIONS) == 16

    def test_lookup_is_case_insensitive(self):
        assert region_for("gb") == DEFAULT_REGION
        assert region_for("XX") is None

    def test_equality_by_id(self):
        assert Region(id="GB", name="Britain", country_code="GB") == DEFAULT_REGION
        assert len({DEFAULT_REGION, Region(id="GB", name="Other", country_code="GB")}) == 1


class TestEvent:
    def test_equality_by_provider_id(self):
        a = Event(id="1", name="A", venue="X")
        b = Event(id="1", name="B", venue="Y", city="Z")
        assert a == b
        assert len({a, b}) == 1

    def test_location(self):
        assert Event(id="1", name="A", venue="Hall", city="Leeds").location == "Hall, Leeds"
        assert Event(id="1", name="A", venue="Hall").location == "Hall"


class TestSetlist:
    def test_songs_flatten_in_order(self, make_setlist):
        setlist = make_setlist(["Airbag", "Lucky"], encore_songs=["Creep"])
        assert [s.name for s in setlist.songs] == ["Airbag", "Lucky", "Creep"]

    def test_set_display_names(self, make_setlist):
        setlist = make_setlist(["Airbag"], encore_songs=["Creep"])
        assert [s.display_name for s in setlist.sets.items] == ["Main Set", "Encore 1"]

    def test_formatted_date(self, make_setlist):
        setlist = make_setlist(["Airbag"])
        assert setlist.event_day == date(2023, 6, 5)
        assert setlist.formatted_date == "Jun 5, 2023"

    def test_unparseable_date_falls_back_to_raw(self, make_setlist):
        setlist = make_setlist(["Airbag"]).model_copy(update={"event_date": "sometime"})
        assert setlist.event_day is None
        assert setlist.formatted_date == "sometime"


class TestPlaylistRequest:
    def test_from_setlist(self, make_setlist):
        request = PlaylistRequest.from_setlist(make_setlist(["Airbag", "", "Lucky"], ["Creep"]))
        assert request.song_names == ["Airbag", "Lucky", "Creep"]
        assert request.search_terms == ["Airbag Radiohead", "Lucky Radiohead", "Creep Radiohead"]
        assert request.name == "GigBuddy: Radiohead at Royal Albert Hall"
        assert request.description == "Setlist from Jun 5, 2023 at Royal Albert Hall, London"


class TestGig:
    def test_from_event(self):
        start = datetime(2025, 6, 1, 19, 30, tzinfo=timezone.utc)
        event = Event(
            id="tm-1",
            name="Radiohead",
            start=start,
            venue="O2 Arena",
            city="London",
            url="https://tm.example/1",
            image_url="https://img.example/1.jpg",
        )
        gig = Gig.from_event(event)
        assert gig.date == start
        assert gig.location == "O2 Arena, London"
        assert gig.ticketmaster_id == "tm-1"
        assert gig.rating == 3
        assert gig.ticket_count == 0

    def test_naive_date_is_taken_as_utc(self):
        gig = Gig(date=datetime(2030, 5, 1, 20), artist="A", location="L")
        assert gig.date == datetime(2030, 5, 1, 20, tzinfo=timezone.utc)

    def test_offset_date_is_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        gig = Gig(date=datetime(2030, 5, 1, 22, tzinfo=plus_two), artist="A", location="L")
        assert gig.date.utcoffset() == timedelta(0)
        assert gig.date.hour == 20

    def test_assigned_date_is_normalized(self):
        gig = Gig(date=NOW, artist="A", location="L")
        gig.date = datetime(2030, 5, 1, 20)
        assert gig.date.tzinfo is timezone.utc

    def test_serializes_with_camel_case(self):
        gig = Gig(date=NOW, artist="A", location="L", ticketmaster_id="x")
        dumped = gig.model_dump(by_alias=True)
        assert "ticketmasterId" in dumped
        assert "ticketCount" in dumped
