"""Shared fixtures: settings, fake payloads and fake providers."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from gigbuddy.config import Settings
from gigbuddy.models import OAuthCredential, Setlist

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        ticketmaster_api_key="tm-key",
        setlist_fm_api_key="sfm-key",
        spotify_client_id="client-id",
        spotify_client_secret="client-secret",
        data_path=tmp_path / "gigbuddy.db",
        _env_file=None,
    )


@pytest.fixture
def fresh_credential() -> OAuthCredential:
    return OAuthCredential(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=NOW + timedelta(hours=1),
    )


@pytest.fixture
def expired_credential() -> OAuthCredential:
    return OAuthCredential(
        access_token="access-old",
        refresh_token="refresh-old",
        expires_at=NOW - timedelta(minutes=1),
    )


def tm_event(
    event_id: str,
    name: str = "Some Band",
    date_time: str | None = None,
    local_date: str | None = None,
    venue: str | None = "The Hall",
    city: str | None = "London",
    segment: str | None = "Music",
) -> dict[str, Any]:
    """A Ticketmaster event payload."""
    event: dict[str, Any] = {
        "id": event_id,
        "name": name,
        "url": f"https://ticketmaster.example/{event_id}",
        "images": [{"url": f"https://img.example/{event_id}.jpg", "width": 640, "height": 360}],
        "dates": {"start": {}},
    }
    if date_time:
        event["dates"]["start"]["dateTime"] = date_time
    if local_date:
        event["dates"]["start"]["localDate"] = local_date
    if venue is not None:
        venue_payload: dict[str, Any] = {"name": venue, "address": {"line1": "1 Main St"}}
        if city is not None:
            venue_payload["city"] = {"name": city}
        event["_embedded"] = {"venues": [venue_payload]}
    if segment is not None:
        event["classifications"] = [{"segment": {"name": segment}}]
    return event


def tm_page(*events: dict[str, Any]) -> dict[str, Any]:
    body: dict[str, Any] = {"page": {"size": 50, "totalElements": len(events), "totalPages": 1, "number": 0}}
    if events:
        body["_embedded"] = {"events": list(events)}
    return body


def setlist_payload(song_names: list[str], encore_songs: list[str] | None = None) -> dict[str, Any]:
    sets = [{"song": [{"name": name} for name in song_names]}]
    if encore_songs:
        sets.append({"encore": 1, "song": [{"name": name} for name in encore_songs]})
    return {
        "id": "63de4613",
        "versionId": "7be1aaa0",
        "eventDate": "05-06-2023",
        "artist": {"mbid": "b10bbbfc", "name": "Radiohead", "sortName": "Radiohead"},
        "venue": {
            "id": "6bd6ca6e",
            "name": "Royal Albert Hall",
            "city": {
                "id": "2643743",
                "name": "London",
                "coords": {"lat": 51.5, "long": -0.12},
                "country": {"code": "GB", "name": "United Kingdom"},
            },
        },
        "sets": {"set": sets},
        "url": "https://www.setlist.fm/setlist/radiohead/2023/royal-albert-hall-63de4613.html",
    }


@pytest.fixture
def make_setlist():
    def factory(song_names: list[str], encore_songs: list[str] | None = None) -> Setlist:
        return Setlist.model_validate(setlist_payload(song_names, encore_songs))

    return factory
