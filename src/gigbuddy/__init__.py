"""gigbuddy - Concert tracking, event discovery and setlist playlists.

A library that discovers upcoming events on Ticketmaster, fetches historical
setlists from setlist.fm and turns them into Spotify playlists.
"""

from .pipeline import Pipeline

__all__ = ["Pipeline"]
