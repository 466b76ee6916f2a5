"""Spotify module initialization."""

from .auth import AuthState, SpotifyAuth
from .client import SpotifyClient
from .consent import ConsentHandler, LocalServerConsent
from .credentials import CredentialStore, MemoryCredentialStore, SqliteCredentialStore

__all__ = [
    "AuthState",
    "ConsentHandler",
    "CredentialStore",
    "LocalServerConsent",
    "MemoryCredentialStore",
    "SpotifyAuth",
    "SpotifyClient",
    "SqliteCredentialStore",
]
