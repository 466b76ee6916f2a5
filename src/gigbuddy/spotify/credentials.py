"""Persistence of the single Spotify OAuth credential."""

from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from ..logging import get_logger
from ..models import OAuthCredential
from ..storage import Storage

logger = get_logger(__name__)


@runtime_checkable
class CredentialStore(Protocol):
    """Holds at most one credential (single-user)."""

    def load(self) -> OAuthCredential | None:
        """Return the stored credential if present and valid."""
        ...

    def save(self, credential: OAuthCredential) -> None:
        """Replace the stored credential."""
        ...

    def clear(self) -> None:
        """Forget the stored credential."""
        ...


class MemoryCredentialStore:
    """In-process credential store."""

    def __init__(self, credential: OAuthCredential | None = None):
        self._credential = credential

    def load(self) -> OAuthCredential | None:
        return self._credential

    def save(self, credential: OAuthCredential) -> None:
        self._credential = credential

    def clear(self) -> None:
        self._credential = None


class SqliteCredentialStore:
    """Credential store backed by the gigbuddy Storage database."""

    KEY = "spotifyCredential"

    def __init__(self, storage: Storage):
        self.storage = storage

    def load(self) -> OAuthCredential | None:
        blob = self.storage.get(self.KEY)
        if blob is None:
            return None
        try:
            return OAuthCredential.model_validate_json(blob)
        except ValidationError as e:
            logger.warning("stored_credential_invalid", error_count=e.error_count())
            return None

    def save(self, credential: OAuthCredential) -> None:
        self.storage.set(self.KEY, credential.model_dump_json())
        logger.debug("credential_saved", expires_at=credential.expires_at.isoformat())

    def clear(self) -> None:
        self.storage.delete(self.KEY)
        logger.info("credential_cleared")
