"""The user's saved gig list: persistence and JSON backup files."""

from datetime import date
from pathlib import Path
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from .errors import GigImportError
from .logging import get_logger
from .models import Gig
from .storage import Storage

logger = get_logger(__name__)

_GIG_LIST = TypeAdapter(list[Gig])


class GigStore:
    """Persists the gig list as one JSON blob."""

    KEY = "savedGigs"

    def __init__(self, storage: Storage):
        self.storage = storage

    def load(self) -> list[Gig]:
        blob = self.storage.get(self.KEY)
        if blob is None:
            return []
        try:
            return _GIG_LIST.validate_json(blob)
        except ValidationError as e:
            logger.error("saved_gigs_invalid", error_count=e.error_count())
            return []

    def save(self, gigs: list[Gig]) -> None:
        self.storage.set(self.KEY, _GIG_LIST.dump_json(gigs, by_alias=True).decode())

    def clear(self) -> None:
        self.storage.delete(self.KEY)


class GigLibrary:
    """In-memory view of the saved gigs, written through to a GigStore."""

    def __init__(self, store: GigStore):
        self.store = store
        self.gigs: list[Gig] = store.load()

    def _save(self) -> None:
        self.store.save(self.gigs)

    def _is_duplicate(self, gig: Gig) -> bool:
        for existing in self.gigs:
            if gig.ticketmaster_id and existing.ticketmaster_id:
                if gig.ticketmaster_id == existing.ticketmaster_id:
                    return True
                continue
            # Manual entries: same artist, place and day
            if (
                existing.artist == gig.artist
                and existing.location == gig.location
                and existing.date.date() == gig.date.date()
            ):
                return True
        return False

    def add(self, gig: Gig) -> bool:
        """Add a gig unless an equivalent one is already saved."""
        if self._is_duplicate(gig):
            logger.debug("gig_duplicate_skipped", artist=gig.artist)
            return False
        self.gigs.append(gig)
        self._save()
        return True

    def update(self, gig: Gig) -> bool:
        for index, existing in enumerate(self.gigs):
            if existing.id == gig.id:
                self.gigs[index] = gig
                self._save()
                return True
        return False

    def delete(self, gig_id: UUID) -> bool:
        remaining = [gig for gig in self.gigs if gig.id != gig_id]
        if len(remaining) == len(self.gigs):
            return False
        self.gigs = remaining
        self._save()
        return True

    def delete_all(self) -> None:
        self.gigs = []
        self._save()

    def delete_future(self, today: date | None = None) -> int:
        """Remove gigs from today onwards. Returns how many were removed."""
        today = today or date.today()
        before = len(self.gigs)
        self.gigs = [gig for gig in self.gigs if gig.date.date() < today]
        self._save()
        return before - len(self.gigs)

    def upcoming(self, today: date | None = None) -> list[Gig]:
        today = today or date.today()
        return sorted((g for g in self.gigs if g.date.date() >= today), key=lambda g: g.date)

    def past(self, today: date | None = None) -> list[Gig]:
        """Gigs before today, most recent first."""
        today = today or date.today()
        return sorted(
            (g for g in self.gigs if g.date.date() < today),
            key=lambda g: g.date,
            reverse=True,
        )

    def export_json(self, directory: Path, today: date | None = None) -> Path:
        """Write all gigs to a dated backup file and return its path."""
        today = today or date.today()
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"gigbuddy-backup-{today.isoformat()}.json"
        path.write_bytes(_GIG_LIST.dump_json(self.gigs, by_alias=True, indent=2))
        logger.info("gigs_exported", path=str(path), count=len(self.gigs))
        return path

    def import_json(self, path: Path) -> int:
        """Merge gigs from a backup file, skipping ids already saved.

        Returns:
            Number of gigs imported

        Raises:
            GigImportError: the file is unreadable or not a gig list
        """
        try:
            imported = _GIG_LIST.validate_json(path.read_bytes())
        except OSError as e:
            raise GigImportError(f"Unable to read {path}") from e
        except ValidationError as e:
            raise GigImportError(f"{path} contains invalid data") from e

        known = {gig.id for gig in self.gigs}
        added = 0
        for gig in imported:
            if gig.id not in known:
                self.gigs.append(gig)
                known.add(gig.id)
                added += 1

        self._save()
        logger.info("gigs_imported", path=str(path), imported=added, skipped=len(imported) - added)
        return added
