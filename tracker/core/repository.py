"""Local JSON repository for tracked listings."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from models.listing import Listing
from tracker.core.errors import PersistenceError
from tracker.core.state import atomic_write_json, read_json
from tracker.utils.logger import get_logger

log = get_logger(__name__)


class ListingRepository:
    """Persist listings as a single JSON document, keyed by listing id."""

    def __init__(self, path: Path | str = Path("data/listings.json")) -> None:
        self.path = Path(path)

    def _load_raw(self) -> Dict[str, Listing]:
        payload = read_json(self.path)
        if payload is None:
            return {}
        if not isinstance(payload, list):
            raise PersistenceError("Listings file is not a list", path=str(self.path), operation="read")

        records: Dict[str, Listing] = {}
        for entry in payload:
            try:
                listing = Listing.from_dict(entry)
            except (ValueError, TypeError, AttributeError) as exc:
                log.warning(f"Skipping malformed listing entry: {exc}")
                continue
            records[listing.id] = listing
        return records

    def _write(self, records: Dict[str, Listing]) -> None:
        atomic_write_json(self.path, [listing.to_dict() for listing in records.values()], prefix="listings_")

    def list_listings(self) -> List[Listing]:
        """Return every stored listing in insertion order."""
        return list(self._load_raw().values())

    def get(self, listing_id: str) -> Optional[Listing]:
        return self._load_raw().get(listing_id)

    def save(self, listing: Listing) -> None:
        """Insert or replace a single listing."""
        records = self._load_raw()
        records[listing.id] = listing
        self._write(records)

    def save_all(self, listings: List[Listing]) -> None:
        records = self._load_raw()
        for listing in listings:
            records[listing.id] = listing
        self._write(records)


__all__ = ["ListingRepository"]
