"""Price observation model definition."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


@dataclass(slots=True, frozen=True)
class PricePoint:
    date: str
    price: float
    currency: str

    def timestamp(self) -> datetime:
        parsed = parse_iso8601(self.date)
        if parsed is None:
            return datetime.fromtimestamp(0, tz=timezone.utc)
        return parsed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "price": self.price,
            "currency": self.currency,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PricePoint":
        date_raw = payload.get("date")
        if not isinstance(date_raw, str) or parse_iso8601(date_raw) is None:
            raise ValueError("date is required for PricePoint")
        return cls(
            date=date_raw,
            price=float(payload.get("price", 0) or 0),
            currency=str(payload.get("currency", "") or ""),
        )


def parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        cleaned = value.replace("Z", "+00:00")
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = ["PricePoint", "parse_iso8601"]
