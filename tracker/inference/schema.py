"""Strict schema for listing refresh inference payloads."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.listing import ListingStatus
from tracker.core.errors import InvalidInferenceResponse


class ListingInference(BaseModel):
    """Price and availability read off a listing page."""

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore", frozen=True)

    price: float
    currency: str
    is_available: bool = Field(alias="isAvailable")
    is_sold: bool = Field(default=False, alias="isSold")

    @field_validator("price")
    @classmethod
    def _non_negative_price(cls, value: float) -> float:
        if math.isnan(value) or value < 0:
            return 0.0
        return value

    @field_validator("currency")
    @classmethod
    def _normalise_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def status(self) -> ListingStatus:
        if self.is_sold or not self.is_available:
            return ListingStatus.ENDED
        return ListingStatus.ACTIVE


def parse_inference(raw: str | bytes | None, *, model: str | None = None) -> ListingInference:
    """Validate a raw JSON payload, raising ``InvalidInferenceResponse`` on any mismatch."""
    if not raw:
        raise InvalidInferenceResponse("No response from AI", model=model)
    try:
        return ListingInference.model_validate_json(raw)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or None
        message = f"AI response is invalid: {first.get('msg', 'malformed payload')}"
        if location:
            message = f"AI response has invalid {location}: {first.get('msg', 'malformed value')}"
        raise InvalidInferenceResponse(message, field=location, model=model) from exc


REFRESH_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "price": {"type": "number"},
        "currency": {"type": "string"},
        "isAvailable": {"type": "boolean"},
        "isSold": {"type": "boolean"},
    },
    "required": ["price", "currency", "isAvailable"],
}


__all__ = ["ListingInference", "parse_inference", "REFRESH_RESPONSE_SCHEMA"]
