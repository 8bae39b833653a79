"""Inference collaborators for listing refreshes."""

from .history import InferenceCall, InferenceHistory
from .schema import ListingInference, parse_inference

__all__ = ["InferenceCall", "InferenceHistory", "ListingInference", "parse_inference"]
