"""Intake folder handling: candidate scanning and readiness detection."""

from .readiness import has_temp_suffix, is_ready
from .scan import next_candidate

__all__ = [
    "has_temp_suffix",
    "is_ready",
    "next_candidate",
]
