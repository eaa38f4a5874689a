"""Types and models for parameter value validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class InvalidReason(Enum):
    """Enumerated error codes for parameter value validation failures."""

    MULTIPLE_NOT_ALLOWED = "multiple_not_allowed"
    UNKNOWN_CANDIDATE = "unknown_candidate"
    BELOW_MINIMUM = "below_minimum"
    ABOVE_MAXIMUM = "above_maximum"
    WRONG_VALUE_TYPE = "wrong_value_type"
    KIND_MISMATCH = "kind_mismatch"
    NOT_FINITE = "not_finite"


@dataclass
class Rules:
    """Switches for the value checks."""

    # a join policy lets several selected values collapse into one string
    allow_multiple: bool = False
    check_candidates: bool = True
    check_bounds: bool = True
    # the field was turned into a selection by an override or a join
    accept_selection: bool = False


@dataclass
class ValidationResult:
    valid: bool
    reasons: list[InvalidReason] = field(default_factory=list)
    detail: str | None = None
