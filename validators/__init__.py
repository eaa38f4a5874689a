"""Parameter value validation."""

from .parameter_rules import validate_value
from .types import InvalidReason, Rules, ValidationResult

__all__ = [
    "validate_value",
    "Rules",
    "ValidationResult",
    "InvalidReason",
]
