"""
modules/validation package — input-contract guards at the stage boundaries.
"""
from modules.validation.ingestion_validator import (
    InputValidationError,
    ValidationResult,
    coordinate_errors,
    validate_place,
    validate_confirmed_schedule,
    validate_context,
    require_valid,
    filter_valid,
)

__all__ = [
    "InputValidationError",
    "ValidationResult",
    "coordinate_errors",
    "validate_place",
    "validate_confirmed_schedule",
    "validate_context",
    "require_valid",
    "filter_valid",
]
