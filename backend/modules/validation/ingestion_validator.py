"""
modules/validation/ingestion_validator.py
------------------------------------------
Input-contract guards applied at the stage boundaries of the synthesis core.

Only genuine contract violations are errors here; thin or missing optional
data (no rating, no reviews, no coordinates, empty category) is accepted and
degrades gracefully further down the pipeline.

  Place:
    ✓ Non-empty place_id and name
    ✓ Latitude in [-90, 90] and longitude in [-180, 180] when present
    ✓ Coordinates either both present or both absent
    ✓ Rating in [0, 5] and review_count >= 0 when present

  Confirmed schedule:
    ✓ Non-empty title
    ✓ start_time present
    ✓ end_time >= start_time
    ✓ Coordinates in range when present

  Synthesis context (trip request):
    ✓ Non-empty thread_id
    ✓ At least one non-blank destination
    ✓ trip_days >= 1

Usage:
    from modules.validation import validate_place, require_valid

    result = validate_place(place.to_dict())
    if not result.valid:
        print(result.errors)

    require_valid(validate_context(ctx.to_dict()), "ERROR_INVALID_CONTEXT")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


# ── Errors ─────────────────────────────────────────────────────────────────────

class InputValidationError(ValueError):
    """
    Raised for input-contract violations detected at a stage boundary.

    Attributes:
        code:   Stable machine-readable condition, e.g. ERROR_MISSING_DESTINATION.
        errors: Human-readable failure reasons.
    """

    def __init__(self, code: str, errors: list[str] | str) -> None:
        self.code = code
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__(f"{code}: {'; '.join(self.errors)}")


# ── Result dataclass ───────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    """
    Outcome of a single validation run.

    Attributes:
        valid:  True iff there are zero errors.
        errors: Human-readable list of failure reasons.
        record: The input record dict (for logging purposes).
        code:   Condition code of the first failure ("" when valid).
    """
    valid: bool
    errors: list[str] = field(default_factory=list)
    record: dict = field(default_factory=dict, repr=False)
    code: str = ""

    def __bool__(self) -> bool:
        return self.valid


def _result(errors: list[str], codes: list[str], record: dict) -> ValidationResult:
    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        record=record,
        code=codes[0] if codes else "",
    )


def require_valid(result: ValidationResult, code: str | None = None) -> None:
    """Raise InputValidationError when *result* is invalid."""
    if not result.valid:
        raise InputValidationError(code or result.code or "ERROR_INVALID_INPUT", result.errors)


# ── Coordinates ────────────────────────────────────────────────────────────────

def coordinate_errors(lat: Any, lon: Any) -> list[str]:
    """
    Range checks for an optional (lat, lon) pair.

    Both-absent is allowed (the place is simply not routable); one-sided or
    out-of-range coordinates are contract violations.
    """
    if lat is None and lon is None:
        return []
    if lat is None or lon is None:
        return [f"latitude/longitude must be given together (got lat={lat!r}, lon={lon!r})"]
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError):
        return [f"latitude/longitude must be numeric (got lat={lat!r}, lon={lon!r})"]

    errors: list[str] = []
    if not (-90.0 <= lat_f <= 90.0):
        errors.append(f"latitude={lat_f} is outside valid range [-90, 90]")
    if not (-180.0 <= lon_f <= 180.0):
        errors.append(f"longitude={lon_f} is outside valid range [-180, 180]")
    return errors


# ── Place validation ───────────────────────────────────────────────────────────

def validate_place(record: dict[str, Any]) -> ValidationResult:
    """Validate a place record (candidate, user selection, or AI suggestion)."""
    errors: list[str] = []
    codes: list[str] = []

    place_id = record.get("place_id")
    if place_id is None or not str(place_id).strip():
        errors.append("place_id must not be empty or NULL")
        codes.append("ERROR_MISSING_PLACE_ID")

    name = record.get("name")
    if name is None or not str(name).strip():
        errors.append("name must not be empty or NULL")
        codes.append("ERROR_MISSING_PLACE_NAME")

    coord_errors = coordinate_errors(record.get("latitude"), record.get("longitude"))
    if coord_errors:
        errors.extend(coord_errors)
        codes.append("ERROR_INVALID_COORDINATES")

    rating = record.get("rating")
    if rating is not None:
        try:
            r = float(rating)
            if not (0.0 <= r <= 5.0):
                errors.append(f"rating={r} is outside valid range [0, 5]")
                codes.append("ERROR_INVALID_RATING")
        except (TypeError, ValueError):
            errors.append(f"rating={rating!r} must be numeric")
            codes.append("ERROR_INVALID_RATING")

    reviews = record.get("review_count")
    if reviews is not None:
        try:
            if int(reviews) < 0:
                errors.append(f"review_count={reviews} must be >= 0")
                codes.append("ERROR_INVALID_REVIEW_COUNT")
        except (TypeError, ValueError):
            errors.append(f"review_count={reviews!r} must be an integer")
            codes.append("ERROR_INVALID_REVIEW_COUNT")

    return _result(errors, codes, record)


# ── Confirmed schedule validation ──────────────────────────────────────────────

def validate_confirmed_schedule(record: dict[str, Any]) -> ValidationResult:
    """Validate a confirmed (fixed) schedule produced by upstream document parsing."""
    errors: list[str] = []
    codes: list[str] = []

    title = record.get("title")
    if title is None or not str(title).strip():
        errors.append("title must not be empty or NULL")
        codes.append("ERROR_INVALID_SCHEDULE")

    start = record.get("start_time")
    end = record.get("end_time")
    if start is None:
        errors.append("start_time must not be NULL")
        codes.append("ERROR_INVALID_SCHEDULE")
    elif not isinstance(start, datetime):
        errors.append(f"start_time={start!r} must be a datetime")
        codes.append("ERROR_INVALID_SCHEDULE")
    elif end is not None:
        if not isinstance(end, datetime):
            errors.append(f"end_time={end!r} must be a datetime")
            codes.append("ERROR_INVALID_SCHEDULE")
        elif end < start:
            errors.append(f"end_time={end.isoformat()} is before start_time={start.isoformat()}")
            codes.append("ERROR_INVALID_SCHEDULE")

    coord_errors = coordinate_errors(record.get("latitude"), record.get("longitude"))
    if coord_errors:
        errors.extend(coord_errors)
        codes.append("ERROR_INVALID_COORDINATES")

    return _result(errors, codes, record)


# ── Context validation ─────────────────────────────────────────────────────────

def validate_context(record: dict[str, Any]) -> ValidationResult:
    """
    Validate a synthesis request before Stage 1 runs.

    Checks:
      - thread_id: non-empty
      - destinations: at least one non-blank entry
      - trip_days: integer >= 1
    """
    errors: list[str] = []
    codes: list[str] = []

    thread_id = record.get("thread_id")
    if thread_id is None or not str(thread_id).strip():
        errors.append("thread_id must not be empty or NULL")
        codes.append("ERROR_MISSING_THREAD_ID")

    destinations = record.get("destinations") or []
    if not [d for d in destinations if d and str(d).strip()]:
        errors.append("at least one destination is required")
        codes.append("ERROR_MISSING_DESTINATION")

    trip_days = record.get("trip_days")
    try:
        if trip_days is None or int(trip_days) <= 0:
            errors.append(f"trip_days={trip_days!r} must be >= 1")
            codes.append("ERROR_INVALID_TRIP_DAYS")
    except (TypeError, ValueError):
        errors.append(f"trip_days={trip_days!r} must be a positive integer")
        codes.append("ERROR_INVALID_TRIP_DAYS")

    return _result(errors, codes, record)


# ── Batch filter helper ────────────────────────────────────────────────────────

def filter_valid(
    items: list[T],
    validator: Callable[[dict], ValidationResult],
    to_dict: Callable[[T], dict] | None = None,
    log: bool = True,
) -> list[T]:
    """
    Apply a validator to every item in a list, return only the valid ones.

    Args:
        items:     List of items (objects with to_dict(), or dicts).
        validator: One of validate_place / validate_confirmed_schedule.
        to_dict:   Optional callable to convert each item to a dict.
                   If None, items are dicts or expose to_dict().
        log:       If True, log a warning for every rejected record.

    Returns:
        List containing only items that passed validation.
    """
    valid_items: list[T] = []
    rejected = 0

    for item in items:
        if to_dict is not None:
            record_dict = to_dict(item)
        elif isinstance(item, dict):
            record_dict = item
        else:
            record_dict = item.to_dict()  # type: ignore[attr-defined]
        result = validator(record_dict)
        if result.valid:
            valid_items.append(item)
        else:
            rejected += 1
            if log:
                name = record_dict.get("name", record_dict.get("title", "?"))
                logger.warning("Rejected %r: %s", name, "; ".join(result.errors))

    if log and rejected:
        logger.warning(
            "%d/%d records rejected; %d passed.", rejected, len(items), len(valid_items)
        )

    return valid_items
