"""
schemas/context.py
------------------
SynthesisContext — the explicit per-request value the caller threads through
every stage. The core keeps no session table of its own; whatever conversation
state produced these fields lives with the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import config
from modules.validation.ingestion_validator import require_valid, validate_context


@dataclass
class SynthesisContext:
    thread_id:      str
    destinations:   list[str] = field(default_factory=list)
    trip_days:      int = 1
    styles:         list[str] = field(default_factory=list)      # e.g. ["culture", "foodie"]
    start_date:     Optional[date] = None
    transport_mode: str = config.DEFAULT_TRANSPORT_MODE

    @property
    def regions(self) -> list[str]:
        """Destinations with blanks and duplicates removed, order kept."""
        seen: set[str] = set()
        out: list[str] = []
        for d in self.destinations:
            name = (d or "").strip()
            if name and name not in seen:
                seen.add(name)
                out.append(name)
        return out

    def validate(self) -> "SynthesisContext":
        """Raise InputValidationError on a malformed request; returns self."""
        require_valid(validate_context(self.to_dict()))
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "thread_id":      self.thread_id,
            "destinations":   list(self.destinations),
            "trip_days":      self.trip_days,
            "styles":         list(self.styles),
            "start_date":     self.start_date.isoformat() if self.start_date else None,
            "transport_mode": self.transport_mode,
        }
