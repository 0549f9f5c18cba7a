"""
modules/tool_usage/candidate_pool.py
--------------------------------------
Read-only collaborator interfaces the synthesis core consumes, plus in-memory
implementations used by tests and the end-to-end script.

  CandidatePool.query(region, category_keywords, limit) -> list[Place]
      May return fewer than limit; never raises on an empty result.
  ConfirmedScheduleSource.for_thread(thread_id) -> list[ConfirmedSchedule]
      Already-parsed, already-validated fixed events.

The core never locks or mutates either collaborator.
"""

from __future__ import annotations
import logging
from typing import Iterable, Protocol, Sequence

from schemas.place import ConfirmedSchedule, Place

logger = logging.getLogger(__name__)


class CandidatePool(Protocol):
    def query(self, region: str, category_keywords: Sequence[str], limit: int) -> list[Place]:
        ...


class ConfirmedScheduleSource(Protocol):
    def for_thread(self, thread_id: str) -> list[ConfirmedSchedule]:
        ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


def _in_region(place: Place, region: str) -> bool:
    """Region match on the place's region tag, falling back to its address."""
    region_norm = region.strip().lower()
    if not region_norm:
        return False
    if place.region:
        return place.region.strip().lower() == region_norm
    return region_norm in (place.address or "").lower()


class InMemoryCandidatePool:
    """CandidatePool over a fixed list of places, returned in stored order."""

    def __init__(self, places: Iterable[Place] = ()) -> None:
        self._places: list[Place] = list(places)

    def __len__(self) -> int:
        return len(self._places)

    def add(self, place: Place) -> None:
        self._places.append(place)

    def query(self, region: str, category_keywords: Sequence[str], limit: int) -> list[Place]:
        if limit <= 0:
            return []
        keywords = [k.lower() for k in category_keywords if k]
        out: list[Place] = []
        for place in self._places:
            if not _in_region(place, region):
                continue
            text = (place.category or "").lower()
            if keywords and not any(k in text for k in keywords):
                continue
            out.append(place)
            if len(out) >= limit:
                break
        logger.debug("query(%s, %s, %d) -> %d places", region, keywords, limit, len(out))
        return out


class InMemoryScheduleSource:
    """ConfirmedScheduleSource keyed by thread id."""

    def __init__(self, schedules: dict[str, list[ConfirmedSchedule]] | None = None) -> None:
        self._schedules: dict[str, list[ConfirmedSchedule]] = dict(schedules or {})

    def add(self, thread_id: str, schedule: ConfirmedSchedule) -> None:
        self._schedules.setdefault(thread_id, []).append(schedule)

    def for_thread(self, thread_id: str) -> list[ConfirmedSchedule]:
        return list(self._schedules.get(thread_id, []))
