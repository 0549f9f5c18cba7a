"""
schemas/place.py
----------------
Input value types for itinerary synthesis: places, confirmed schedules and the
time blocks a day is divided into.

Place and ConfirmedSchedule are validated on construction; only genuine
contract violations raise (blank identifiers, out-of-range coordinates,
end before start). Thin optional data (no rating, no coordinates) is accepted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from modules.validation.ingestion_validator import InputValidationError, coordinate_errors


# ── Place ─────────────────────────────────────────────────────────────────────

class PlaceSource(str, Enum):
    """Where a place entered the pipeline."""
    CANDIDATE      = "candidate"        # raw pool entry (Stage 1)
    USER_SELECTED  = "user_selected"    # user must-visit
    AI_RECOMMENDED = "ai_recommended"   # Stage 2 filler
    CONFIRMED      = "confirmed"        # anchor derived from a ConfirmedSchedule


@dataclass(frozen=True)
class Place:
    """
    A visitable place. Immutable once constructed; stages that need a
    different source tag build a copy with with_source().
    """
    place_id:     str
    name:         str
    category:     str = ""
    latitude:     Optional[float] = None
    longitude:    Optional[float] = None
    address:      str = ""
    rating:       Optional[float] = None     # 0–5
    review_count: Optional[int] = None       # >= 0
    price_level:  Optional[int] = None
    open_now:     Optional[bool] = None
    source:       PlaceSource = PlaceSource.CANDIDATE
    region:       str = ""
    fixed_time:   Optional[datetime] = None  # set on CONFIRMED anchors

    def __post_init__(self) -> None:
        if not self.place_id or not str(self.place_id).strip():
            raise InputValidationError("ERROR_MISSING_PLACE_ID", f"place {self.name!r} has no place_id")
        errors = coordinate_errors(self.latitude, self.longitude)
        if errors:
            raise InputValidationError("ERROR_INVALID_COORDINATES", [f"place {self.place_id}: {e}" for e in errors])

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def with_source(self, source: PlaceSource) -> "Place":
        return self if self.source is source else replace(self, source=source)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["source"] = self.source.value
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Place":
        """Build a Place from a snake_case or camelCase record."""
        r = normalize_place_record(data)
        return cls(
            place_id=str(r["place_id"] or ""),
            name=str(r["name"] or ""),
            category=str(r["category"] or ""),
            latitude=float(r["latitude"]) if r["latitude"] is not None else None,
            longitude=float(r["longitude"]) if r["longitude"] is not None else None,
            address=str(r["address"] or ""),
            rating=float(r["rating"]) if r["rating"] is not None else None,
            review_count=int(r["review_count"]) if r["review_count"] is not None else None,
            price_level=r["price_level"],
            open_now=r["open_now"],
            source=PlaceSource(r["source"] or PlaceSource.CANDIDATE),
            region=str(r["region"] or ""),
            fixed_time=r["fixed_time"],
        )


_RECORD_KEYS: dict[str, tuple[str, ...]] = {
    "place_id":     ("place_id", "placeId", "id"),
    "name":         ("name",),
    "category":     ("category",),
    "latitude":     ("latitude", "lat"),
    "longitude":    ("longitude", "lon", "lng"),
    "address":      ("address",),
    "rating":       ("rating",),
    "review_count": ("review_count", "reviewCount"),
    "price_level":  ("price_level", "priceLevel"),
    "open_now":     ("open_now", "openNow"),
    "source":       ("source",),
    "region":       ("region",),
    "fixed_time":   ("fixed_time", "fixedTime"),
}


def normalize_place_record(data: dict[str, Any]) -> dict[str, Any]:
    """Map a snake_case or camelCase place record onto Place field names."""
    out: dict[str, Any] = {}
    for field_name, keys in _RECORD_KEYS.items():
        out[field_name] = next((data[k] for k in keys if data.get(k) is not None), None)
    return out


# ── Time blocks ───────────────────────────────────────────────────────────────

class TimeBlock(Enum):
    """Named segments of a day with their [start, end) clock hours."""
    BREAKFAST          = ("breakfast", 7, 9)
    MORNING_ACTIVITY   = ("morning_activity", 9, 12)
    LUNCH              = ("lunch", 12, 14)
    AFTERNOON_ACTIVITY = ("afternoon_activity", 14, 18)
    DINNER             = ("dinner", 18, 20)
    EVENING_ACTIVITY   = ("evening_activity", 20, 22)

    def __init__(self, label: str, start_hour: int, end_hour: int) -> None:
        self.label = label
        self.start_hour = start_hour
        self.end_hour = end_hour

    def contains_hour(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour

    @classmethod
    def from_hour(cls, hour: int) -> "TimeBlock":
        """
        Map a clock hour to its block. Hours before 07:00 fall into BREAKFAST
        and hours from 22:00 on into EVENING_ACTIVITY.
        """
        for block in cls:
            if block.contains_hour(hour):
                return block
        return cls.BREAKFAST if hour < cls.BREAKFAST.start_hour else cls.EVENING_ACTIVITY


# ── Confirmed schedules ───────────────────────────────────────────────────────

class DocumentType(str, Enum):
    FLIGHT_RESERVATION     = "flight_reservation"
    HOTEL_RESERVATION      = "hotel_reservation"
    TRAIN_TICKET           = "train_ticket"
    EVENT_TICKET           = "event_ticket"
    RESTAURANT_RESERVATION = "restaurant_reservation"
    UNKNOWN                = "unknown"

    @property
    def priority(self) -> int:
        """1 = hard travel logistics, 2 = ticketed bookings, 3 = anything else."""
        return _DOCUMENT_PRIORITY[self]

    @property
    def category(self) -> str:
        return _DOCUMENT_CATEGORY[self]


_DOCUMENT_PRIORITY: dict[DocumentType, int] = {
    DocumentType.FLIGHT_RESERVATION:     1,
    DocumentType.HOTEL_RESERVATION:      1,
    DocumentType.TRAIN_TICKET:           1,
    DocumentType.EVENT_TICKET:           2,
    DocumentType.RESTAURANT_RESERVATION: 2,
    DocumentType.UNKNOWN:                3,
}

_DOCUMENT_CATEGORY: dict[DocumentType, str] = {
    DocumentType.FLIGHT_RESERVATION:     "flight",
    DocumentType.HOTEL_RESERVATION:      "accommodation",
    DocumentType.TRAIN_TICKET:           "transport",
    DocumentType.EVENT_TICKET:           "event",
    DocumentType.RESTAURANT_RESERVATION: "restaurant",
    DocumentType.UNKNOWN:                "other",
}

DEFAULT_SCHEDULE_DURATION = timedelta(hours=1)
EVENT_SCHEDULE_DURATION = timedelta(hours=3)


@dataclass
class ConfirmedSchedule:
    """
    A fixed, non-negotiable calendar entry extracted upstream from a travel
    document. end_time defaults to start_time + 1h.
    """
    title:         str
    start_time:    datetime
    end_time:      Optional[datetime] = None
    location:      str = ""
    document_type: DocumentType = DocumentType.UNKNOWN
    address:       str = ""
    latitude:      Optional[float] = None
    longitude:     Optional[float] = None
    schedule_id:   str = ""
    details:       dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise InputValidationError("ERROR_INVALID_SCHEDULE", "title must not be empty")
        if self.start_time is None:
            raise InputValidationError("ERROR_INVALID_SCHEDULE", f"{self.title!r} has no start_time")
        if self.end_time is None:
            self.end_time = self.start_time + DEFAULT_SCHEDULE_DURATION
        if self.end_time < self.start_time:
            raise InputValidationError(
                "ERROR_INVALID_SCHEDULE",
                f"{self.title!r} ends ({self.end_time.isoformat()}) before it starts "
                f"({self.start_time.isoformat()})",
            )
        errors = coordinate_errors(self.latitude, self.longitude)
        if errors:
            raise InputValidationError("ERROR_INVALID_COORDINATES", [f"{self.title!r}: {e}" for e in errors])

    @property
    def fixed(self) -> bool:
        return True

    @property
    def priority(self) -> int:
        return self.document_type.priority

    @property
    def category(self) -> str:
        return self.document_type.category

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def time_block(self) -> TimeBlock:
        return TimeBlock.from_hour(self.start_time.hour)

    def has_time_conflict(self, other: "ConfirmedSchedule") -> bool:
        """True when the two [start, end) windows overlap."""
        return self.start_time < other.end_time and other.start_time < self.end_time

    def to_place(self) -> Optional[Place]:
        """A CONFIRMED anchor for routing, or None when there are no coordinates."""
        if not self.has_coordinates:
            return None
        key = self.schedule_id or f"{self.document_type.value}:{self.start_time.isoformat()}"
        return Place(
            place_id=f"confirmed:{key}",
            name=self.title,
            category=self.category,
            latitude=self.latitude,
            longitude=self.longitude,
            address=self.address or self.location,
            source=PlaceSource.CONFIRMED,
            fixed_time=self.start_time,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedule_id":   self.schedule_id,
            "title":         self.title,
            "start_time":    self.start_time,
            "end_time":      self.end_time,
            "location":      self.location,
            "document_type": self.document_type.value,
            "address":       self.address,
            "latitude":      self.latitude,
            "longitude":     self.longitude,
            "priority":      self.priority,
            "fixed":         True,
        }

    # ── factories ─────────────────────────────────────────────────────────

    @classmethod
    def flight(cls, flight_number: str, departure: datetime, arrival: Optional[datetime] = None,
               origin: str = "", destination: str = "", **kwargs: Any) -> "ConfirmedSchedule":
        title = f"Flight {flight_number}"
        if origin and destination:
            title += f" {origin} → {destination}"
        return cls(title=title, start_time=departure, end_time=arrival, location=origin,
                   document_type=DocumentType.FLIGHT_RESERVATION, **kwargs)

    @classmethod
    def hotel(cls, hotel_name: str, check_in: datetime, check_out: Optional[datetime] = None,
              **kwargs: Any) -> "ConfirmedSchedule":
        return cls(title=f"Check-in: {hotel_name}", start_time=check_in, end_time=check_out,
                   location=hotel_name, document_type=DocumentType.HOTEL_RESERVATION, **kwargs)

    @classmethod
    def event(cls, event_name: str, start: datetime, venue: str = "", **kwargs: Any) -> "ConfirmedSchedule":
        return cls(title=event_name, start_time=start, end_time=start + EVENT_SCHEDULE_DURATION,
                   location=venue, document_type=DocumentType.EVENT_TICKET, **kwargs)

    @classmethod
    def train(cls, train_number: str, departure: datetime, arrival: Optional[datetime] = None,
              origin: str = "", destination: str = "", **kwargs: Any) -> "ConfirmedSchedule":
        title = f"Train {train_number}"
        if origin and destination:
            title += f" {origin} → {destination}"
        return cls(title=title, start_time=departure, end_time=arrival, location=origin,
                   document_type=DocumentType.TRAIN_TICKET, **kwargs)
