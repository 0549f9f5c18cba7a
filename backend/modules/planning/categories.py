"""
modules/planning/categories.py
--------------------------------
Static registries shared by the planning stages. Every lookup here is a plain
ordered table resolved by key; adding a category or style means adding a row.

  CATEGORIES              -- fixed category taxonomy, in output order
  CATEGORY_KEYWORDS       -- synonyms used to query the pool and to match a
                             place's free-text category
  STYLE_RULES             -- travel-style tag → place predicate
  CATEGORY_BLOCK_AFFINITY -- category → preferred time block
  BLOCK_CATEGORY_AFFINITY -- time block → categories eligible for AI fill

Keyword matching is case-folded and whole-word: "park" matches "Namsan park"
and "parks" but not "parking garage". Hangul keywords match anywhere, since
Korean compounds are written without spaces.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Optional, Pattern

from schemas.place import Place, TimeBlock

# ── Taxonomy ──────────────────────────────────────────────────────────────────

CATEGORIES: tuple[str, ...] = (
    "attraction",
    "restaurant",
    "cafe",
    "shopping",
    "activity",
    "culture",
    "nature",
    "theme_park",
    "night_view",
    "accommodation",
)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "attraction":    ("attraction", "tourist", "landmark", "sightseeing", "관광"),
    "restaurant":    ("restaurant", "food", "dining", "맛집", "음식", "식당"),
    "cafe":          ("cafe", "coffee", "bakery", "dessert", "카페"),
    "shopping":      ("shopping", "market", "mall", "department", "쇼핑", "시장"),
    "activity":      ("activity", "experience", "spa", "액티비티"),
    "culture":       ("culture", "museum", "heritage", "gallery", "palace", "temple", "문화"),
    "nature":        ("nature", "park", "mountain", "beach", "garden", "자연"),
    "theme_park":    ("theme_park", "theme park", "amusement", "zoo", "aquarium", "테마파크"),
    "night_view":    ("night_view", "night view", "nightlife", "observatory", "야경"),
    "accommodation": ("accommodation", "hotel", "lodging", "hostel", "숙박"),
}


def keyword_pattern(keywords: Iterable[str]) -> Pattern[str]:
    """Compile keywords into one case-insensitive whole-word matcher (plural -s/-es allowed)."""
    words = sorted({k.lower() for k in keywords if k}, key=len, reverse=True)
    latin = [re.escape(w) for w in words if w.isascii()]
    hangul = [re.escape(w) for w in words if not w.isascii()]
    parts: list[str] = []
    if latin:
        parts.append(r"\b(?:%s)(?:e?s)?\b" % "|".join(latin))
    if hangul:
        parts.append("|".join(hangul))
    # An empty keyword list matches nothing
    return re.compile("|".join(parts) if parts else r"(?!)", re.IGNORECASE)


_KEYWORD_PATTERNS: dict[str, Pattern[str]] = {
    key: keyword_pattern(words) for key, words in CATEGORY_KEYWORDS.items()
}


def _pattern_for(category: str) -> Pattern[str]:
    pattern = _KEYWORD_PATTERNS.get(category)
    return pattern if pattern is not None else keyword_pattern((category,))


def matches_category(place: Place, category: str) -> bool:
    """True if the place's category text contains a keyword for *category* as a whole word."""
    text = place.category or ""
    if not text.strip():
        return False
    return _pattern_for(category).search(text) is not None


# Multi-word categories first so "theme park" is not read as nature.
_MATCH_ORDER: tuple[str, ...] = ("theme_park", "night_view") + tuple(
    c for c in CATEGORIES if c not in ("theme_park", "night_view")
)


def normalize_category(raw: Optional[str]) -> Optional[str]:
    """
    Resolve free-text category to a taxonomy key, or None if nothing matches.
    Exact keys win; otherwise the first entry in _MATCH_ORDER with a matching keyword.
    """
    text = (raw or "").strip().lower()
    if not text:
        return None
    if text in CATEGORY_KEYWORDS:
        return text
    for key in _MATCH_ORDER:
        if _KEYWORD_PATTERNS[key].search(text):
            return key
    return None


# ── Travel styles ─────────────────────────────────────────────────────────────

_ACTIVE_WORDS   = keyword_pattern(("activity", "experience", "액티비티", "체험"))
_CULTURE_WORDS  = keyword_pattern(("culture", "museum", "heritage", "traditional", "문화", "전통"))
_FOODIE_WORDS   = keyword_pattern(("restaurant", "food", "맛집", "음식"))
_SHOPPING_WORDS = keyword_pattern(("shopping", "market", "쇼핑", "시장"))


def _text_has(place: Place, pattern: Pattern[str]) -> bool:
    return pattern.search(f"{place.category} {place.name}") is not None


STYLE_RULES: dict[str, Callable[[Place], bool]] = {
    "relaxing": lambda p: (p.rating or 0.0) >= 4.0,
    "active":   lambda p: _text_has(p, _ACTIVE_WORDS),
    "culture":  lambda p: _text_has(p, _CULTURE_WORDS),
    "foodie":   lambda p: _text_has(p, _FOODIE_WORDS),
    "shopping": lambda p: _text_has(p, _SHOPPING_WORDS),
}


def known_styles(styles: Iterable[str]) -> list[str]:
    """Requested style tags that have a rule, lower-cased, order kept."""
    return [s.lower() for s in styles if s and s.lower() in STYLE_RULES]


def matches_styles(place: Place, styles: Iterable[str]) -> bool:
    """
    Inclusive style filter: a place passes if it satisfies at least one
    requested rule. Unknown tags are ignored; with no known tag every place
    passes.
    """
    rules = known_styles(styles)
    if not rules:
        return True
    return any(STYLE_RULES[s](place) for s in rules)


# ── Time-block affinity ───────────────────────────────────────────────────────

DEFAULT_BLOCK = TimeBlock.AFTERNOON_ACTIVITY

CATEGORY_BLOCK_AFFINITY: dict[str, TimeBlock] = {
    "restaurant":    TimeBlock.LUNCH,
    "cafe":          TimeBlock.AFTERNOON_ACTIVITY,
    "attraction":    TimeBlock.MORNING_ACTIVITY,
    "shopping":      TimeBlock.AFTERNOON_ACTIVITY,
    "night_view":    TimeBlock.EVENING_ACTIVITY,
    "culture":       TimeBlock.MORNING_ACTIVITY,
    "nature":        TimeBlock.MORNING_ACTIVITY,
    "activity":      TimeBlock.AFTERNOON_ACTIVITY,
    "theme_park":    TimeBlock.AFTERNOON_ACTIVITY,
}

BLOCK_CATEGORY_AFFINITY: dict[TimeBlock, tuple[str, ...]] = {
    TimeBlock.BREAKFAST:          ("cafe", "restaurant"),
    TimeBlock.MORNING_ACTIVITY:   ("attraction", "culture", "nature"),
    TimeBlock.LUNCH:              ("restaurant",),
    TimeBlock.AFTERNOON_ACTIVITY: ("cafe", "shopping", "activity", "theme_park"),
    TimeBlock.DINNER:             ("restaurant",),
    TimeBlock.EVENING_ACTIVITY:   ("night_view", "shopping"),
}


def block_for_category(category: Optional[str]) -> TimeBlock:
    """Affine block for a category; unknown categories fall to AFTERNOON_ACTIVITY."""
    key = normalize_category(category)
    return CATEGORY_BLOCK_AFFINITY.get(key, DEFAULT_BLOCK) if key else DEFAULT_BLOCK


def fits_block(place: Place, block: TimeBlock) -> bool:
    return any(matches_category(place, c) for c in BLOCK_CATEGORY_AFFINITY[block])


def block_for_place(place: Place) -> TimeBlock:
    """Block a place is visited in: the start hour for confirmed anchors, else its category's block."""
    if place.fixed_time is not None:
        return TimeBlock.from_hour(place.fixed_time.hour)
    return block_for_category(place.category)
