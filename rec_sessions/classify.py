"""Keyword classifier mapping free-text activity names to activity types.

Rules are checked in order of specificity and the first match wins, so
"Family Stick, Ring & Puck" is family hockey rather than drop-in hockey.
"""

from __future__ import annotations

from typing import Callable, Optional

from .models import ActivityType

SKATING = "ice-skating"
SWIMMING = "swimming"

_SKIP_WORDS = ("sauna", "whirlpool", "hot tub", "steam", "jacuzzi")
_SWIM_WORDS = ("swim", "pool", "lap", "aqua")


def _has(n: str, *words: str) -> bool:
    return any(w in n for w in words)


def _is_hockey(n: str) -> bool:
    return _has(n, "hockey", "ringette", "shinny") or ("stick" in n and "puck" in n)


def classify(name: Optional[str]) -> ActivityType:
    n = (name or "").lower()

    if "family" in n and _is_hockey(n):
        return ActivityType.FAMILY_HOCKEY
    if "shinny" in n or ("drop" in n and "hockey" in n) or ("stick" in n and "puck" in n):
        return ActivityType.DROP_IN_HOCKEY
    if "para" in n and "hockey" in n:
        return ActivityType.PARA_HOCKEY
    if _is_hockey(n):
        return ActivityType.HOCKEY
    if _has(n, "parent", "family", "tot") and "skat" in n:
        return ActivityType.FAMILY_SKATE
    if "parent" in n and _has(n, "tot", "preschool"):
        return ActivityType.FAMILY_SKATE
    if "figure" in n:
        return ActivityType.FIGURE_SKATING
    if _has(n, "public", "drop-in", "drop in", "toonie", "discount", "loonie"):
        return ActivityType.PUBLIC_SKATING
    if "adult" in n and "skat" in n:
        return ActivityType.PUBLIC_SKATING
    if _has(n, "lesson", "learn", "class", "canskate", "intro"):
        return ActivityType.SKATING_LESSONS
    if _has(n, "practice", "freestyle"):
        return ActivityType.PRACTICE
    return ActivityType.SKATING


def classify_swim(name: Optional[str]) -> ActivityType:
    n = (name or "").lower()

    if _has(n, "lesson", "learn", "class", "preschool swim", "youth swim", "red cross"):
        return ActivityType.LESSONS
    if _has(n, "aquafit", "aqua fit", "water fitness", "aquacise", "deep water", "hydro"):
        return ActivityType.AQUAFIT
    if _has(n, "lap", "lane swim", "lengths"):
        return ActivityType.LAP_SWIM
    if _has(n, "family", "parent", "tot") or ("child" in n and "swim" in n):
        return ActivityType.FAMILY_SWIM
    if "adult" in n and _has(n, "swim", "only"):
        return ActivityType.ADULT_SWIM
    if _has(
        n,
        "public",
        "everyone",
        "all ages",
        "drop-in",
        "drop in",
        "open swim",
        "recreation",
        "leisure",
    ):
        return ActivityType.PUBLIC_SWIM
    if _has(n, "fitness swim", "workout"):
        return ActivityType.LAP_SWIM
    return ActivityType.PUBLIC_SWIM


def should_skip(name: Optional[str]) -> bool:
    """True for sauna/whirlpool-only listings that are not swim sessions."""

    n = (name or "").lower()
    if not _has(n, *_SKIP_WORDS):
        return False
    # "whirlpool" itself contains "pool"
    rest = n
    for word in _SKIP_WORDS:
        rest = rest.replace(word, "")
    return not _has(rest, *_SWIM_WORDS)


def classifier_for(sport: str) -> Callable[[Optional[str]], ActivityType]:
    if sport == SWIMMING:
        return classify_swim
    if sport == SKATING:
        return classify
    raise ValueError(f"Unknown sport: {sport}")
