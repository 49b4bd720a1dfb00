"""Dimension scorers shared by the flight and hotel rankers.

Every helper maps one raw attribute to a desirability score where higher is
better. The functions are pure so the rankers can call them per item without
any shared state.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Iterable, Sequence, Tuple

_ISO_DURATION = re.compile(r"P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?)?")


def bounds(values: Sequence[float], default: Tuple[float, float] = (0.0, 0.0)) -> Tuple[float, float]:
    if not values:
        return default
    return min(values), max(values)


def normalize_inverse(value: float, low: float, high: float) -> float:
    """Lower raw values score higher; a degenerate range scores every item 1."""
    if high == low:
        return 1.0
    return 1.0 - (value - low) / (high - low)


def normalize_rating(rating: float, max_rating: float = 5.0) -> float:
    return rating / max_rating


def stepped_stops_score(stops: int, max_stops: int) -> float:
    if stops > max_stops:
        return 0.0
    if stops == 0:
        return 1.0
    if stops == 1:
        return 0.6
    return 0.3


def time_window_score(hour: int, start: int, end: int, *, falloff: float = 12.0) -> float:
    """1 inside ``[start, end]``, decaying linearly to 0 over ``falloff`` hours."""
    if start <= hour <= end:
        return 1.0
    distance = start - hour if hour < start else hour - end
    return max(0.0, 1.0 - distance / falloff)


def capacity_ratio(count: float, ceiling: float) -> float:
    return min(count / ceiling, 1.0)


def match_fraction_bonus(tags: Iterable[str], preferred: Sequence[str], *, ceiling: float = 0.1) -> float:
    if not preferred:
        return 0.0
    present = set(tags)
    matches = sum(1 for pref in preferred if pref in present)
    return (matches / len(preferred)) * ceiling


def parse_iso_duration(text: str | None) -> int:
    """Minutes in an ISO-8601 duration such as ``PT5H30M``; 0 when unparsable."""
    if not text:
        return 0
    match = _ISO_DURATION.search(text)
    if not match:
        return 0
    days, hours, minutes = (int(part) if part else 0 for part in match.groups())
    return days * 24 * 60 + hours * 60 + minutes


def departure_hour(timestamp: str) -> int:
    # Amadeus timestamps are airport-local; read the hour as written.
    return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).hour
