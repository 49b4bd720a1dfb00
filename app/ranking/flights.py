"""Weighted multi-criteria ranking for flight offers."""
from __future__ import annotations

import os
import logging
from typing import List, Sequence

from app.schemas import (
    FlightOffer,
    FlightRankingPreferences,
    FlightRecommendations,
    FlightScoreBreakdown,
    RankedFlight,
)
from app.ranking.scoring import (
    bounds,
    capacity_ratio,
    departure_hour,
    normalize_inverse,
    parse_iso_duration,
    stepped_stops_score,
    time_window_score,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRIP_RANKER_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

# Seat counts above this are treated as fully available.
SEAT_CAPACITY = 9
PREFERRED_AIRLINE_BONUS = 0.1
RECOMMENDATION_LIMIT = 3


def flight_price(offer: FlightOffer) -> float:
    return float(offer.price.grand_total)


def flight_duration(offer: FlightOffer) -> int:
    return parse_iso_duration(offer.itineraries[0].duration)


def flight_stops(offer: FlightOffer) -> int:
    return len(offer.itineraries[0].segments) - 1


def rank_flights(
    flights: Sequence[FlightOffer],
    preferences: FlightRankingPreferences | None = None,
) -> List[RankedFlight]:
    """Score every offer and return them best first.

    Price and duration are normalised against the cheapest/shortest and the
    priciest/longest offer in ``flights``, so scores are only comparable within
    a single call. Weights are applied as given: when they do not sum to 1 the
    score is not bounded to ``[0, 1]``. Ties keep their input order.
    """
    if not flights:
        return []

    prefs = preferences or FlightRankingPreferences()
    min_price, max_price = bounds([flight_price(f) for f in flights])
    min_duration, max_duration = bounds([flight_duration(f) for f in flights])
    preferred_airlines = set(prefs.preferred_airlines)

    ranked: List[RankedFlight] = []
    for offer in flights:
        first_segment = offer.itineraries[0].segments[0]
        breakdown = FlightScoreBreakdown(
            price_score=normalize_inverse(flight_price(offer), min_price, max_price),
            duration_score=normalize_inverse(flight_duration(offer), min_duration, max_duration),
            stops_score=stepped_stops_score(flight_stops(offer), prefs.max_stops),
            departure_time_score=time_window_score(
                departure_hour(first_segment.departure.at),
                prefs.preferred_departure_start,
                prefs.preferred_departure_end,
            ),
            availability_score=capacity_ratio(offer.number_of_bookable_seats, SEAT_CAPACITY),
            airline_bonus=PREFERRED_AIRLINE_BONUS if first_segment.carrier_code in preferred_airlines else 0.0,
        )
        score = (
            breakdown.price_score * prefs.price_weight
            + breakdown.duration_score * prefs.duration_weight
            + breakdown.stops_score * prefs.stops_weight
            + breakdown.departure_time_score * prefs.departure_time_weight
            + breakdown.availability_score * prefs.availability_weight
            + breakdown.airline_bonus
        )
        ranked.append(
            RankedFlight.model_validate(
                {**offer.model_dump(by_alias=True), "score": score, "scoreBreakdown": breakdown}
            )
        )

    ranked.sort(key=lambda item: item.score, reverse=True)
    logger.debug(
        "Ranked %d flight offers; top %s scored %.3f",
        len(ranked),
        ranked[0].id,
        ranked[0].score,
    )
    return ranked


def flight_recommendations(
    flights: Sequence[FlightOffer],
    limit: int = RECOMMENDATION_LIMIT,
) -> FlightRecommendations:
    """Independent top-``limit`` views over the unranked offers."""
    return FlightRecommendations(
        cheapest=sorted(flights, key=flight_price)[:limit],
        fastest=sorted(flights, key=flight_duration)[:limit],
        best=rank_flights(flights, FlightRankingPreferences())[:limit],
        non_stop=[f for f in flights if len(f.itineraries[0].segments) == 1][:limit],
    )


def format_flight_breakdown(flight: RankedFlight) -> str:
    b = flight.score_breakdown
    lines = [
        f"Overall Score: {flight.score * 100:.1f}%",
        "",
        f"Price: {b.price_score * 100:.0f}%",
        f"Duration: {b.duration_score * 100:.0f}%",
        f"Stops: {b.stops_score * 100:.0f}%",
        f"Departure Time: {b.departure_time_score * 100:.0f}%",
        f"Availability: {b.availability_score * 100:.0f}%",
    ]
    if b.airline_bonus > 0:
        lines.append(f"Airline Bonus: +{b.airline_bonus * 100:.0f}%")
    return "\n".join(lines)
