"""Weighted multi-criteria ranking for hotel offers."""
from __future__ import annotations

import os
import logging
from typing import List, Sequence

from app.schemas import (
    HotelOffer,
    HotelRankingPreferences,
    HotelRecommendations,
    HotelScoreBreakdown,
    RankedHotel,
)
from app.ranking.scoring import (
    bounds,
    capacity_ratio,
    match_fraction_bonus,
    normalize_inverse,
    normalize_rating,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRIP_RANKER_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

UNRATED_STARS = 3.0
UNKNOWN_DISTANCE_KM = 5.0
DEFAULT_DISTANCE_BOUNDS = (0.0, 10.0)
AMENITY_CAPACITY = 12
AMENITY_BONUS_CEILING = 0.1
LUXURY_MIN_RATING = 4.0
RECOMMENDATION_LIMIT = 3


def hotel_price(offer: HotelOffer) -> float:
    return float(offer.offers[0].price.total)


def hotel_rating(offer: HotelOffer) -> float:
    return float(offer.hotel.rating) if offer.hotel.rating else UNRATED_STARS


def _raw_distance(offer: HotelOffer) -> float:
    if offer.hotel.hotel_distance is None:
        return 0.0
    return offer.hotel.hotel_distance.distance or 0.0


def hotel_distance(offer: HotelOffer) -> float:
    return _raw_distance(offer) or UNKNOWN_DISTANCE_KM


def hotel_amenities(offer: HotelOffer) -> List[str]:
    return list(offer.hotel.amenities or [])


def has_free_cancellation(offer: HotelOffer) -> bool:
    cancellation = offer.offers[0].policies.cancellation
    return cancellation is not None and cancellation.type == "FULL_REFUND"


def rank_hotels(
    hotels: Sequence[HotelOffer],
    preferences: HotelRankingPreferences | None = None,
) -> List[RankedHotel]:
    """Score every hotel and return them best first.

    Distance bounds only consider hotels that report a positive distance;
    hotels without one are scored as if they sat 5 km out.
    """
    if not hotels:
        return []

    prefs = preferences or HotelRankingPreferences()
    min_price, max_price = bounds([hotel_price(h) for h in hotels])
    min_distance, max_distance = bounds(
        [d for d in (_raw_distance(h) for h in hotels) if d > 0],
        default=DEFAULT_DISTANCE_BOUNDS,
    )

    ranked: List[RankedHotel] = []
    for offer in hotels:
        amenities = hotel_amenities(offer)
        breakdown = HotelScoreBreakdown(
            price_score=normalize_inverse(hotel_price(offer), min_price, max_price),
            rating_score=normalize_rating(hotel_rating(offer)),
            distance_score=normalize_inverse(hotel_distance(offer), min_distance, max_distance),
            amenities_score=capacity_ratio(len(amenities), AMENITY_CAPACITY),
            cancellation_score=1.0 if has_free_cancellation(offer) else 0.5,
            amenity_bonus=match_fraction_bonus(
                amenities, prefs.preferred_amenities, ceiling=AMENITY_BONUS_CEILING
            ),
        )
        score = (
            breakdown.price_score * prefs.price_weight
            + breakdown.rating_score * prefs.rating_weight
            + breakdown.distance_score * prefs.distance_weight
            + breakdown.amenities_score * prefs.amenities_weight
            + breakdown.cancellation_score * prefs.cancellation_weight
            + breakdown.amenity_bonus
        )
        ranked.append(
            RankedHotel.model_validate(
                {**offer.model_dump(by_alias=True), "score": score, "scoreBreakdown": breakdown}
            )
        )

    ranked.sort(key=lambda item: item.score, reverse=True)
    logger.debug(
        "Ranked %d hotel offers; top %s scored %.3f",
        len(ranked),
        ranked[0].hotel.hotel_id,
        ranked[0].score,
    )
    return ranked


def hotel_recommendations(
    hotels: Sequence[HotelOffer],
    limit: int = RECOMMENDATION_LIMIT,
) -> HotelRecommendations:
    rated = [h for h in hotels if h.hotel.rating]
    luxury = [h for h in rated if float(h.hotel.rating) >= LUXURY_MIN_RATING]
    return HotelRecommendations(
        cheapest=sorted(hotels, key=hotel_price)[:limit],
        top_rated=sorted(rated, key=hotel_rating, reverse=True)[:limit],
        best=rank_hotels(hotels, HotelRankingPreferences())[:limit],
        luxury=sorted(luxury, key=lambda h: len(hotel_amenities(h)), reverse=True)[:limit],
    )


def format_hotel_breakdown(hotel: RankedHotel) -> str:
    b = hotel.score_breakdown
    lines = [
        f"Overall Score: {hotel.score * 100:.1f}%",
        "",
        f"Price: {b.price_score * 100:.0f}%",
        f"Rating: {b.rating_score * 100:.0f}%",
        f"Location: {b.distance_score * 100:.0f}%",
        f"Amenities: {b.amenities_score * 100:.0f}%",
        f"Cancellation: {b.cancellation_score * 100:.0f}%",
    ]
    if b.amenity_bonus > 0:
        lines.append(f"Preferred Amenities Bonus: +{b.amenity_bonus * 100:.0f}%")
    return "\n".join(lines)
