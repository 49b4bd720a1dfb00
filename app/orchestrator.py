# app/orchestrator.py
from __future__ import annotations

import os
from typing import Any, Dict, List
import logging

from app.schemas import (
    FlightRankingPreferences,
    FlightRankRequest,
    FlightSearchRequest,
    HotelRankingPreferences,
    HotelRankRequest,
    HotelSearchRequest,
)
from app.integrations.amadeus import AmadeusClient, FlightSearchParams, HotelSearchParams
from app.ranking.flights import flight_recommendations, rank_flights
from app.ranking.hotels import hotel_recommendations, rank_hotels

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRIP_RANKER_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

SEARCH_RESULT_LIMIT = 50
# Connections beyond this are hard-zeroed on the stops dimension for searches.
SEARCH_MAX_STOPS = 2
SEARCH_PREFERRED_AMENITIES = ["WIFI", "PARKING", "POOL"]


# ---------- live search + rank ----------
async def search_and_rank_flights(
    req: FlightSearchRequest,
    client: AmadeusClient | None = None,
) -> Dict[str, Any]:
    """Fetch offers for the route, rank them, and attach recommendation slices."""
    params = FlightSearchParams(
        origin_location_code=req.origin.upper(),
        destination_location_code=req.destination.upper(),
        departure_date=req.departure_date,
        return_date=req.return_date,
        adults=req.adults,
        children=req.children,
        infants=req.infants,
        travel_class=req.travel_class,
        non_stop=req.non_stop,
        max=SEARCH_RESULT_LIMIT,
    )
    logger.info(
        "Flight search %s -> %s on %s (return %s, adults=%d, non_stop=%s)",
        params.origin_location_code,
        params.destination_location_code,
        params.departure_date,
        params.return_date or "n/a",
        params.adults,
        params.non_stop,
    )
    amadeus = client or AmadeusClient()
    flights = await amadeus.search_flights(params)

    preferences = FlightRankingPreferences(max_stops=0 if req.non_stop else SEARCH_MAX_STOPS)
    ranked = rank_flights(flights, preferences)
    recommendations = flight_recommendations(flights)
    logger.info(
        "Ranked %d flight offers; best score %.3f",
        len(ranked),
        ranked[0].score if ranked else 0.0,
    )
    return {
        "success": True,
        "searchParams": params.to_query(),
        "results": [item.model_dump(by_alias=True) for item in ranked],
        "count": len(ranked),
        "recommendations": recommendations.model_dump(by_alias=True),
    }


async def search_and_rank_hotels(
    req: HotelSearchRequest,
    client: AmadeusClient | None = None,
) -> Dict[str, Any]:
    params = HotelSearchParams(
        city_code=req.city_code.upper(),
        check_in_date=req.check_in_date,
        check_out_date=req.check_out_date,
        adults=req.adults,
        room_quantity=req.room_quantity,
        price_range=req.price_range,
        ratings=list(req.ratings or []),
        amenities=list(req.amenities or []),
    )
    logger.info(
        "Hotel search in %s from %s to %s (adults=%d, rooms=%d)",
        params.city_code,
        params.check_in_date,
        params.check_out_date,
        params.adults,
        params.room_quantity,
    )
    amadeus = client or AmadeusClient()
    hotels = await amadeus.search_hotels(params)

    preferences = HotelRankingPreferences(
        preferred_amenities=list(req.amenities or SEARCH_PREFERRED_AMENITIES)
    )
    ranked = rank_hotels(hotels, preferences)
    recommendations = hotel_recommendations(hotels)
    logger.info(
        "Ranked %d hotel offers; best score %.3f",
        len(ranked),
        ranked[0].score if ranked else 0.0,
    )
    return {
        "success": True,
        "searchParams": _hotel_params_echo(params),
        "results": [item.model_dump(by_alias=True) for item in ranked],
        "count": len(ranked),
        "recommendations": recommendations.model_dump(by_alias=True),
    }


# ---------- caller-supplied offers ----------
def rank_flight_payload(req: FlightRankRequest) -> Dict[str, Any]:
    ranked = rank_flights(req.flights, req.preferences)
    return {
        "success": True,
        "results": [item.model_dump(by_alias=True) for item in ranked],
        "count": len(ranked),
        "recommendations": flight_recommendations(req.flights).model_dump(by_alias=True),
    }


def rank_hotel_payload(req: HotelRankRequest) -> Dict[str, Any]:
    ranked = rank_hotels(req.hotels, req.preferences)
    return {
        "success": True,
        "results": [item.model_dump(by_alias=True) for item in ranked],
        "count": len(ranked),
        "recommendations": hotel_recommendations(req.hotels).model_dump(by_alias=True),
    }


# ---------- helpers ----------
def _hotel_params_echo(params: HotelSearchParams) -> Dict[str, Any]:
    echo: Dict[str, Any] = {
        "cityCode": params.city_code,
        "checkInDate": params.check_in_date,
        "checkOutDate": params.check_out_date,
        "adults": params.adults,
        "roomQuantity": params.room_quantity,
        "currency": params.currency,
    }
    optional: List[tuple[str, Any]] = [
        ("priceRange", params.price_range),
        ("ratings", params.ratings),
        ("amenities", params.amenities),
    ]
    for key, value in optional:
        if value:
            echo[key] = value
    return echo
