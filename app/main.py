from __future__ import annotations

import os
import logging
from datetime import date, datetime
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app.agents.note_parser import check_contradictions, parse_note, suggest_reminder
from app.orchestrator import (
    rank_flight_payload,
    rank_hotel_payload,
    search_and_rank_flights,
    search_and_rank_hotels,
)
from app.schemas import (
    FlightRankRequest,
    FlightSearchRequest,
    HotelRankRequest,
    HotelSearchRequest,
    NoteParseRequest,
    NoteParseResponse,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRIP_RANKER_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

app = FastAPI(title="Trip Ranker API")

# Operators can scope this via TRIP_RANKER_ALLOWED_ORIGINS (comma separated).
raw_origins = os.getenv("TRIP_RANKER_ALLOWED_ORIGINS") or "*"
allowed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
if not allowed_origins:
    allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _parse_date(value: str, field: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{field} must be a YYYY-MM-DD date") from exc


def _require_code(value: str, message: str) -> None:
    if len(value) != 3 or not value.isalpha():
        raise HTTPException(status_code=400, detail=message)


@app.get("/api/health")
async def health() -> Dict[str, str]:
    return {"status": "healthy"}


@app.post("/api/flights/search")
async def api_flight_search(req: FlightSearchRequest) -> Dict[str, Any]:
    """Search live (or mock) offers and return them ranked."""
    _require_code(req.origin, "Invalid airport code format. Use 3-letter IATA codes (e.g., LAX, JFK)")
    _require_code(req.destination, "Invalid airport code format. Use 3-letter IATA codes (e.g., LAX, JFK)")
    departure = _parse_date(req.departure_date, "departureDate")
    if departure < date.today():
        raise HTTPException(status_code=400, detail="Departure date must be in the future")
    if req.return_date and _parse_date(req.return_date, "returnDate") < departure:
        raise HTTPException(status_code=400, detail="Return date must be after departure date")

    try:
        return await search_and_rank_flights(req)
    except Exception as exc:
        logger.exception("Flight search failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to search flights. Please try again.") from exc


@app.post("/api/hotels/search")
async def api_hotel_search(req: HotelSearchRequest) -> Dict[str, Any]:
    _require_code(req.city_code, "Invalid city code format. Use 3-letter IATA codes (e.g., NYC, LAX, LON)")
    check_in = _parse_date(req.check_in_date, "checkInDate")
    check_out = _parse_date(req.check_out_date, "checkOutDate")
    if check_in < date.today():
        raise HTTPException(status_code=400, detail="Check-in date must be in the future")
    if check_out <= check_in:
        raise HTTPException(status_code=400, detail="Check-out date must be after check-in date")

    try:
        return await search_and_rank_hotels(req)
    except Exception as exc:
        logger.exception("Hotel search failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to search hotels. Please try again.") from exc


@app.post("/api/flights/rank")
async def api_flight_rank(req: FlightRankRequest) -> Dict[str, Any]:
    """Rank caller-supplied offers with optional weights and preferences."""
    return rank_flight_payload(req)


@app.post("/api/hotels/rank")
async def api_hotel_rank(req: HotelRankRequest) -> Dict[str, Any]:
    return rank_hotel_payload(req)


@app.post("/api/travel-notes/parse")
async def api_parse_note(req: NoteParseRequest) -> Dict[str, Any]:
    parsed = parse_note(req.note_text)

    if req.check_for_contradictions:
        contradiction = check_contradictions(parsed, req.existing_notes)
        if contradiction.has_contradiction:
            response = NoteParseResponse(
                success=False,
                requires_confirmation=True,
                parsed_data=parsed,
                contradiction_result=contradiction,
            )
            return response.model_dump(by_alias=True, mode="json")
    else:
        contradiction = None

    response = NoteParseResponse(
        success=True,
        parsed_data=parsed,
        contradiction_result=contradiction,
        reminder=suggest_reminder(parsed),
    )
    return response.model_dump(by_alias=True, mode="json")
