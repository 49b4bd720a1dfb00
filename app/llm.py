# app/llm.py
import os
import logging
from typing import Optional
from dotenv import load_dotenv

from openai import OpenAI

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRIP_RANKER_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

# Load .env file if present
load_dotenv()

DEFAULT_NOTE_MODEL = os.getenv("TRIP_RANKER_NOTE_MODEL", "gpt-4o-mini")

api_key = os.getenv("OPENAI_API_KEY")
if api_key:
    _client = OpenAI(api_key=api_key)
else:  # pragma: no cover - exercised indirectly in tests without API key
    _client = None
    logger.warning("OPENAI_API_KEY not set; travel notes will use fallback parsing")

NOTE_PARSER_SYSTEM = """You are a travel note parser. Extract structured information from the user's travel note.
Respond ONLY with a valid JSON object:

{
  "category": "hotel|restaurant|flight|seat|activity|transportation|general",
  "subject": "Main subject (hotel name, restaurant, flight number, etc.)",
  "sentiment": "positive|negative|neutral",
  "locationName": "Specific location name if mentioned",
  "city": "City name if mentioned",
  "country": "Country name if mentioned",
  "tags": ["tag1", "tag2"],
  "isActionable": true/false (requires future action or reminder),
  "priority": "low|normal|high",
  "parsedData": {
    // For hotels: hotelName, roomNumber, roomType, floor, amenity, issue, recommendation
    // For restaurants: restaurantName, dishName, cuisineType, priceLevel, mustTry, avoid
    // For flights and seats: airline, flightNumber, seatNumber, seatType, gate, terminal
    // For activities: activityName, duration, bestTimeToVisit
    // General: notes, tip, warning
  }
}

Use null for anything the note does not mention. Do not invent details.
"""

NOTE_PARSER_EXAMPLES = """Examples:

Input: "The Marriott downtown room 402 was too noisy. Avoid rooms facing the street next time."
Output: {"category": "hotel", "subject": "Marriott Downtown", "sentiment": "negative",
  "locationName": "Marriott Downtown", "city": null, "country": null,
  "tags": ["noisy", "avoid", "room-location"], "isActionable": true, "priority": "normal",
  "parsedData": {"hotelName": "Marriott Downtown", "roomNumber": "402", "issue": "too noisy",
  "recommendation": "Avoid rooms facing the street"}}

Input: "The pad thai at Som Tam Nua in Bangkok is incredible. Must order!"
Output: {"category": "restaurant", "subject": "Som Tam Nua", "sentiment": "positive",
  "locationName": "Som Tam Nua", "city": "Bangkok", "country": "Thailand",
  "tags": ["must-try", "thai-food", "pad-thai"], "isActionable": false, "priority": "normal",
  "parsedData": {"restaurantName": "Som Tam Nua", "dishName": "Pad Thai", "cuisineType": "Thai",
  "mustTry": true}}

Input: "UA 1234 seat 12A has great legroom and window view. Best seat in economy!"
Output: {"category": "seat", "subject": "UA 1234 Seat 12A", "sentiment": "positive",
  "locationName": null, "city": null, "country": null,
  "tags": ["good-seat", "legroom", "window", "economy"], "isActionable": true, "priority": "normal",
  "parsedData": {"airline": "United Airlines", "flightNumber": "UA 1234", "seatNumber": "12A",
  "seatType": "economy window", "recommendation": "Best seat in economy - great legroom and window view"}}
"""

NOTE_USER_TEMPLATE = """{examples}
Now parse this note and respond with ONLY the JSON object.

User Note: "{note}"
"""


def call_note_parser(note_text: str, model: str = DEFAULT_NOTE_MODEL) -> Optional[str]:
    """Send a travel note to the hosted model and return its raw reply.

    Returns ``None`` when no client is configured so callers can fall back to
    heuristic parsing.
    """
    if _client is None:
        logger.info("Skipping LLM note parsing (missing client or API key)")
        return None

    logger.info("Invoking LLM model %s to parse a %d-character note", model, len(note_text))
    resp = _client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": NOTE_PARSER_SYSTEM},
            {"role": "user", "content": NOTE_USER_TEMPLATE.format(examples=NOTE_PARSER_EXAMPLES, note=note_text)},
        ],
        temperature=0.2,
        max_tokens=1024,
        response_format={"type": "json_object"},
    )
    return resp.choices[0].message.content
