"""Structured extraction and contradiction checks for free-form travel notes."""
from __future__ import annotations

import json
import os
import re
import logging
from typing import Iterable, List, Optional

from pydantic import ValidationError

from app import llm
from app.schemas import ContradictionResult, ExistingNote, ParsedNote, ReminderSuggestion

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRIP_RANKER_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_OPPOSITE = {"positive": "negative", "negative": "positive"}
CONTRADICTION_WINDOW = 20
LOCATION_REMINDER_RADIUS_M = 500


def parse_note(note_text: str, model: Optional[str] = None) -> ParsedNote:
    """Parse ``note_text`` with the hosted model, falling back to a generic note."""
    try:
        raw = llm.call_note_parser(note_text, model or llm.DEFAULT_NOTE_MODEL)
    except Exception:
        logger.warning("LLM note parsing raised; using fallback parse", exc_info=True)
        return fallback_note(note_text)

    if not raw:
        return fallback_note(note_text)

    # Models sometimes wrap the object in prose; keep only the outer braces.
    match = _JSON_BLOCK.search(raw)
    if not match:
        logger.warning("LLM note reply held no JSON object; using fallback parse")
        return fallback_note(note_text)

    try:
        parsed = ParsedNote.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("LLM note reply failed validation; using fallback parse", exc_info=True)
        return fallback_note(note_text)

    logger.info("Parsed note as %s/%s about %r", parsed.category, parsed.sentiment, parsed.subject)
    return parsed


def fallback_note(note_text: str) -> ParsedNote:
    return ParsedNote(
        category="general",
        subject=note_text[:50],
        sentiment="neutral",
        parsed_data={"notes": note_text},
    )


def _subjects_related(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    a, b = a.lower(), b.lower()
    return a in b or b in a


def check_contradictions(
    new_note: ParsedNote,
    existing_notes: Iterable[ExistingNote],
    *,
    limit: int = CONTRADICTION_WINDOW,
) -> ContradictionResult:
    """Flag recent notes in the same category and on the same subject with the opposite sentiment."""
    opposite = _OPPOSITE.get(new_note.sentiment)
    if opposite is None:
        return ContradictionResult()

    same_category = [note for note in existing_notes if note.category == new_note.category]
    recent = sorted(same_category, key=lambda note: note.created_at, reverse=True)[:limit]
    conflicting: List[ExistingNote] = [
        note
        for note in recent
        if _subjects_related(note.subject, new_note.subject)
        and note.sentiment == opposite
    ]
    if not conflicting:
        return ContradictionResult()

    first = conflicting[0]
    when = f"{first.created_at.month}/{first.created_at.day}/{first.created_at.year}"
    logger.info("New %s note contradicts %d earlier note(s)", new_note.sentiment, len(conflicting))
    return ContradictionResult(
        has_contradiction=True,
        contradicting_notes=conflicting,
        message=(
            f'You have a previous {first.sentiment} note about "{first.subject}" from {when}. '
            "Your new note seems to contradict it. Would you like to override the previous note?"
        ),
    )


def suggest_reminder(note: ParsedNote) -> Optional[ReminderSuggestion]:
    if not note.is_actionable:
        return None
    if note.category in ("seat", "flight"):
        return ReminderSuggestion(
            trigger_type="booking",
            trigger_phase="seat_selection",
            reminder_offset="1 day before",
        )
    if note.location_name:
        return ReminderSuggestion(
            trigger_type="location",
            trigger_location_name=note.location_name,
            proximity_radius=LOCATION_REMINDER_RADIUS_M,
        )
    return None
