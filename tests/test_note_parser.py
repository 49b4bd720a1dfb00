import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app import llm
from app.agents.note_parser import (
    check_contradictions,
    fallback_note,
    parse_note,
    suggest_reminder,
)
from app.schemas import ExistingNote, ParsedNote


class _CompletionsStub:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def create(self, *args, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


def _install_client(monkeypatch, content) -> _CompletionsStub:
    completions = _CompletionsStub(content)
    monkeypatch.setattr(llm, "_client", SimpleNamespace(chat=SimpleNamespace(completions=completions)))
    return completions


def _existing(note_id: str, subject: str, sentiment: str, *, category: str = "hotel", day: int = 1) -> ExistingNote:
    return ExistingNote(
        id=note_id,
        note_text=f"note {note_id}",
        category=category,
        subject=subject,
        sentiment=sentiment,
        created_at=datetime(2030, 3, day, 12, 0, 0),
    )


HOTEL_REPLY = {
    "category": "hotel",
    "subject": "Marriott Downtown",
    "sentiment": "negative",
    "locationName": "Marriott Downtown",
    "city": None,
    "country": None,
    "tags": ["noisy"],
    "isActionable": True,
    "priority": "normal",
    "parsedData": {"roomNumber": "402", "issue": "too noisy"},
}


def test_parse_note_reads_json_reply(monkeypatch):
    completions = _install_client(monkeypatch, json.dumps(HOTEL_REPLY))

    parsed = parse_note("Marriott downtown room 402 was too noisy.")

    assert parsed.category == "hotel"
    assert parsed.sentiment == "negative"
    assert parsed.parsed_data["roomNumber"] == "402"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    assert "Marriott downtown room 402" in completions.calls[0]["messages"][1]["content"]


def test_parse_note_extracts_json_wrapped_in_prose(monkeypatch):
    _install_client(monkeypatch, "Sure! Here it is:\n" + json.dumps(HOTEL_REPLY) + "\nHope that helps.")
    assert parse_note("noisy room").subject == "Marriott Downtown"


@pytest.mark.parametrize(
    "reply",
    [
        "no json here",
        "{not valid json}",
        json.dumps({"subject": "missing category and sentiment"}),
        json.dumps({**HOTEL_REPLY, "category": "spaceship"}),
    ],
)
def test_parse_note_falls_back_on_bad_replies(monkeypatch, reply):
    _install_client(monkeypatch, reply)
    text = "A" * 80
    parsed = parse_note(text)
    assert parsed == fallback_note(text)
    assert parsed.subject == "A" * 50
    assert parsed.parsed_data == {"notes": text}


def test_parse_note_without_client_uses_fallback(monkeypatch):
    monkeypatch.setattr(llm, "_client", None)
    parsed = parse_note("Loved the night market")
    assert parsed.category == "general"
    assert parsed.sentiment == "neutral"
    assert parsed.is_actionable is False


def test_parse_note_falls_back_when_client_raises(monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("rate limited")

    monkeypatch.setattr(
        llm, "_client", SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=_boom)))
    )
    assert parse_note("anything").category == "general"


def test_contradiction_detected_for_opposite_sentiment_on_same_subject():
    new_note = ParsedNote(category="hotel", subject="Marriott", sentiment="negative")
    existing = [
        _existing("1", "Marriott Downtown", "positive", day=2),
        _existing("2", "Hilton", "positive", day=3),
        _existing("3", "Marriott Downtown", "negative", day=4),
    ]

    result = check_contradictions(new_note, existing)

    assert result.has_contradiction
    assert [n.id for n in result.contradicting_notes] == ["1"]
    assert 'previous positive note about "Marriott Downtown" from 3/2/2030' in result.message


def test_no_contradiction_for_neutral_or_other_category():
    existing = [_existing("1", "Marriott Downtown", "positive")]
    neutral = ParsedNote(category="hotel", subject="Marriott Downtown", sentiment="neutral")
    other_category = ParsedNote(category="restaurant", subject="Marriott Downtown", sentiment="negative")
    no_subject = ParsedNote(category="hotel", subject=None, sentiment="negative")

    assert not check_contradictions(neutral, existing).has_contradiction
    assert not check_contradictions(other_category, existing).has_contradiction
    assert not check_contradictions(no_subject, existing).has_contradiction
    assert check_contradictions(neutral, existing).message == ""


def test_contradiction_only_considers_recent_window():
    new_note = ParsedNote(category="hotel", subject="Ritz", sentiment="positive")
    old = _existing("old", "Ritz", "negative", day=1)
    recent = [_existing(f"r{i}", f"Other {i}", "negative", day=2 + i) for i in range(20)]

    assert not check_contradictions(new_note, [old, *recent]).has_contradiction
    assert check_contradictions(new_note, [old, *recent], limit=21).has_contradiction


def test_reminder_suggestions():
    seat = ParsedNote(category="seat", subject="UA 1234 12A", sentiment="positive", is_actionable=True)
    place = ParsedNote(
        category="restaurant",
        subject="Som Tam Nua",
        sentiment="positive",
        location_name="Som Tam Nua",
        is_actionable=True,
    )
    passive = ParsedNote(category="restaurant", subject="Som Tam Nua", sentiment="positive")

    seat_reminder = suggest_reminder(seat)
    assert seat_reminder.trigger_type == "booking"
    assert seat_reminder.trigger_phase == "seat_selection"

    place_reminder = suggest_reminder(place)
    assert place_reminder.trigger_type == "location"
    assert place_reminder.proximity_radius == 500

    assert suggest_reminder(passive) is None


def test_parse_note_treats_null_optional_fields_as_defaults(monkeypatch):
    reply = {
        "category": "hotel",
        "subject": "Ritz",
        "sentiment": "negative",
        "locationName": None,
        "city": None,
        "country": None,
        "tags": None,
        "isActionable": None,
        "priority": None,
        "parsedData": None,
    }
    _install_client(monkeypatch, json.dumps(reply))

    parsed = parse_note("The Ritz was awful")

    assert parsed.category == "hotel"
    assert parsed.subject == "Ritz"
    assert parsed.tags == []
    assert parsed.is_actionable is False
    assert parsed.priority == "normal"
    assert parsed.parsed_data == {}


def test_contradiction_window_counts_only_same_category_notes():
    new_note = ParsedNote(category="hotel", subject="Ritz", sentiment="positive")
    old_hotel = _existing("old", "Ritz", "negative", day=1)
    newer_meals = [
        _existing(f"m{i}", f"Bistro {i}", "negative", category="restaurant", day=2 + i) for i in range(20)
    ]

    result = check_contradictions(new_note, [old_hotel, *newer_meals])

    assert result.has_contradiction
    assert [n.id for n in result.contradicting_notes] == ["old"]


def test_naive_and_aware_timestamps_sort_together():
    new_note = ParsedNote(category="hotel", subject="Ritz", sentiment="positive")
    aware = ExistingNote(
        id="aware",
        category="hotel",
        subject="Ritz",
        sentiment="negative",
        created_at=datetime(2030, 1, 5, 10, tzinfo=timezone(timedelta(hours=2))),
    )
    naive = _existing("naive", "The Ritz", "negative", day=6)

    result = check_contradictions(new_note, [aware, naive])

    assert naive.created_at.tzinfo is timezone.utc
    assert [n.id for n in result.contradicting_notes] == ["naive", "aware"]
