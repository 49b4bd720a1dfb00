from datetime import date, timedelta
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from app import llm
from app.main import app
from app.schemas import ParsedNote


def _future(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def _flight_payload(offer_id: str, price: str, carrier: str = "AA") -> dict:
    return {
        "id": offer_id,
        "numberOfBookableSeats": 5,
        "itineraries": [
            {
                "duration": "PT5H0M",
                "segments": [
                    {
                        "departure": {"iataCode": "JFK", "at": "2030-06-01T09:00:00"},
                        "arrival": {"iataCode": "LAX", "at": "2030-06-01T12:00:00"},
                        "carrierCode": carrier,
                        "number": "1",
                    }
                ],
            }
        ],
        "price": {"currency": "USD", "total": price, "grandTotal": price},
    }


def test_health_endpoint():
    client = TestClient(app)
    assert client.get("/api/health").json() == {"status": "healthy"}


def test_flight_search_delegates_to_pipeline(monkeypatch):
    client = TestClient(app)
    pipeline = AsyncMock(return_value={"success": True, "count": 0})
    monkeypatch.setattr("app.main.search_and_rank_flights", pipeline)

    response = client.post(
        "/api/flights/search",
        json={"origin": "jfk", "destination": "lax", "departureDate": _future(30), "travelClass": "business"},
    )

    assert response.status_code == 200
    pipeline.assert_awaited_once()
    req = pipeline.await_args.args[0]
    assert req.origin == "JFK"
    assert req.travel_class == "BUSINESS"
    assert response.json() == {"success": True, "count": 0}


def test_flight_search_rejects_bad_codes_and_dates(monkeypatch):
    client = TestClient(app)
    pipeline = AsyncMock(return_value={})
    monkeypatch.setattr("app.main.search_and_rank_flights", pipeline)

    bad_code = client.post(
        "/api/flights/search", json={"origin": "JFKX", "destination": "LAX", "departureDate": _future(5)}
    )
    past = client.post(
        "/api/flights/search", json={"origin": "JFK", "destination": "LAX", "departureDate": "2001-01-01"}
    )
    backwards = client.post(
        "/api/flights/search",
        json={"origin": "JFK", "destination": "LAX", "departureDate": _future(10), "returnDate": _future(3)},
    )
    missing = client.post("/api/flights/search", json={"origin": "JFK"})

    assert bad_code.status_code == 400
    assert "IATA" in bad_code.json()["detail"]
    assert past.status_code == 400
    assert backwards.status_code == 400
    assert missing.status_code == 422
    pipeline.assert_not_awaited()


def test_flight_search_failure_maps_to_500(monkeypatch):
    client = TestClient(app)
    monkeypatch.setattr("app.main.search_and_rank_flights", AsyncMock(side_effect=RuntimeError("down")))

    response = client.post(
        "/api/flights/search", json={"origin": "JFK", "destination": "LAX", "departureDate": _future(3)}
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to search flights. Please try again."


def test_hotel_search_validation(monkeypatch):
    client = TestClient(app)
    pipeline = AsyncMock(return_value={"success": True})
    monkeypatch.setattr("app.main.search_and_rank_hotels", pipeline)

    ok = client.post(
        "/api/hotels/search",
        json={"cityCode": "par", "checkInDate": _future(10), "checkOutDate": _future(12)},
    )
    same_day = client.post(
        "/api/hotels/search",
        json={"cityCode": "PAR", "checkInDate": _future(10), "checkOutDate": _future(10)},
    )
    bad_city = client.post(
        "/api/hotels/search",
        json={"cityCode": "PARIS", "checkInDate": _future(10), "checkOutDate": _future(12)},
    )

    assert ok.status_code == 200
    assert pipeline.await_args.args[0].city_code == "PAR"
    assert same_day.status_code == 400
    assert bad_city.status_code == 400


def test_rank_endpoint_returns_scored_results():
    client = TestClient(app)
    response = client.post(
        "/api/flights/rank",
        json={
            "flights": [
                _flight_payload("pricey", "500.00"),
                _flight_payload("cheap", "200.00"),
                _flight_payload("mid", "300.00"),
            ],
            "preferences": {
                "priceWeight": 1,
                "durationWeight": 0,
                "stopsWeight": 0,
                "departureTimeWeight": 0,
                "availabilityWeight": 0,
            },
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    assert [item["id"] for item in body["results"]] == ["cheap", "mid", "pricey"]
    assert set(body["results"][0]["scoreBreakdown"]) == {
        "priceScore",
        "durationScore",
        "stopsScore",
        "departureTimeScore",
        "availabilityScore",
        "airlineBonus",
    }
    assert [item["id"] for item in body["recommendations"]["cheapest"]] == ["cheap", "mid", "pricey"]
    assert "nonStop" in body["recommendations"]


def test_rank_endpoint_accepts_empty_list_and_rejects_negative_weights():
    client = TestClient(app)

    empty = client.post("/api/hotels/rank", json={"hotels": []})
    negative = client.post("/api/flights/rank", json={"flights": [], "preferences": {"priceWeight": -1}})

    assert empty.status_code == 200
    assert empty.json()["results"] == []
    assert empty.json()["recommendations"]["topRated"] == []
    assert negative.status_code == 422


def test_note_parse_endpoint_requests_confirmation_on_contradiction(monkeypatch):
    client = TestClient(app)
    monkeypatch.setattr(llm, "_client", None)
    monkeypatch.setattr(
        "app.main.parse_note",
        lambda text: ParsedNote(
            category="hotel", subject="Ritz", sentiment="negative", is_actionable=True, location_name="Ritz"
        ),
    )

    conflicted = client.post(
        "/api/travel-notes/parse",
        json={
            "noteText": "The Ritz was awful",
            "existingNotes": [
                {
                    "id": "n1",
                    "noteText": "Ritz was lovely",
                    "category": "hotel",
                    "subject": "The Ritz",
                    "sentiment": "positive",
                    "createdAt": "2030-01-05T10:00:00",
                }
            ],
        },
    )
    unchecked = client.post(
        "/api/travel-notes/parse",
        json={"noteText": "The Ritz was awful", "checkForContradictions": False},
    )

    body = conflicted.json()
    assert body["success"] is False
    assert body["requiresConfirmation"] is True
    assert body["contradictionResult"]["contradictingNotes"][0]["id"] == "n1"

    body = unchecked.json()
    assert body["success"] is True
    assert body["contradictionResult"] is None
    assert body["reminder"]["triggerType"] == "location"


def test_note_parse_endpoint_falls_back_without_llm(monkeypatch):
    client = TestClient(app)
    monkeypatch.setattr(llm, "_client", None)

    response = client.post("/api/travel-notes/parse", json={"noteText": "Gate B12 is a long walk"})

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["parsedData"]["category"] == "general"
    assert body["contradictionResult"]["hasContradiction"] is False
    assert body["reminder"] is None


def test_note_parse_endpoint_accepts_mixed_timestamp_styles(monkeypatch):
    client = TestClient(app)
    monkeypatch.setattr(
        "app.main.parse_note",
        lambda text: ParsedNote(category="hotel", subject="Ritz", sentiment="positive"),
    )

    response = client.post(
        "/api/travel-notes/parse",
        json={
            "noteText": "The Ritz was wonderful",
            "existingNotes": [
                {"id": "z", "category": "hotel", "subject": "Ritz", "sentiment": "negative",
                 "createdAt": "2030-01-05T10:00:00Z"},
                {"id": "n", "category": "hotel", "subject": "Ritz", "sentiment": "negative",
                 "createdAt": "2030-01-06T10:00:00"},
            ],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["requiresConfirmation"] is True
    assert [n["id"] for n in body["contradictionResult"]["contradictingNotes"]] == ["n", "z"]


def test_rank_endpoint_rejects_malformed_departure_timestamp():
    client = TestClient(app)
    offer = _flight_payload("bad", "200.00")
    offer["itineraries"][0]["segments"][0]["departure"]["at"] = "tomorrow morning"

    response = client.post("/api/flights/rank", json={"flights": [offer]})

    assert response.status_code == 422


def test_search_rejects_dates_with_trailing_text(monkeypatch):
    client = TestClient(app)
    pipeline = AsyncMock(return_value={})
    monkeypatch.setattr("app.main.search_and_rank_flights", pipeline)

    response = client.post(
        "/api/flights/search",
        json={"origin": "JFK", "destination": "LAX", "departureDate": _future(5) + "garbage"},
    )

    assert response.status_code == 400
    assert "departureDate" in response.json()["detail"]
    pipeline.assert_not_awaited()
