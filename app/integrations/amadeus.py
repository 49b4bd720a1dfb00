from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import os
import random
import time

import httpx
from pydantic import ValidationError

import logging

from app.schemas import FlightOffer, HotelOffer

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
_level = os.getenv("TRIP_RANKER_LOG_LEVEL", "INFO").upper()
logger.setLevel(getattr(logging, _level, logging.INFO))
logger.propagate = False

HOSTS = {
    "test": "https://test.api.amadeus.com",
    "production": "https://api.amadeus.com",
}

_MOCK_CARRIERS = ["AA", "DL", "UA", "BA", "LH", "AF", "KL", "EK"]
_MOCK_CHAINS = ["MAR", "HIL", "HYA", "IHG", "ACC", "WYN", "CHO", "SON"]
_MOCK_HOTEL_TYPES = ["Hotel", "Resort", "Inn", "Suites", "Grand Hotel"]
_MOCK_AMENITIES = [
    "WIFI",
    "PARKING",
    "POOL",
    "GYM",
    "SPA",
    "RESTAURANT",
    "BAR",
    "ROOM_SERVICE",
    "BUSINESS_CENTER",
    "AIRPORT_SHUTTLE",
    "PET_FRIENDLY",
    "AIR_CONDITIONING",
]
_MOCK_CONNECTION = "DFW"
_MAX_HOTEL_IDS = 20


@dataclass
class FlightSearchParams:
    origin_location_code: str
    destination_location_code: str
    departure_date: str
    adults: int = 1
    return_date: Optional[str] = None
    children: int = 0
    infants: int = 0
    travel_class: str = "ECONOMY"
    non_stop: bool = False
    currency_code: str = "USD"
    max: int = 50

    def to_query(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "originLocationCode": self.origin_location_code,
            "destinationLocationCode": self.destination_location_code,
            "departureDate": self.departure_date,
            "adults": self.adults,
            "children": self.children,
            "infants": self.infants,
            "travelClass": self.travel_class,
            "nonStop": str(self.non_stop).lower(),
            "currencyCode": self.currency_code,
            "max": self.max,
        }
        if self.return_date:
            query["returnDate"] = self.return_date
        return query


@dataclass
class HotelSearchParams:
    city_code: str
    check_in_date: str
    check_out_date: str
    adults: int = 1
    room_quantity: int = 1
    price_range: Optional[str] = None
    currency: str = "USD"
    ratings: List[str] = field(default_factory=list)
    amenities: List[str] = field(default_factory=list)
    radius: Optional[int] = None
    radius_unit: str = "KM"


class AmadeusClient:
    """
    Thin async wrapper over the Amadeus self-service shopping APIs.

    Without credentials (or when a live call fails) the client answers with
    generated offers so the ranking pipeline keeps working offline.
    """

    def __init__(
        self,
        *,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        hostname: Optional[str] = None,
        timeout: float = 15.0,
        rng: Optional[random.Random] = None,
    ):
        self.client_id = client_id or os.getenv("AMADEUS_API_KEY")
        self.client_secret = client_secret or os.getenv("AMADEUS_API_SECRET")
        host_key = (hostname or os.getenv("AMADEUS_HOSTNAME") or "test").lower()
        self.base_url = HOSTS.get(host_key, HOSTS["test"])
        self.timeout = timeout
        self.rng = rng or random.Random()
        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self.use_mock_data = not (self.client_id and self.client_secret)
        if self.use_mock_data:
            logger.warning("Amadeus API credentials not found; serving mock offers")

    async def search_flights(self, params: FlightSearchParams) -> List[FlightOffer]:
        if self.use_mock_data:
            return self.mock_flight_offers(params)
        try:
            data = await self._get("/v2/shopping/flight-offers", params.to_query())
            offers = [FlightOffer.model_validate(item) for item in data.get("data", [])]
            logger.info(
                "Amadeus returned %d flight offers for %s -> %s",
                len(offers),
                params.origin_location_code,
                params.destination_location_code,
            )
            return offers
        except Exception:
            logger.warning("Amadeus flight search failed; falling back to mock offers", exc_info=True)
            return self.mock_flight_offers(params)

    async def search_hotels(self, params: HotelSearchParams) -> List[HotelOffer]:
        if self.use_mock_data:
            return self.mock_hotel_offers(params)
        try:
            listing = await self._get("/v1/reference-data/locations/hotels/by-city", self._hotel_list_query(params))
            hotels_by_id = {
                item["hotelId"]: item for item in listing.get("data", []) if item.get("hotelId")
            }
            if not hotels_by_id:
                logger.info("Amadeus listed no hotels in %s", params.city_code)
                return []
            hotel_ids = list(hotels_by_id)[:_MAX_HOTEL_IDS]
            query: Dict[str, Any] = {
                "hotelIds": ",".join(hotel_ids),
                "adults": params.adults,
                "checkInDate": params.check_in_date,
                "checkOutDate": params.check_out_date,
                "roomQuantity": params.room_quantity,
                "currency": params.currency,
            }
            if params.price_range:
                query["priceRange"] = params.price_range
            data = await self._get("/v3/shopping/hotel-offers", query)
            offers: List[HotelOffer] = []
            for item in data.get("data", []):
                if not item.get("offers"):
                    continue
                try:
                    offers.append(HotelOffer.model_validate(self._merge_listing(item, hotels_by_id)))
                except ValidationError as exc:
                    hotel_id = (item.get("hotel") or {}).get("hotelId")
                    logger.warning(
                        "Skipping malformed hotel offer %s (%d validation errors)", hotel_id, exc.error_count()
                    )
            logger.info("Amadeus returned %d hotel offers in %s", len(offers), params.city_code)
            return offers
        except Exception:
            logger.warning("Amadeus hotel search failed; falling back to mock offers", exc_info=True)
            return self.mock_hotel_offers(params)

    # ---------- live API ----------
    async def _access_token(self, client: httpx.AsyncClient) -> str:
        if self._token and time.monotonic() < self._token_expiry:
            return self._token
        response = await client.post(
            f"{self.base_url}/v1/security/oauth2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        response.raise_for_status()
        payload = response.json()
        self._token = payload["access_token"]
        # Refresh a minute early so long searches never race the expiry.
        self._token_expiry = time.monotonic() + max(0, int(payload.get("expires_in", 0)) - 60)
        return self._token

    async def _get(self, path: str, query: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            token = await self._access_token(client)
            response = await client.get(
                f"{self.base_url}{path}",
                params=query,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _hotel_list_query(params: HotelSearchParams) -> Dict[str, Any]:
        query: Dict[str, Any] = {"cityCode": params.city_code}
        if params.radius:
            query["radius"] = params.radius
            query["radiusUnit"] = params.radius_unit
        if params.ratings:
            query["ratings"] = ",".join(params.ratings)
        if params.amenities:
            query["amenities"] = ",".join(params.amenities)
        return query

    @staticmethod
    def _merge_listing(item: Dict[str, Any], hotels_by_id: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        hotel = dict(item.get("hotel") or {})
        listed = hotels_by_id.get(hotel.get("hotelId"), {})
        distance = listed.get("distance")
        if distance and "hotelDistance" not in hotel:
            hotel["hotelDistance"] = {
                "distance": distance.get("value", 0.0),
                "distanceUnit": distance.get("unit", "KM"),
            }
        for key in ("rating", "amenities"):
            if key in listed and key not in hotel:
                hotel[key] = listed[key]
        return {**item, "hotel": hotel}

    # ---------- mock data ----------
    def mock_flight_offers(self, params: FlightSearchParams) -> List[FlightOffer]:
        rng = self.rng
        origin = params.origin_location_code
        destination = params.destination_location_code
        base_price = self._mock_price(origin, destination)
        duration_min = self._mock_duration(origin, destination)

        offers: List[Dict[str, Any]] = []
        for idx in range(rng.randint(5, 10)):
            non_stop = idx < 3
            carrier = rng.choice(_MOCK_CARRIERS)
            price = round(base_price * (1 + rng.uniform(-0.2, 0.2)), 2)
            itineraries = [
                self._mock_itinerary(origin, destination, params.departure_date, duration_min, non_stop, carrier, 100)
            ]
            if params.return_date:
                itineraries.append(
                    self._mock_itinerary(destination, origin, params.return_date, duration_min, non_stop, carrier, 300)
                )
            offers.append(
                {
                    "id": f"mock-{idx + 1}",
                    "source": "GDS",
                    "oneWay": not params.return_date,
                    "numberOfBookableSeats": rng.randint(1, 9),
                    "itineraries": itineraries,
                    "price": {
                        "currency": params.currency_code,
                        "total": f"{price:.2f}",
                        "base": f"{price * 0.85:.2f}",
                        "grandTotal": f"{price:.2f}",
                    },
                    "validatingAirlineCodes": [carrier],
                }
            )

        models = [FlightOffer.model_validate(offer) for offer in offers]
        return sorted(models, key=lambda offer: float(offer.price.total))

    def mock_hotel_offers(self, params: HotelSearchParams) -> List[HotelOffer]:
        rng = self.rng
        nights = max(1, (_parse_day(params.check_out_date) - _parse_day(params.check_in_date)).days)

        offers: List[Dict[str, Any]] = []
        for idx in range(rng.randint(8, 13)):
            chain = rng.choice(_MOCK_CHAINS)
            kind = rng.choice(_MOCK_HOTEL_TYPES)
            per_night = rng.uniform(80, 480)
            total = per_night * nights
            offers.append(
                {
                    "type": "hotel-offers",
                    "hotel": {
                        "hotelId": f"MOCK{chain}{1000 + idx}",
                        "chainCode": chain,
                        "name": f"{kind} {params.city_code} {idx + 1}",
                        "rating": f"{rng.uniform(3, 5):.1f}",
                        "cityCode": params.city_code,
                        "latitude": 40.7128 + rng.uniform(-0.05, 0.05),
                        "longitude": -74.0060 + rng.uniform(-0.05, 0.05),
                        "hotelDistance": {"distance": round(rng.uniform(0, 5), 2), "distanceUnit": "KM"},
                        "amenities": rng.sample(_MOCK_AMENITIES, rng.randint(4, 8)),
                    },
                    "available": True,
                    "offers": [
                        {
                            "id": f"OFFER-{idx + 1}",
                            "checkInDate": params.check_in_date,
                            "checkOutDate": params.check_out_date,
                            "guests": {"adults": params.adults},
                            "price": {
                                "currency": params.currency,
                                "base": f"{total * 0.85:.2f}",
                                "total": f"{total:.2f}",
                            },
                            "policies": {
                                "paymentType": "guarantee",
                                "cancellation": {
                                    "type": "FULL_REFUND",
                                    "description": {"text": "Free cancellation until 24 hours before check-in"},
                                },
                            },
                        }
                    ],
                }
            )

        models = [HotelOffer.model_validate(offer) for offer in offers]
        return sorted(models, key=lambda offer: float(offer.offers[0].price.total))

    def _mock_itinerary(
        self,
        origin: str,
        destination: str,
        day: str,
        duration_min: int,
        non_stop: bool,
        carrier: str,
        flight_number: int,
    ) -> Dict[str, Any]:
        depart = _parse_day(day).replace(hour=self.rng.randint(6, 17), minute=15 * self.rng.randint(0, 3))
        arrive = depart + timedelta(minutes=duration_min)
        if non_stop:
            segments = [_mock_segment(origin, destination, depart, arrive, carrier, flight_number)]
        else:
            layover_start = depart + timedelta(minutes=duration_min * 0.4)
            layover_end = depart + timedelta(minutes=duration_min * 0.6)
            segments = [
                _mock_segment(origin, _MOCK_CONNECTION, depart, layover_start, carrier, flight_number),
                _mock_segment(_MOCK_CONNECTION, destination, layover_end, arrive, carrier, flight_number + 100),
            ]
        return {"duration": _iso_duration(duration_min), "segments": segments}

    def _mock_price(self, origin: str, destination: str) -> float:
        distance = abs(ord(origin[0]) - ord(destination[0])) * 100 + self.rng.uniform(0, 500)
        return 200 + distance * 0.15

    @staticmethod
    def _mock_duration(origin: str, destination: str) -> int:
        distance = abs(ord(origin[0]) - ord(destination[0])) * 100
        return distance // 8 + 60


def _mock_segment(
    origin: str,
    destination: str,
    depart: datetime,
    arrive: datetime,
    carrier: str,
    flight_number: int,
) -> Dict[str, Any]:
    minutes = int((arrive - depart).total_seconds() // 60)
    return {
        "departure": {"iataCode": origin, "at": depart.isoformat(timespec="seconds")},
        "arrival": {"iataCode": destination, "at": arrive.isoformat(timespec="seconds")},
        "carrierCode": carrier,
        "number": str(flight_number),
        "aircraft": {"code": "32A"},
        "duration": _iso_duration(minutes),
        "id": f"{origin}-{destination}-{flight_number}",
        "numberOfStops": 0,
    }


def _iso_duration(minutes: int) -> str:
    return f"PT{minutes // 60}H{minutes % 60}M"


def _parse_day(value: str) -> datetime:
    return datetime.strptime(value[:10], "%Y-%m-%d")
