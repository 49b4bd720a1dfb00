from datetime import datetime, timezone
from typing import List, Dict, Literal, Optional, Any
from pydantic import BaseModel, Field, ConfigDict, ValidationInfo, field_validator

# Vendor payloads are camelCase on the wire; attributes stay snake_case.
class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

class _Passthrough(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

# ------- Flight offers -------
class FlightEndpoint(_Passthrough):
    iata_code: str = Field(..., alias="iataCode")
    terminal: Optional[str] = None
    at: str

    @field_validator("at")
    @classmethod
    def _iso_timestamp(cls, value: str) -> str:
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError(f"'{value}' is not an ISO-8601 timestamp") from exc
        return value

class FlightSegment(_Passthrough):
    departure: FlightEndpoint
    arrival: FlightEndpoint
    carrier_code: str = Field(..., alias="carrierCode")
    number: str = ""
    duration: Optional[str] = None
    id: Optional[str] = None
    number_of_stops: int = Field(0, alias="numberOfStops")

class FlightItinerary(_Passthrough):
    duration: str
    segments: List[FlightSegment] = Field(..., min_length=1)

class FlightPrice(_Passthrough):
    currency: str = "USD"
    total: str
    base: Optional[str] = None
    grand_total: str = Field(..., alias="grandTotal")

class FlightOffer(_Passthrough):
    id: str
    source: str = "GDS"
    one_way: bool = Field(True, alias="oneWay")
    number_of_bookable_seats: int = Field(0, alias="numberOfBookableSeats")
    itineraries: List[FlightItinerary] = Field(..., min_length=1)
    price: FlightPrice
    validating_airline_codes: List[str] = Field(default_factory=list, alias="validatingAirlineCodes")

class FlightScoreBreakdown(_Wire):
    price_score: float = Field(..., alias="priceScore")
    duration_score: float = Field(..., alias="durationScore")
    stops_score: float = Field(..., alias="stopsScore")
    departure_time_score: float = Field(..., alias="departureTimeScore")
    availability_score: float = Field(..., alias="availabilityScore")
    airline_bonus: float = Field(..., alias="airlineBonus")

class RankedFlight(FlightOffer):
    score: float
    score_breakdown: FlightScoreBreakdown = Field(..., alias="scoreBreakdown")

class FlightRankingPreferences(_Wire):
    price_weight: float = Field(0.35, ge=0, alias="priceWeight")
    duration_weight: float = Field(0.25, ge=0, alias="durationWeight")
    stops_weight: float = Field(0.20, ge=0, alias="stopsWeight")
    departure_time_weight: float = Field(0.10, ge=0, alias="departureTimeWeight")
    availability_weight: float = Field(0.10, ge=0, alias="availabilityWeight")
    preferred_departure_start: int = Field(6, ge=0, le=23, alias="preferredDepartureStart")
    preferred_departure_end: int = Field(18, ge=0, le=23, alias="preferredDepartureEnd")
    preferred_airlines: List[str] = Field(default_factory=list, alias="preferredAirlines")
    max_stops: int = Field(99, ge=0, alias="maxStops")

class FlightRecommendations(_Wire):
    cheapest: List[FlightOffer] = Field(default_factory=list)
    fastest: List[FlightOffer] = Field(default_factory=list)
    best: List[RankedFlight] = Field(default_factory=list)
    non_stop: List[FlightOffer] = Field(default_factory=list, alias="nonStop")

# ------- Hotel offers -------
class HotelDistance(_Passthrough):
    distance: float = 0.0
    distance_unit: str = Field("KM", alias="distanceUnit")

class Hotel(_Passthrough):
    hotel_id: str = Field(..., alias="hotelId")
    name: str
    chain_code: Optional[str] = Field(None, alias="chainCode")
    rating: Optional[str] = None
    city_code: Optional[str] = Field(None, alias="cityCode")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    hotel_distance: Optional[HotelDistance] = Field(None, alias="hotelDistance")
    amenities: Optional[List[str]] = None

class CancellationPolicy(_Passthrough):
    type: Optional[str] = None
    description: Optional[Dict[str, Any]] = None

class OfferPolicies(_Passthrough):
    payment_type: Optional[str] = Field(None, alias="paymentType")
    cancellation: Optional[CancellationPolicy] = None

class RoomPrice(_Passthrough):
    currency: str = "USD"
    base: Optional[str] = None
    total: str

class RoomOffer(_Passthrough):
    id: str
    check_in_date: Optional[str] = Field(None, alias="checkInDate")
    check_out_date: Optional[str] = Field(None, alias="checkOutDate")
    price: RoomPrice
    policies: OfferPolicies = Field(default_factory=OfferPolicies)

class HotelOffer(_Passthrough):
    type: str = "hotel-offers"
    hotel: Hotel
    available: bool = True
    offers: List[RoomOffer] = Field(..., min_length=1)

class HotelScoreBreakdown(_Wire):
    price_score: float = Field(..., alias="priceScore")
    rating_score: float = Field(..., alias="ratingScore")
    distance_score: float = Field(..., alias="distanceScore")
    amenities_score: float = Field(..., alias="amenitiesScore")
    cancellation_score: float = Field(..., alias="cancellationScore")
    amenity_bonus: float = Field(..., alias="amenityBonus")

class RankedHotel(HotelOffer):
    score: float
    score_breakdown: HotelScoreBreakdown = Field(..., alias="scoreBreakdown")

DEFAULT_PREFERRED_AMENITIES = ["WIFI", "PARKING", "POOL", "GYM"]

class HotelRankingPreferences(_Wire):
    price_weight: float = Field(0.35, ge=0, alias="priceWeight")
    rating_weight: float = Field(0.25, ge=0, alias="ratingWeight")
    distance_weight: float = Field(0.15, ge=0, alias="distanceWeight")
    amenities_weight: float = Field(0.15, ge=0, alias="amenitiesWeight")
    cancellation_weight: float = Field(0.10, ge=0, alias="cancellationWeight")
    preferred_amenities: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_AMENITIES), alias="preferredAmenities"
    )
    max_distance: float = Field(10.0, ge=0, alias="maxDistance")

class HotelRecommendations(_Wire):
    cheapest: List[HotelOffer] = Field(default_factory=list)
    top_rated: List[HotelOffer] = Field(default_factory=list, alias="topRated")
    best: List[RankedHotel] = Field(default_factory=list)
    luxury: List[HotelOffer] = Field(default_factory=list)

# ------- Request models -------
class FlightSearchRequest(_Wire):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    origin: str
    destination: str
    departure_date: str = Field(..., alias="departureDate")
    return_date: Optional[str] = Field(None, alias="returnDate")
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    infants: int = Field(0, ge=0)
    travel_class: Literal["ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST"] = Field(
        "ECONOMY", alias="travelClass"
    )
    non_stop: bool = Field(False, alias="nonStop")

    @field_validator("origin", "destination", "travel_class", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

class HotelSearchRequest(_Wire):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    city_code: str = Field(..., alias="cityCode")
    check_in_date: str = Field(..., alias="checkInDate")
    check_out_date: str = Field(..., alias="checkOutDate")
    adults: int = Field(1, ge=1)
    room_quantity: int = Field(1, ge=1, alias="roomQuantity")
    price_range: Optional[str] = Field(None, alias="priceRange")
    ratings: Optional[List[str]] = None
    amenities: Optional[List[str]] = None

    @field_validator("city_code", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

class FlightRankRequest(_Wire):
    flights: List[FlightOffer] = Field(default_factory=list)
    preferences: Optional[FlightRankingPreferences] = None

class HotelRankRequest(_Wire):
    hotels: List[HotelOffer] = Field(default_factory=list)
    preferences: Optional[HotelRankingPreferences] = None

# ------- Travel notes -------
NoteCategory = Literal["hotel", "restaurant", "flight", "seat", "activity", "transportation", "general"]
Sentiment = Literal["positive", "negative", "neutral"]

class ParsedNote(_Wire):
    category: NoteCategory
    subject: Optional[str] = None
    sentiment: Sentiment
    location_name: Optional[str] = Field(None, alias="locationName")
    city: Optional[str] = None
    country: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_actionable: bool = Field(False, alias="isActionable")
    priority: Literal["low", "normal", "high"] = "normal"
    parsed_data: Dict[str, Any] = Field(default_factory=dict, alias="parsedData")

    # Models answer null for fields the note never mentions.
    @field_validator("tags", "is_actionable", "priority", "parsed_data", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value

class ExistingNote(_Wire):
    id: str
    note_text: str = Field("", alias="noteText")
    category: str
    subject: Optional[str] = None
    sentiment: str
    created_at: datetime = Field(..., alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

class ContradictionResult(_Wire):
    has_contradiction: bool = Field(False, alias="hasContradiction")
    contradicting_notes: List[ExistingNote] = Field(default_factory=list, alias="contradictingNotes")
    message: str = ""

class ReminderSuggestion(_Wire):
    trigger_type: Literal["booking", "location"] = Field(..., alias="triggerType")
    trigger_phase: Optional[str] = Field(None, alias="triggerPhase")
    reminder_offset: Optional[str] = Field(None, alias="reminderOffset")
    trigger_location_name: Optional[str] = Field(None, alias="triggerLocationName")
    proximity_radius: Optional[int] = Field(None, alias="proximityRadius")
    notification_channel: str = Field("app", alias="notificationChannel")

class NoteParseRequest(_Wire):
    note_text: str = Field(..., min_length=1, alias="noteText")
    check_for_contradictions: bool = Field(True, alias="checkForContradictions")
    existing_notes: List[ExistingNote] = Field(default_factory=list, alias="existingNotes")

class NoteParseResponse(_Wire):
    success: bool
    requires_confirmation: bool = Field(False, alias="requiresConfirmation")
    parsed_data: ParsedNote = Field(..., alias="parsedData")
    contradiction_result: Optional[ContradictionResult] = Field(None, alias="contradictionResult")
    reminder: Optional[ReminderSuggestion] = None
