"""Structured data contracts for route optimization and hotel impact evaluation."""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TripScope = Literal["long-haul", "short-haul"]
ModeHint = Literal["train", "bus", "car", "flight", "ferry", "ground-transfer"]
LegRole = Literal["BASE", "EXCURSION"]
PricingSource = Literal["real", "mixed", "mock"]
ConfidenceLabel = Literal["high", "medium", "price-sensitive"]
Objective = Literal["balanced", "price", "time", "comfort"]
Direction = Literal["outbound", "inbound"]

ViolationType = Literal[
    "missing-required-stop",
    "non-monotonic-day-offset",
    "day-offset-out-of-range",
    "disconnected-leg",
    "duplicate-base-visit",
    "unreturned-excursion",
]
SoftCorrectionCode = Literal[
    "stop-reordered-for-anchor",
    "nights-reduced",
    "optional-stop-dropped",
    "anchor-pinned-stop",
]
HardInvalidationReason = Literal["no-eligible-long-haul-anchor"]
ReplacementReason = Literal["ineligible-flight-anchor", "secondary-origin-normalization"]

ImpactCardType = Literal[
    "INCOMPATIBLE_BOOKING",
    "LOCKED_STAY_CONFLICT",
    "ROUTE_STRUCTURE_CHANGE",
    "DATE_PRESENCE_SHIFT",
    "NIGHT_COUNT_SHIFT",
    "TIME_STRESS",
    "UNCOVERED_NIGHTS",
]
ImpactSeverity = Literal[1, 2, 3, "BLOCKING"]
HotelFlexibility = Literal["FIXED", "PLUS_MINUS_1_DAY", "DATE_RANGE"]

DEFAULT_STOP_NIGHTS = 2


class TimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    earliest: dt.time
    latest: dt.time


class FlightAnchor(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_city: str = Field(min_length=1)
    to_city: str = Field(min_length=1)
    date: dt.date
    time_window: TimeWindow | None = None
    max_stops: int | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, gt=0)


class RouteStop(BaseModel):
    model_config = ConfigDict(frozen=True)

    city: str = Field(min_length=1)
    country_code: str | None = Field(default=None, min_length=2, max_length=2)
    nights: int | None = Field(default=None, ge=0)
    required: bool = True

    @property
    def desired_nights(self) -> int:
        return DEFAULT_STOP_NIGHTS if self.nights is None else self.nights


class RoutePreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    objective: Objective = "balanced"
    max_budget: float | None = Field(default=None, gt=0)
    max_total_travel_minutes: int | None = Field(default=None, gt=0)
    max_transfers: int | None = Field(default=None, ge=0)
    prefer_low_carbon: bool = False


class RouteOptimizerInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    origin_city: str = Field(min_length=1)
    origin_country_code: str | None = Field(default=None, min_length=2, max_length=2)
    return_city: str | None = None
    start_date: dt.date
    end_date: dt.date
    stops: tuple[RouteStop, ...] = Field(min_length=1)
    outbound_flight_anchor: FlightAnchor | None = None
    inbound_flight_anchor: FlightAnchor | None = None
    preferences: RoutePreferences = Field(default_factory=RoutePreferences)

    @property
    def trip_length_days(self) -> int:
        return (self.end_date - self.start_date).days + 1


class GroundLeg(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_city: str = Field(min_length=1)
    to_city: str = Field(min_length=1)
    departure_day_offset: int = Field(ge=0)
    estimated_duration_minutes: int | None = Field(default=None, ge=0)
    mode_hint: ModeHint = "train"
    role: LegRole = "BASE"


class FlightAnchorReplacement(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_city: str
    replaced_with_city: str
    direction: Direction
    scope: TripScope
    reason: ReplacementReason


class AddedGroundLeg(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_city: str
    to_city: str
    reason: Literal["preserve-user-intent"] = "preserve-user-intent"


class SoftCorrection(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: SoftCorrectionCode
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class HardInvalidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: HardInvalidationReason
    context: dict[str, Any] = Field(default_factory=dict)


class ItineraryImpact(BaseModel):
    model_config = ConfigDict(frozen=True)

    flight_anchor_replacements: tuple[FlightAnchorReplacement, ...] = ()
    added_ground_legs: tuple[AddedGroundLeg, ...] = ()
    soft_corrections: tuple[SoftCorrection, ...] = ()
    hard_invalidations: tuple[HardInvalidation, ...] = ()


class StructuralRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    summary: str
    outbound_flight: FlightAnchor
    inbound_flight: FlightAnchor
    ground_route: tuple[GroundLeg, ...] = ()
    itinerary_impact: ItineraryImpact | None = None

    @property
    def hard_invalidations(self) -> tuple[HardInvalidation, ...]:
        if self.itinerary_impact is None:
            return ()
        return self.itinerary_impact.hard_invalidations


class RouteMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_price: float = Field(ge=0)
    total_travel_minutes: float = Field(ge=0)
    total_transfer_minutes: float = Field(ge=0)
    total_transfers: int = Field(ge=0)
    reliability_score: float = Field(ge=0.0, le=1.0)
    pricing_source: PricingSource


class EvaluatedRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    structural: StructuralRoute
    metrics: RouteMetrics
    explanations: tuple[str, ...] = ()


class OptimizedRouteOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    summary: str
    structural: StructuralRoute
    metrics: RouteMetrics
    explanations: tuple[str, ...] = ()
    confidence: ConfidenceLabel
    score: int = Field(ge=0, le=100)


class GroundRouteViolation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ViolationType
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class PriceQuote(BaseModel):
    """Answer from a pricing collaborator for one flight anchor or ground leg."""

    model_config = ConfigDict(frozen=True)

    available: bool
    source: Literal["live", "heuristic"] = "live"
    price: float | None = Field(default=None, ge=0)
    currency: str | None = None
    duration_minutes: float | None = Field(default=None, ge=0)
    stops: int | None = Field(default=None, ge=0)
    offer_count: int = Field(default=0, ge=0)
    price_range: tuple[float, float] | None = None
    reason: str | None = None

    @classmethod
    def unavailable(cls, reason: str) -> PriceQuote:
        return cls(available=False, reason=reason)


class HotelStayConstraint(BaseModel):
    model_config = ConfigDict(frozen=True)

    hotel_id: str = Field(min_length=1)
    city: str = Field(min_length=1)
    check_in: dt.date
    check_out: dt.date
    nights: int = Field(gt=0)
    flexibility: HotelFlexibility = "FIXED"


class LockedHotelStay(BaseModel):
    model_config = ConfigDict(frozen=True)

    hotel_id: str = Field(min_length=1)
    city: str = Field(min_length=1)
    check_in: dt.date
    check_out: dt.date


class ImpactCard(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ImpactCardType
    severity: ImpactSeverity
    summary: str
    affected_cities: tuple[str, ...] = ()
    affected_dates: tuple[dt.date, ...] = ()


class HotelImpactReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    hotel: HotelStayConstraint
    baseline_route_id: str
    compatible: bool
    cards: tuple[ImpactCard, ...] = ()
