"""Heuristic pricing fallbacks and data-confidence classification."""

from __future__ import annotations

from dataclasses import dataclass

from routeoptimizer.contracts import (
    ConfidenceLabel,
    FlightAnchor,
    GroundLeg,
    PriceQuote,
    PricingSource,
    TripScope,
)
from routeoptimizer.eligibility import region_of_city


@dataclass(frozen=True)
class DataConfidencePolicy:
    """Single owner of every "estimated vs confirmed" decision.

    Stage B asks it for deterministic stand-in quotes when live pricing is
    missing and for the route-level pricing source; Stage C asks it for the
    confidence label of each ranked position.
    """

    short_haul_flight_price: float = 250.0
    long_haul_flight_price: float = 650.0
    flight_minutes: float = 180.0
    flight_stops: int = 1
    ground_leg_price: float = 40.0
    ground_leg_minutes: float = 180.0

    def estimate_flight(self, anchor: FlightAnchor) -> PriceQuote:
        scope = flight_scope(anchor)
        price = self.long_haul_flight_price if scope == "long-haul" else self.short_haul_flight_price
        stops = self.flight_stops
        if anchor.max_stops is not None:
            stops = min(stops, anchor.max_stops)
        return PriceQuote(
            available=True,
            source="heuristic",
            price=price,
            duration_minutes=self.flight_minutes,
            stops=stops,
        )

    def estimate_ground_leg(self, leg: GroundLeg) -> PriceQuote:
        minutes = leg.estimated_duration_minutes
        return PriceQuote(
            available=True,
            source="heuristic",
            price=self.ground_leg_price,
            duration_minutes=float(minutes) if minutes is not None else self.ground_leg_minutes,
            stops=0,
        )

    def classify(self, live_components: int, total_components: int) -> PricingSource:
        if total_components <= 0 or live_components <= 0:
            return "mock"
        if live_components >= total_components:
            return "real"
        return "mixed"

    def reliability(self, live_components: int, total_components: int) -> float:
        if total_components <= 0:
            return 0.0
        return max(0.0, min(1.0, live_components / total_components))

    def confidence_for(self, rank_index: int, pricing_source: PricingSource) -> ConfidenceLabel:
        if rank_index == 0:
            return "high"
        if pricing_source == "mock":
            return "price-sensitive"
        return "medium"


def flight_scope(anchor: FlightAnchor) -> TripScope:
    origin = region_of_city(anchor.from_city)
    destination = region_of_city(anchor.to_city)
    if origin is None or destination is None or origin == destination:
        return "short-haul"
    return "long-haul"
