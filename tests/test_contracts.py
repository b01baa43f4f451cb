"""Contract validation tests."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from routeoptimizer.contracts import (
    FlightAnchor,
    GroundLeg,
    HardInvalidation,
    ItineraryImpact,
    PriceQuote,
    RouteOptimizerInput,
    RouteStop,
    StructuralRoute,
)


def _anchor(from_city: str, to_city: str, day: date) -> FlightAnchor:
    return FlightAnchor(from_city=from_city, to_city=to_city, date=day)


def test_route_optimizer_input_parses_iso_payload() -> None:
    request = RouteOptimizerInput.model_validate(
        {
            "origin_city": "Zurich",
            "start_date": "2026-06-01",
            "end_date": "2026-06-08",
            "stops": [{"city": "Vienna", "nights": 3}, {"city": "Salzburg"}],
        }
    )

    assert request.trip_length_days == 8
    assert request.stops[0].desired_nights == 3
    assert request.stops[1].desired_nights == 2
    assert request.preferences.objective == "balanced"


def test_route_stop_rejects_negative_nights() -> None:
    with pytest.raises(ValidationError):
        RouteStop(city="Vienna", nights=-1)


def test_contracts_are_immutable() -> None:
    stop = RouteStop(city="Vienna", nights=2)
    with pytest.raises(ValidationError):
        stop.nights = 5  # type: ignore[misc]


def test_ground_leg_defaults_to_base_train() -> None:
    leg = GroundLeg(from_city="Vienna", to_city="Salzburg", departure_day_offset=2)
    assert leg.role == "BASE"
    assert leg.mode_hint == "train"
    with pytest.raises(ValidationError):
        GroundLeg(from_city="Vienna", to_city="Salzburg", departure_day_offset=-1)


def test_structural_route_exposes_hard_invalidations() -> None:
    outbound = _anchor("Delhi", "Hallstatt", date(2026, 6, 1))
    inbound = _anchor("Hallstatt", "Delhi", date(2026, 6, 5))
    clean = StructuralRoute(id="a", summary="A", outbound_flight=outbound, inbound_flight=inbound)
    broken = clean.model_copy(
        update={
            "itinerary_impact": ItineraryImpact(
                hard_invalidations=(HardInvalidation(reason="no-eligible-long-haul-anchor"),)
            )
        }
    )

    assert clean.hard_invalidations == ()
    assert broken.hard_invalidations[0].reason == "no-eligible-long-haul-anchor"


def test_price_quote_unavailable_carries_reason() -> None:
    quote = PriceQuote.unavailable("offline")
    assert quote.available is False
    assert quote.price is None
    assert quote.reason == "offline"
