"""Hard-invalidation filter tests."""

from __future__ import annotations

from datetime import date

import pytest

from routeoptimizer.contracts import FlightAnchor, HardInvalidation, ItineraryImpact, SoftCorrection, StructuralRoute
from routeoptimizer.invalidation_filter import (
    InvariantViolationError,
    ensure_no_hard_invalidations,
    filter_hard_invalidations,
    partition_candidates,
)


def _route(route_id: str, *, hard: bool = False, soft: bool = False) -> StructuralRoute:
    impact = None
    if hard or soft:
        impact = ItineraryImpact(
            hard_invalidations=(HardInvalidation(reason="no-eligible-long-haul-anchor"),) if hard else (),
            soft_corrections=(
                (SoftCorrection(code="nights-reduced", message="Vienna trimmed."),) if soft else ()
            ),
        )
    return StructuralRoute(
        id=route_id,
        summary=route_id,
        outbound_flight=FlightAnchor(from_city="Delhi", to_city="Vienna", date=date(2026, 6, 1)),
        inbound_flight=FlightAnchor(from_city="Vienna", to_city="Delhi", date=date(2026, 6, 5)),
        itinerary_impact=impact,
    )


def test_partition_keeps_order_and_soft_corrected_routes() -> None:
    routes = [_route("a", soft=True), _route("b", hard=True), _route("c")]
    valid, discarded = partition_candidates(routes)

    assert [route.id for route in valid] == ["a", "c"]
    assert [route.id for route in discarded] == ["b"]
    assert filter_hard_invalidations(routes) == valid


def test_all_invalid_yields_empty_list() -> None:
    assert filter_hard_invalidations([_route("a", hard=True), _route("b", hard=True)]) == []


def test_invariant_guard_raises_for_leaked_route() -> None:
    ensure_no_hard_invalidations([_route("a")], stage="evaluate")
    with pytest.raises(InvariantViolationError, match="Route b reached stage 'rank'"):
        ensure_no_hard_invalidations([_route("a"), _route("b", hard=True)], stage="rank")
