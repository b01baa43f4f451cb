"""Stage C ranking tests."""

from __future__ import annotations

from datetime import date

import pytest

from routeoptimizer.contracts import (
    EvaluatedRoute,
    FlightAnchor,
    HardInvalidation,
    ItineraryImpact,
    PricingSource,
    RouteMetrics,
    StructuralRoute,
)
from routeoptimizer.invalidation_filter import InvariantViolationError
from routeoptimizer.ranker import MAX_OPTIONS, RouteRanker, display_score, raw_cost


def _evaluated(
    route_id: str,
    price: float,
    *,
    minutes: float = 600.0,
    transfers: int = 2,
    source: PricingSource = "real",
) -> EvaluatedRoute:
    structural = StructuralRoute(
        id=route_id,
        summary=f"{route_id} summary",
        outbound_flight=FlightAnchor(from_city="Zurich", to_city="Vienna", date=date(2026, 6, 1)),
        inbound_flight=FlightAnchor(from_city="Munich", to_city="Zurich", date=date(2026, 6, 8)),
    )
    metrics = RouteMetrics(
        total_price=price,
        total_travel_minutes=minutes,
        total_transfer_minutes=90.0,
        total_transfers=transfers,
        reliability_score=1.0 if source == "real" else 0.0,
        pricing_source=source,
    )
    return EvaluatedRoute(structural=structural, metrics=metrics, explanations=("priced",))


def test_raw_cost_weights_price_time_and_transfers() -> None:
    metrics = _evaluated("a", 100.0, minutes=200.0, transfers=3).metrics
    assert raw_cost(metrics) == pytest.approx(0.6 * 100 + 0.3 * 200 + 0.1 * 180)


def test_rank_orders_by_cost_and_labels_options() -> None:
    options = RouteRanker().rank(
        [_evaluated("pricey", 900.0), _evaluated("cheap", 300.0), _evaluated("middle", 600.0, source="mock")]
    )

    assert [option.id for option in options] == ["cheap", "middle", "pricey"]
    assert [option.title for option in options] == [
        "Recommended route",
        "Great value alternative",
        "Alternative route",
    ]
    assert [option.score for option in options] == [100, 60, 20]
    assert [option.confidence for option in options] == ["high", "price-sensitive", "medium"]
    assert options[0].explanations == (
        "priced",
        "Ranked #1 of 3 by weighted cost (price 60%, time 30%, transfers 10%).",
    )


def test_ties_keep_generation_order_and_score_full_marks() -> None:
    options = RouteRanker().rank([_evaluated("first", 500.0), _evaluated("second", 500.0)])

    assert [option.id for option in options] == ["first", "second"]
    assert [option.score for option in options] == [100, 100]


def test_rank_retains_at_most_five_options() -> None:
    evaluated = [_evaluated(f"r{index}", 100.0 * (index + 1)) for index in range(7)]
    options = RouteRanker().rank(evaluated)

    assert len(options) == MAX_OPTIONS
    assert options[-1].id == "r4"
    assert options[-1].score == 20


def test_rank_is_deterministic() -> None:
    evaluated = [_evaluated("a", 420.0), _evaluated("b", 380.0), _evaluated("c", 510.0)]
    assert RouteRanker().rank(evaluated) == RouteRanker().rank(evaluated)


def test_rank_empty_input() -> None:
    assert RouteRanker().rank([]) == []


def test_display_score_bounds() -> None:
    assert display_score(10.0, 10.0, 10.0) == 100
    assert display_score(10.0, 10.0, 20.0) == 100
    assert display_score(20.0, 10.0, 20.0) == 20


def test_rank_rejects_hard_invalidated_routes() -> None:
    item = _evaluated("broken", 100.0)
    broken = item.model_copy(
        update={
            "structural": item.structural.model_copy(
                update={
                    "itinerary_impact": ItineraryImpact(
                        hard_invalidations=(HardInvalidation(reason="no-eligible-long-haul-anchor"),)
                    )
                }
            )
        }
    )
    with pytest.raises(InvariantViolationError):
        RouteRanker().rank([broken])
