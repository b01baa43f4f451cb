"""End-to-end pipeline tests with offline and fake pricing."""

from __future__ import annotations

import asyncio
from datetime import date
import json

import pytest

from routeoptimizer.config import OptimizerSettings
from routeoptimizer.contracts import FlightAnchor, GroundLeg, PriceQuote, RouteOptimizerInput
from routeoptimizer.diagnostics import RecordingObserver, StageEvent
from routeoptimizer.generator import StructuralRouteGenerator
from routeoptimizer.pipeline_runner import (
    PipelineTimeoutError,
    build_collaborator,
    build_pipeline,
    optimize_routes,
    run_hotel_impact,
    run_optimizer,
)
from routeoptimizer.pricing import LivePricingCollaborator, OfflinePricingCollaborator

OFFLINE_SETTINGS = OptimizerSettings()


def _short_haul_payload() -> dict[str, object]:
    return {
        "origin_city": "Zurich",
        "origin_country_code": "CH",
        "start_date": "2026-06-01",
        "end_date": "2026-06-08",
        "stops": [
            {"city": "Vienna", "country_code": "AT", "nights": 3},
            {"city": "Salzburg", "country_code": "AT", "nights": 2},
            {"city": "Munich", "country_code": "DE", "nights": 2},
        ],
    }


def _long_haul_payload(*cities: str) -> dict[str, object]:
    return {
        "origin_city": "Delhi",
        "origin_country_code": "IN",
        "start_date": "2026-05-01",
        "end_date": "2026-05-07",
        "stops": [{"city": city, "nights": 3} for city in cities],
    }


class SlowCollaborator:
    def __init__(self, delay: float) -> None:
        self.delay = delay

    async def quote_flight(self, anchor: FlightAnchor) -> PriceQuote:
        await asyncio.sleep(self.delay)
        return PriceQuote(available=True, price=90.0, duration_minutes=80.0, stops=0)

    async def quote_ground_leg(self, leg: GroundLeg, travel_date: date) -> PriceQuote:
        await asyncio.sleep(self.delay)
        return PriceQuote.unavailable("no rail feed")


class ExplodingObserver:
    def on_stage(self, event: StageEvent) -> None:
        raise RuntimeError("dashboard offline")


def test_short_haul_request_completes_with_ranked_options() -> None:
    result = run_optimizer(
        _short_haul_payload(),
        collaborator=OfflinePricingCollaborator(),
        settings=OFFLINE_SETTINGS,
    )

    assert result["status"] == "completed"
    routes = result["routes"]
    assert len(routes) == 5
    assert routes[0]["id"] == "route-base"
    assert routes[0]["title"] == "Recommended route"
    assert routes[0]["confidence"] == "high"
    assert {route["metrics"]["pricing_source"] for route in routes} == {"mock"}
    assert [event["stage"] for event in result["diagnostics"]] == [
        "generate",
        "validate_ground_routes",
        "filter",
        "evaluate",
        "rank",
    ]
    json.dumps(result, ensure_ascii=True)


def test_two_month_trip_is_not_rejected() -> None:
    payload = _short_haul_payload()
    payload["end_date"] = "2026-07-31"

    result = run_optimizer(payload, collaborator=OfflinePricingCollaborator(), settings=OFFLINE_SETTINGS)

    assert result["status"] == "completed"
    assert result["routes"]
    assert result["routes"][0]["structural"]["inbound_flight"]["date"] == "2026-07-31"


def test_long_haul_hub_replacement_is_visible_in_output() -> None:
    result = run_optimizer(
        _long_haul_payload("Florence", "Rome"),
        collaborator=OfflinePricingCollaborator(),
        settings=OFFLINE_SETTINGS,
    )

    assert result["status"] == "completed"
    base = next(route for route in result["routes"] if route["id"] == "route-base")
    impact = base["structural"]["itinerary_impact"]
    assert impact["flight_anchor_replacements"][0]["replaced_with_city"] == "Rome"
    assert impact["added_ground_legs"][0] == {
        "from_city": "Rome",
        "to_city": "Florence",
        "reason": "preserve-user-intent",
    }


def test_all_candidates_invalid_yields_empty_completed_result() -> None:
    result = run_optimizer(
        _long_haul_payload("Hallstatt", "Cesky Krumlov"),
        collaborator=OfflinePricingCollaborator(),
        settings=OFFLINE_SETTINGS,
    )

    assert result["status"] == "completed"
    assert result["routes"] == []
    filter_event = next(event for event in result["diagnostics"] if event["stage"] == "filter")
    assert filter_event["count"] == 0
    discarded = filter_event["details"]["discarded"]
    assert len(discarded) == 2
    assert discarded[0]["hard_invalidations"][0]["reason"] == "no-eligible-long-haul-anchor"


def test_invalid_request_returns_envelope() -> None:
    result = run_optimizer({"origin_city": "Zurich", "stops": []}, settings=OFFLINE_SETTINGS)

    assert result == {"status": "invalid_request", "error": "start_date is required and must be a string"}


def test_diagnostics_report_ground_violations_and_scores() -> None:
    recorder = RecordingObserver()
    options = optimize_routes(
        _short_haul_payload(),
        collaborator=OfflinePricingCollaborator(),
        observer=recorder,
        settings=OFFLINE_SETTINGS,
    )

    validation = recorder.stage("validate_ground_routes")
    assert validation is not None
    assert validation.details["violations"]["route-base"] == []
    rank = recorder.stage("rank")
    assert rank is not None
    assert rank.details["scores"] == {option.id: option.score for option in options}
    evaluate = recorder.stage("evaluate")
    assert evaluate is not None
    assert set(evaluate.details["pricing_sources"].values()) == {"mock"}


def test_observer_failures_do_not_affect_results() -> None:
    options = optimize_routes(
        _short_haul_payload(),
        collaborator=OfflinePricingCollaborator(),
        observer=ExplodingObserver(),
        settings=OFFLINE_SETTINGS,
    )
    assert len(options) == 5


def test_pipeline_deadline_raises_timeout_error() -> None:
    settings = OptimizerSettings(pipeline_timeout_seconds=0.05, pricing_timeout_seconds=5.0)

    with pytest.raises(PipelineTimeoutError, match="did not finish within 0.05s"):
        optimize_routes(_short_haul_payload(), collaborator=SlowCollaborator(delay=1.0), settings=settings)


def test_cancelled_run_returns_nothing() -> None:
    request = RouteOptimizerInput.model_validate(_short_haul_payload())
    pipeline = build_pipeline(OFFLINE_SETTINGS, collaborator=SlowCollaborator(delay=1.0))

    async def scenario() -> None:
        task = asyncio.create_task(pipeline.run(request))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())


def test_build_collaborator_follows_api_key() -> None:
    assert isinstance(build_collaborator(OptimizerSettings()), OfflinePricingCollaborator)
    assert isinstance(build_collaborator(OptimizerSettings(duffel_api_key="k")), LivePricingCollaborator)


def test_run_hotel_impact_envelopes() -> None:
    baseline = StructuralRouteGenerator(max_candidates=1).generate(
        RouteOptimizerInput.model_validate(_short_haul_payload())
    )[0]
    payload = {
        "baseline_route": baseline.model_dump(mode="json"),
        "hotel": {
            "hotel_id": "h-42",
            "city": "Salzburg",
            "check_in": "2026-06-04",
            "check_out": "2026-06-06",
            "nights": 2,
        },
    }

    result = run_hotel_impact(payload)
    assert result["status"] == "completed"
    assert result["report"]["compatible"] is True
    assert result["report"]["cards"] == []

    invalid = run_hotel_impact({"baseline_route": payload["baseline_route"]})
    assert invalid == {"status": "invalid_request", "error": "hotel is required and must be an object"}
