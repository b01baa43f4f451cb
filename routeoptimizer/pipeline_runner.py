"""End-to-end optimizer pipeline and JSON-ready entry points."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from routeoptimizer.cache import MemoryCache, RateLimiter
from routeoptimizer.config import OptimizerSettings, load_env_file
from routeoptimizer.contracts import OptimizedRouteOption, RouteOptimizerInput
from routeoptimizer.diagnostics import (
    CompositeObserver,
    DiagnosticsObserver,
    LoggingObserver,
    RecordingObserver,
    StageEvent,
    notify,
)
from routeoptimizer.eligibility import AnchorEligibility, determine_trip_scope
from routeoptimizer.evaluator import ConcreteRouteEvaluator
from routeoptimizer.generator import StructuralRouteGenerator
from routeoptimizer.ground_contract import validate_ground_route
from routeoptimizer.guardrails import (
    RequestValidationError,
    validate_hotel_impact_request,
    validate_optimizer_request,
)
from routeoptimizer.hotel_impact import evaluate_hotel_impact
from routeoptimizer.invalidation_filter import partition_candidates
from routeoptimizer.pricing import (
    DuffelClient,
    FlightPricingTool,
    LivePricingCollaborator,
    OfflinePricingCollaborator,
    PricingCollaborator,
)
from routeoptimizer.ranker import RouteRanker
from routeoptimizer.telemetry import record_attributes, start_span


class PipelineTimeoutError(RuntimeError):
    """Raised when the whole optimization misses its deadline."""


class RouteOptimizationPipeline:
    """Stage A -> ground validation -> filter -> Stage B -> Stage C."""

    def __init__(
        self,
        generator: StructuralRouteGenerator,
        evaluator: ConcreteRouteEvaluator,
        ranker: RouteRanker | None = None,
        *,
        observer: DiagnosticsObserver | None = None,
    ) -> None:
        self._generator = generator
        self._evaluator = evaluator
        self._ranker = ranker or RouteRanker()
        self._observer = observer or LoggingObserver()

    async def run(self, request: RouteOptimizerInput) -> list[OptimizedRouteOption]:
        with start_span("optimizer.generate") as span:
            candidates = self._generator.generate(request)
            record_attributes(span, {"route.candidates": len(candidates)})
        self._emit(
            "generate",
            [route.id for route in candidates],
            {"scope": determine_trip_scope(request)},
        )

        with start_span("optimizer.validate_ground_routes") as span:
            violations = {
                route.id: [
                    item.model_dump(mode="json")
                    for item in validate_ground_route(
                        route.ground_route,
                        request.stops,
                        route.outbound_flight,
                        route.inbound_flight,
                    )
                ]
                for route in candidates
            }
            record_attributes(span, {"route.violations": sum(len(items) for items in violations.values())})
        self._emit("validate_ground_routes", list(violations), {"violations": violations})

        with start_span("optimizer.filter") as span:
            valid, discarded = partition_candidates(candidates)
            record_attributes(span, {"route.valid": len(valid), "route.discarded": len(discarded)})
        self._emit(
            "filter",
            [route.id for route in valid],
            {
                "discarded": [
                    {
                        "id": route.id,
                        "hard_invalidations": [
                            item.model_dump(mode="json") for item in route.hard_invalidations
                        ],
                    }
                    for route in discarded
                ]
            },
        )

        with start_span("optimizer.evaluate") as span:
            evaluated = await self._evaluator.evaluate(valid, preferences=request.preferences)
            record_attributes(span, {"route.evaluated": len(evaluated)})
        self._emit(
            "evaluate",
            [item.structural.id for item in evaluated],
            {"pricing_sources": {item.structural.id: item.metrics.pricing_source for item in evaluated}},
        )

        with start_span("optimizer.rank") as span:
            options = self._ranker.rank(evaluated)
            record_attributes(
                span,
                {
                    "route.options": len(options),
                    "route.top_pricing_source": options[0].metrics.pricing_source if options else None,
                },
            )
        self._emit("rank", [option.id for option in options], {"scores": {o.id: o.score for o in options}})
        return options

    def _emit(self, stage: str, candidate_ids: list[str], details: dict[str, Any]) -> None:
        notify(self._observer, StageEvent(stage=stage, candidate_ids=tuple(candidate_ids), details=details))


def build_collaborator(settings: OptimizerSettings) -> PricingCollaborator:
    if not settings.duffel_api_key:
        return OfflinePricingCollaborator()
    tool = FlightPricingTool(
        client=DuffelClient(settings.duffel_api_key),
        cache=MemoryCache(max_size=512),
        rate_limiter=RateLimiter(rate_per_second=5.0, capacity=5.0),
        ttl_seconds=settings.quote_cache_ttl_seconds,
    )
    return LivePricingCollaborator(tool)


def build_pipeline(
    settings: OptimizerSettings,
    *,
    collaborator: PricingCollaborator | None = None,
    observer: DiagnosticsObserver | None = None,
    eligibility: AnchorEligibility | None = None,
) -> RouteOptimizationPipeline:
    return RouteOptimizationPipeline(
        StructuralRouteGenerator(max_candidates=settings.max_candidates, eligibility=eligibility),
        ConcreteRouteEvaluator(
            collaborator or build_collaborator(settings),
            concurrency_limit=settings.pricing_concurrency,
            query_timeout_seconds=settings.pricing_timeout_seconds,
        ),
        RouteRanker(),
        observer=observer,
    )


async def optimize_routes_async(
    request: RouteOptimizerInput,
    *,
    pipeline: RouteOptimizationPipeline,
    timeout_seconds: float,
) -> list[OptimizedRouteOption]:
    """Run the pipeline under a deadline; nothing partial is ever returned."""
    try:
        return await asyncio.wait_for(pipeline.run(request), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise PipelineTimeoutError(
            f"Route optimization did not finish within {timeout_seconds:g}s."
        ) from exc


def optimize_routes(
    payload: Mapping[str, Any] | RouteOptimizerInput,
    *,
    collaborator: PricingCollaborator | None = None,
    observer: DiagnosticsObserver | None = None,
    settings: OptimizerSettings | None = None,
    eligibility: AnchorEligibility | None = None,
) -> list[OptimizedRouteOption]:
    request = payload if isinstance(payload, RouteOptimizerInput) else validate_optimizer_request(payload)
    resolved = settings or OptimizerSettings.from_env()
    pipeline = build_pipeline(
        resolved,
        collaborator=collaborator,
        observer=observer,
        eligibility=eligibility,
    )
    return asyncio.run(
        optimize_routes_async(request, pipeline=pipeline, timeout_seconds=resolved.pipeline_timeout_seconds)
    )


def run_optimizer(
    payload: Mapping[str, Any],
    *,
    collaborator: PricingCollaborator | None = None,
    settings: OptimizerSettings | None = None,
) -> dict[str, Any]:
    load_env_file(".env")
    recorder = RecordingObserver()
    try:
        options = optimize_routes(
            payload,
            collaborator=collaborator,
            observer=CompositeObserver([LoggingObserver(), recorder]),
            settings=settings,
        )
    except RequestValidationError as exc:
        return {"status": "invalid_request", "error": str(exc)}
    return {
        "status": "completed",
        "routes": [option.model_dump(mode="json") for option in options],
        "diagnostics": [event.to_dict() for event in recorder.events],
    }


def run_hotel_impact(payload: Mapping[str, Any]) -> dict[str, Any]:
    try:
        baseline, hotel, locked = validate_hotel_impact_request(payload)
        report = evaluate_hotel_impact(baseline, hotel, locked)
    except RequestValidationError as exc:
        return {"status": "invalid_request", "error": str(exc)}
    return {"status": "completed", "report": report.model_dump(mode="json")}
