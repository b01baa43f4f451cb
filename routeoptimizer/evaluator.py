"""Stage B: attach metrics to structural routes using pricing collaborators."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Awaitable, Callable, Sequence

from routeoptimizer.contracts import (
    EvaluatedRoute,
    FlightAnchor,
    PriceQuote,
    RouteMetrics,
    RoutePreferences,
    StructuralRoute,
)
from routeoptimizer.data_confidence import DataConfidencePolicy
from routeoptimizer.invalidation_filter import ensure_no_hard_invalidations
from routeoptimizer.pricing import PricingCollaborator

logger = logging.getLogger(__name__)

FLIGHT_LAYOVER_MINUTES = 90
GROUND_TRANSFER_MINUTES = 45


@dataclass(frozen=True)
class ComponentPricing:
    """Effective pricing of one flight anchor or ground leg."""

    kind: str
    label: str
    quote: PriceQuote
    live: bool
    gap_reason: str | None = None


class ConcreteRouteEvaluator:
    def __init__(
        self,
        collaborator: PricingCollaborator,
        *,
        policy: DataConfidencePolicy | None = None,
        concurrency_limit: int = 4,
        query_timeout_seconds: float = 10.0,
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        if query_timeout_seconds <= 0:
            raise ValueError("query_timeout_seconds must be > 0")
        self._collaborator = collaborator
        self._policy = policy or DataConfidencePolicy()
        self._concurrency_limit = concurrency_limit
        self._query_timeout_seconds = query_timeout_seconds

    async def evaluate(
        self,
        routes: Sequence[StructuralRoute],
        *,
        preferences: RoutePreferences | None = None,
    ) -> list[EvaluatedRoute]:
        """Price every route; one EvaluatedRoute per input, in input order."""
        ensure_no_hard_invalidations(routes, stage="evaluate")
        semaphore = asyncio.Semaphore(self._concurrency_limit)
        priced = await asyncio.gather(
            *(self._price_components(route, semaphore) for route in routes)
        )
        evaluated = [
            self._assemble(route, components, preferences)
            for route, components in zip(routes, priced)
        ]
        if evaluated and all(item.metrics.pricing_source == "mock" for item in evaluated):
            logger.warning(
                "No live pricing was available for any of %d route(s); returning estimates only.",
                len(evaluated),
            )
        return evaluated

    async def _price_components(
        self,
        route: StructuralRoute,
        semaphore: asyncio.Semaphore,
    ) -> list[ComponentPricing]:
        start = route.outbound_flight.date
        jobs = [
            self._price_flight("outbound", route.outbound_flight, semaphore),
            self._price_flight("inbound", route.inbound_flight, semaphore),
        ]
        for index, leg in enumerate(route.ground_route):
            travel_date = start + timedelta(days=leg.departure_day_offset)
            label = f"ground[{index}] {leg.from_city} → {leg.to_city}"
            jobs.append(
                self._price_component(
                    "ground",
                    label,
                    lambda leg=leg, travel_date=travel_date: self._collaborator.quote_ground_leg(leg, travel_date),
                    lambda leg=leg: self._policy.estimate_ground_leg(leg),
                    semaphore,
                )
            )
        return list(await asyncio.gather(*jobs))

    async def _price_flight(
        self,
        direction: str,
        anchor: FlightAnchor,
        semaphore: asyncio.Semaphore,
    ) -> ComponentPricing:
        return await self._price_component(
            direction,
            f"{direction} {anchor.from_city} → {anchor.to_city}",
            lambda: self._collaborator.quote_flight(anchor),
            lambda: self._policy.estimate_flight(anchor),
            semaphore,
        )

    async def _price_component(
        self,
        kind: str,
        label: str,
        query: Callable[[], Awaitable[PriceQuote]],
        estimate: Callable[[], PriceQuote],
        semaphore: asyncio.Semaphore,
    ) -> ComponentPricing:
        async with semaphore:
            try:
                quote = await asyncio.wait_for(query(), timeout=self._query_timeout_seconds)
            except asyncio.TimeoutError:
                gap = f"timed out after {self._query_timeout_seconds:g}s"
                quote = None
            except Exception as exc:
                gap = f"{type(exc).__name__}: {exc}"
                quote = None
            else:
                gap = None if quote.available else (quote.reason or "unavailable")

        if quote is not None and quote.available and quote.price is not None:
            return ComponentPricing(kind=kind, label=label, quote=quote, live=True)
        logger.warning("Pricing gap for %s (%s); using heuristic estimate.", label, gap)
        return ComponentPricing(
            kind=kind,
            label=label,
            quote=estimate(),
            live=False,
            gap_reason=gap or "no price returned",
        )

    def _assemble(
        self,
        route: StructuralRoute,
        components: list[ComponentPricing],
        preferences: RoutePreferences | None,
    ) -> EvaluatedRoute:
        flights = [item for item in components if item.kind in {"outbound", "inbound"}]
        legs = [item for item in components if item.kind == "ground"]
        live_count = sum(1 for item in components if item.live)

        flight_stops = sum(self._stops_of(item) for item in flights)
        metrics = RouteMetrics(
            total_price=round(sum(item.quote.price or 0.0 for item in components), 2),
            total_travel_minutes=sum(self._minutes_of(item) for item in components),
            total_transfer_minutes=float(
                FLIGHT_LAYOVER_MINUTES * flight_stops + GROUND_TRANSFER_MINUTES * len(legs)
            ),
            total_transfers=len(legs) + flight_stops,
            reliability_score=self._policy.reliability(live_count, len(components)),
            pricing_source=self._policy.classify(live_count, len(components)),
        )
        explanations = [
            _describe_flight(label, anchor, item)
            for label, anchor, item in (
                ("Outbound", route.outbound_flight, flights[0]),
                ("Return", route.inbound_flight, flights[1]),
            )
        ]
        if legs:
            estimated = sum(1 for item in legs if not item.live)
            if estimated:
                explanations.append(f"Ground legs priced heuristically: {estimated} of {len(legs)}.")
            else:
                explanations.append(f"Ground legs priced live: {len(legs)} of {len(legs)}.")
        if live_count == 0:
            explanations.append(
                "Live pricing was unavailable for every component; all figures are estimates."
            )
        explanations.extend(_preference_caveats(route, metrics, flights, preferences))
        return EvaluatedRoute(structural=route, metrics=metrics, explanations=tuple(explanations))

    def _minutes_of(self, item: ComponentPricing) -> float:
        if item.quote.duration_minutes is not None:
            return item.quote.duration_minutes
        if item.kind == "ground":
            return self._policy.ground_leg_minutes
        return self._policy.flight_minutes

    def _stops_of(self, item: ComponentPricing) -> int:
        if item.quote.stops is not None:
            return item.quote.stops
        return self._policy.flight_stops


def _describe_flight(label: str, anchor: FlightAnchor, item: ComponentPricing) -> str:
    base = f"{label} {anchor.from_city} → {anchor.to_city} on {anchor.date.isoformat()}"
    quote = item.quote
    if not item.live:
        return f"{base}: no live fare ({item.gap_reason}); estimated at {quote.price:.2f}."
    currency = f" {quote.currency}" if quote.currency else ""
    if quote.price_range is not None:
        low, high = quote.price_range
        price_part = f"price range {low:.2f}-{high:.2f}{currency}"
    else:
        price_part = f"price {quote.price:.2f}{currency}"
    offers = f"{quote.offer_count} offers, " if quote.offer_count else ""
    if quote.duration_minutes is not None:
        return f"{base}: {offers}{price_part}, fastest ~{round(quote.duration_minutes / 60)}h."
    return f"{base}: {offers}{price_part}, duration unavailable."


def _preference_caveats(
    route: StructuralRoute,
    metrics: RouteMetrics,
    flights: list[ComponentPricing],
    preferences: RoutePreferences | None,
) -> list[str]:
    caveats: list[str] = []
    for anchor, item in zip((route.outbound_flight, route.inbound_flight), flights):
        if anchor.max_price is not None and item.live and (item.quote.price or 0.0) > anchor.max_price:
            caveats.append(
                f"Cheapest fare {anchor.from_city} → {anchor.to_city} ({item.quote.price:.2f}) "
                f"exceeds the requested maximum of {anchor.max_price:.2f}."
            )
    if preferences is None:
        return caveats
    if preferences.max_budget is not None and metrics.total_price > preferences.max_budget:
        caveats.append(
            f"Estimated total {metrics.total_price:.2f} exceeds the budget ceiling of {preferences.max_budget:.2f}."
        )
    if (
        preferences.max_total_travel_minutes is not None
        and metrics.total_travel_minutes > preferences.max_total_travel_minutes
    ):
        caveats.append(
            f"Total travel time of {round(metrics.total_travel_minutes)} min exceeds the "
            f"{preferences.max_total_travel_minutes} min ceiling."
        )
    if preferences.max_transfers is not None and metrics.total_transfers > preferences.max_transfers:
        caveats.append(
            f"{metrics.total_transfers} transfers exceed the preferred maximum of {preferences.max_transfers}."
        )
    if preferences.prefer_low_carbon:
        rail = sum(1 for leg in route.ground_route if leg.mode_hint in {"train", "bus"})
        caveats.append(f"Low-carbon preference: {rail} of {len(route.ground_route)} ground legs use rail or bus.")
    return caveats
