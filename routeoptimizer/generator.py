"""Stage A: structural candidate route generation."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import permutations
from typing import Iterator, Sequence

from routeoptimizer.contracts import (
    FlightAnchor,
    GroundLeg,
    HardInvalidation,
    LegRole,
    ModeHint,
    RouteOptimizerInput,
    RouteStop,
    SoftCorrection,
    StructuralRoute,
    TripScope,
)
from routeoptimizer.eligibility import (
    AnchorEligibility,
    HubListEligibility,
    determine_trip_scope,
    nearest_eligible_hub,
    normalize_home_city,
)
from routeoptimizer.guardrails import RequestValidationError, validate_date_range
from routeoptimizer.itinerary_impact import compute_itinerary_impact, derive_user_intent
from routeoptimizer.reference_data import normalize_city, same_city

DEFAULT_MAX_CANDIDATES = 5

LEG_DURATION_MINUTES: dict[str, int] = {
    "train": 180,
    "bus": 240,
    "car": 210,
    "flight": 90,
    "ferry": 240,
    "ground-transfer": 60,
}


@dataclass(frozen=True)
class _Ordering:
    route_id: str
    description: str
    stops: tuple[RouteStop, ...]
    corrections: tuple[SoftCorrection, ...] = ()


class StructuralRouteGenerator:
    """Builds distinct candidate skeletons (anchors + ground legs) for one request.

    Orderings are proposed in a fixed sequence (caller order, reversed, middle
    swap, eligible gateway first, required stops only, then plain permutations)
    and the first ``max_candidates`` distinct city sequences are kept.
    """

    def __init__(
        self,
        *,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        eligibility: AnchorEligibility | None = None,
    ) -> None:
        if max_candidates < 1:
            raise RequestValidationError("max_candidates must be >= 1")
        self._max_candidates = max_candidates
        self._eligibility = eligibility or HubListEligibility()

    def generate(self, request: RouteOptimizerInput) -> list[StructuralRoute]:
        if not request.stops:
            raise RequestValidationError("stops must be a non-empty list of cities")
        validate_date_range(request.start_date, request.end_date)

        scope = determine_trip_scope(request)
        return [
            self._build_route(request, scope, ordering)
            for ordering in self._orderings(request, scope)
        ]

    def _orderings(self, request: RouteOptimizerInput, scope: TripScope) -> list[_Ordering]:
        accepted: list[_Ordering] = []
        seen: set[tuple[str, ...]] = set()
        for proposal in self._proposals(tuple(request.stops), scope):
            ordering = self._apply_anchor_pins(request, proposal)
            key = tuple(normalize_city(stop.city) for stop in ordering.stops)
            if key in seen:
                continue
            seen.add(key)
            accepted.append(ordering)
            if len(accepted) >= self._max_candidates:
                break
        return accepted

    def _proposals(self, base: tuple[RouteStop, ...], scope: TripScope) -> Iterator[_Ordering]:
        yield _Ordering("route-base", "Visit cities in the suggested order", base)

        if len(base) > 2:
            yield _Ordering(
                "route-reversed",
                "Reverse the city order for potentially better connections",
                tuple(reversed(base)),
            )
        if len(base) >= 3:
            mid = (len(base) - 1) // 2
            swapped = list(base)
            swapped[mid - 1], swapped[mid] = swapped[mid], swapped[mid - 1]
            yield _Ordering(
                "route-alt-mid-swap",
                "Reorder middle stops to reduce backtracking",
                tuple(swapped),
            )

        gateway = self._gateway_ordering(base, scope)
        if gateway is not None:
            yield gateway

        required = tuple(stop for stop in base if stop.required)
        if required and len(required) < len(base):
            yield _Ordering(
                "route-required-only",
                "Skip optional stops for a simpler route",
                required,
                tuple(
                    SoftCorrection(
                        code="optional-stop-dropped",
                        message=f"Optional stop {stop.city} was dropped.",
                        context={"city": stop.city},
                    )
                    for stop in base
                    if not stop.required
                ),
            )

        for index, ordering in enumerate(permutations(base), start=1):
            yield _Ordering(f"route-perm-{index}", "Alternative city order", tuple(ordering))

    def _gateway_ordering(
        self,
        base: tuple[RouteStop, ...],
        scope: TripScope,
    ) -> _Ordering | None:
        if scope != "long-haul" or self._eligibility(base[0].city, scope).eligible:
            return None
        for index, stop in enumerate(base[1:], start=1):
            if not self._eligibility(stop.city, scope).eligible:
                continue
            reordered = (stop, *base[:index], *base[index + 1 :])
            correction = SoftCorrection(
                code="stop-reordered-for-anchor",
                message=f"{stop.city} moved to the start so the outbound flight lands at a long-haul gateway.",
                context={"city": stop.city, "from_position": index, "to_position": 0},
            )
            return _Ordering(
                "route-eligible-gateway",
                "Start at a city with long-haul connections",
                reordered,
                (correction,),
            )
        return None

    def _apply_anchor_pins(self, request: RouteOptimizerInput, ordering: _Ordering) -> _Ordering:
        stops = list(ordering.stops)
        corrections = list(ordering.corrections)

        outbound = request.outbound_flight_anchor
        if outbound is not None:
            index = _index_of_city(stops, outbound.to_city)
            if index is not None and index != 0:
                stops.insert(0, stops.pop(index))
                corrections.append(_pin_correction(stops[0].city, "outbound", index, 0))

        inbound = request.inbound_flight_anchor
        if inbound is not None:
            index = _index_of_city(stops, inbound.from_city)
            pinned_first = (
                index == 0 and outbound is not None and same_city(outbound.to_city, inbound.from_city)
            )
            last = len(stops) - 1
            if index is not None and index != last and not pinned_first:
                stops.append(stops.pop(index))
                corrections.append(_pin_correction(stops[-1].city, "inbound", index, last))

        if stops == list(ordering.stops):
            return ordering
        return _Ordering(ordering.route_id, ordering.description, tuple(stops), tuple(corrections))

    def _build_route(
        self,
        request: RouteOptimizerInput,
        scope: TripScope,
        ordering: _Ordering,
    ) -> StructuralRoute:
        base_stops, excursions = _split_excursions(ordering.stops)
        last_offset = request.trip_length_days - 1
        nights, night_corrections = allocate_nights(base_stops, last_offset)

        invalidations: list[HardInvalidation] = []
        outbound = self._outbound_anchor(request, scope, base_stops[0], invalidations)
        inbound = self._inbound_anchor(request, scope, base_stops[-1], invalidations)
        legs = _ground_legs(
            base_stops,
            nights,
            excursions,
            outbound_city=outbound.to_city,
            inbound_city=inbound.from_city,
            last_offset=last_offset,
        )

        impact = compute_itinerary_impact(
            derive_user_intent(request, stops=base_stops),
            outbound=outbound,
            inbound=inbound,
            ground_route=legs,
            scope=scope,
            soft_corrections=[*ordering.corrections, *night_corrections],
            hard_invalidations=invalidations,
        )
        return StructuralRoute(
            id=ordering.route_id,
            summary=_summary(ordering.stops, ordering.description),
            outbound_flight=outbound,
            inbound_flight=inbound,
            ground_route=tuple(legs),
            itinerary_impact=impact,
        )

    def _outbound_anchor(
        self,
        request: RouteOptimizerInput,
        scope: TripScope,
        first_stop: RouteStop,
        invalidations: list[HardInvalidation],
    ) -> FlightAnchor:
        if request.outbound_flight_anchor is not None:
            return request.outbound_flight_anchor
        home = request.origin_city
        return FlightAnchor(
            from_city=normalize_home_city(home, scope, self._eligibility) or home,
            to_city=self._anchor_city(first_stop.city, scope, "outbound", invalidations),
            date=request.start_date,
        )

    def _inbound_anchor(
        self,
        request: RouteOptimizerInput,
        scope: TripScope,
        last_stop: RouteStop,
        invalidations: list[HardInvalidation],
    ) -> FlightAnchor:
        if request.inbound_flight_anchor is not None:
            return request.inbound_flight_anchor
        home = request.return_city or request.origin_city
        return FlightAnchor(
            from_city=self._anchor_city(last_stop.city, scope, "inbound", invalidations),
            to_city=normalize_home_city(home, scope, self._eligibility) or home,
            date=request.end_date,
        )

    def _anchor_city(
        self,
        city: str,
        scope: TripScope,
        direction: str,
        invalidations: list[HardInvalidation],
    ) -> str:
        verdict = self._eligibility(city, scope)
        if verdict.eligible:
            return city
        hub = nearest_eligible_hub(city, scope, self._eligibility)
        if hub is not None:
            return hub
        invalidations.append(
            HardInvalidation(
                reason="no-eligible-long-haul-anchor",
                context={
                    "city": city,
                    "direction": direction,
                    "scope": scope,
                    "detail": verdict.reason,
                },
            )
        )
        # Left on the stop itself so the discarded candidate stays readable.
        return city


def allocate_nights(
    stops: Sequence[RouteStop],
    available_nights: int,
) -> tuple[list[int], list[SoftCorrection]]:
    """Fit desired nights into the trip window; the last stop takes any slack."""
    if not stops:
        return [], []
    desired = [stop.desired_nights for stop in stops]
    allocated = list(desired)
    while sum(allocated) > available_nights:
        largest = max(allocated)
        index = max(i for i, value in enumerate(allocated) if value == largest)
        allocated[index] -= 1
    allocated[-1] = available_nights - sum(allocated[:-1])

    corrections: list[SoftCorrection] = []
    for stop, wanted, granted in zip(stops, desired, allocated):
        if granted < wanted:
            corrections.append(
                SoftCorrection(
                    code="nights-reduced",
                    message=f"{stop.city}: {wanted} night(s) requested, {granted} fit in the trip window.",
                    context={"city": stop.city, "requested": wanted, "granted": granted},
                )
            )
    return allocated, corrections


def _split_excursions(
    stops: Sequence[RouteStop],
) -> tuple[list[RouteStop], dict[int, list[RouteStop]]]:
    base: list[RouteStop] = []
    excursions: dict[int, list[RouteStop]] = {}
    for stop in stops:
        if base and not stop.required and stop.nights == 0:
            excursions.setdefault(len(base) - 1, []).append(stop)
        else:
            base.append(stop)
    return base, excursions


def _ground_legs(
    base_stops: Sequence[RouteStop],
    nights: Sequence[int],
    excursions: dict[int, list[RouteStop]],
    *,
    outbound_city: str,
    inbound_city: str,
    last_offset: int,
) -> list[GroundLeg]:
    legs: list[GroundLeg] = []
    first_city = base_stops[0].city
    if not same_city(outbound_city, first_city):
        legs.append(_leg(outbound_city, first_city, 0))

    offset = 0
    for index, stop in enumerate(base_stops):
        for excursion in excursions.get(index, ()):
            day = offset + min(1, nights[index])
            legs.append(_leg(stop.city, excursion.city, day, mode="ground-transfer", role="EXCURSION"))
            legs.append(_leg(excursion.city, stop.city, day, mode="ground-transfer", role="EXCURSION"))
        if index < len(base_stops) - 1:
            offset += nights[index]
            legs.append(_leg(stop.city, base_stops[index + 1].city, offset))

    last_city = base_stops[-1].city
    if not same_city(last_city, inbound_city):
        legs.append(_leg(last_city, inbound_city, last_offset))
    return legs


def _leg(
    from_city: str,
    to_city: str,
    offset: int,
    *,
    mode: ModeHint = "train",
    role: LegRole = "BASE",
) -> GroundLeg:
    return GroundLeg(
        from_city=from_city,
        to_city=to_city,
        departure_day_offset=offset,
        estimated_duration_minutes=LEG_DURATION_MINUTES[mode],
        mode_hint=mode,
        role=role,
    )


def _index_of_city(stops: Sequence[RouteStop], city: str) -> int | None:
    for index, stop in enumerate(stops):
        if same_city(stop.city, city):
            return index
    return None


def _pin_correction(city: str, direction: str, from_position: int, to_position: int) -> SoftCorrection:
    return SoftCorrection(
        code="anchor-pinned-stop",
        message=f"{city} moved to match the fixed {direction} flight.",
        context={
            "city": city,
            "direction": direction,
            "from_position": from_position,
            "to_position": to_position,
        },
    )


def _summary(stops: Sequence[RouteStop], description: str) -> str:
    path = " → ".join(stop.city for stop in stops)
    return f"{path}: {description}"
