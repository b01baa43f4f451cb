"""User-intent derivation and structural correction bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from routeoptimizer.contracts import (
    AddedGroundLeg,
    FlightAnchor,
    FlightAnchorReplacement,
    GroundLeg,
    HardInvalidation,
    ItineraryImpact,
    RouteOptimizerInput,
    RouteStop,
    SoftCorrection,
    StructuralRoute,
    TripScope,
)
from routeoptimizer.reference_data import normalize_city, same_city


@dataclass(frozen=True)
class UserItineraryIntent:
    """What the caller literally asked for, before any anchor corrections."""

    origin_city: str
    first_stop_city: str
    last_stop_city: str
    return_city: str
    stop_pairs: tuple[tuple[str, str], ...]


def derive_user_intent(
    request: RouteOptimizerInput,
    *,
    stops: Sequence[RouteStop] | None = None,
) -> UserItineraryIntent:
    ordered = list(stops if stops is not None else request.stops)
    if not ordered:
        raise ValueError("Cannot derive itinerary intent without stops.")

    outbound = request.outbound_flight_anchor
    inbound = request.inbound_flight_anchor
    origin = outbound.from_city if outbound else request.origin_city
    return_city = inbound.to_city if inbound else (request.return_city or request.origin_city)
    pairs = tuple(
        (ordered[index].city, ordered[index + 1].city) for index in range(len(ordered) - 1)
    )
    return UserItineraryIntent(
        origin_city=origin,
        first_stop_city=outbound.to_city if outbound else ordered[0].city,
        last_stop_city=inbound.from_city if inbound else ordered[-1].city,
        return_city=return_city,
        stop_pairs=pairs,
    )


def compute_itinerary_impact(
    intent: UserItineraryIntent,
    *,
    outbound: FlightAnchor,
    inbound: FlightAnchor,
    ground_route: Iterable[GroundLeg],
    scope: TripScope,
    soft_corrections: Iterable[SoftCorrection] = (),
    hard_invalidations: Iterable[HardInvalidation] = (),
) -> ItineraryImpact | None:
    replacements: list[FlightAnchorReplacement] = []
    checks = (
        (intent.origin_city, outbound.from_city, "outbound", "secondary-origin-normalization"),
        (intent.first_stop_city, outbound.to_city, "outbound", "ineligible-flight-anchor"),
        (intent.last_stop_city, inbound.from_city, "inbound", "ineligible-flight-anchor"),
        (intent.return_city, inbound.to_city, "inbound", "secondary-origin-normalization"),
    )
    for original, resolved, direction, reason in checks:
        if same_city(original, resolved):
            continue
        replacements.append(
            FlightAnchorReplacement(
                original_city=original,
                replaced_with_city=resolved,
                direction=direction,
                scope=scope,
                reason=reason,
            )
        )

    intended_pairs = {(normalize_city(a), normalize_city(b)) for a, b in intent.stop_pairs}
    added: list[AddedGroundLeg] = []
    seen: set[tuple[str, str]] = set()
    for leg in ground_route:
        if leg.role != "BASE":
            continue
        key = (normalize_city(leg.from_city), normalize_city(leg.to_city))
        if key in intended_pairs or key in seen:
            continue
        seen.add(key)
        added.append(AddedGroundLeg(from_city=leg.from_city, to_city=leg.to_city))

    impact = ItineraryImpact(
        flight_anchor_replacements=tuple(_dedupe_replacements(replacements)),
        added_ground_legs=tuple(added),
        soft_corrections=tuple(soft_corrections),
        hard_invalidations=tuple(hard_invalidations),
    )
    if not any(
        (
            impact.flight_anchor_replacements,
            impact.added_ground_legs,
            impact.soft_corrections,
            impact.hard_invalidations,
        )
    ):
        return None
    return impact


def _dedupe_replacements(
    replacements: list[FlightAnchorReplacement],
) -> list[FlightAnchorReplacement]:
    seen: set[tuple[str, str, str]] = set()
    unique: list[FlightAnchorReplacement] = []
    for item in replacements:
        key = (normalize_city(item.original_city), normalize_city(item.replaced_with_city), item.direction)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def is_hard_invalidated(route: StructuralRoute) -> bool:
    return bool(route.hard_invalidations)
