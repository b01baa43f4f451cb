"""Advisory rule checks for a ground route against stops and flight anchors."""

from __future__ import annotations

from typing import Any, Sequence

from routeoptimizer.contracts import (
    FlightAnchor,
    GroundLeg,
    GroundRouteViolation,
    RouteStop,
    ViolationType,
)
from routeoptimizer.reference_data import same_city


def validate_ground_route(
    ground_route: Sequence[GroundLeg],
    stops: Sequence[RouteStop],
    outbound: FlightAnchor,
    inbound: FlightAnchor,
) -> list[GroundRouteViolation]:
    """Return every rule violation found; never raises for a bad route."""
    violations: list[GroundRouteViolation] = []
    base_legs = [(index, leg) for index, leg in enumerate(ground_route) if leg.role == "BASE"]

    _check_required_stops(violations, base_legs, stops, outbound, inbound)
    _check_offsets(violations, ground_route, outbound, inbound)
    _check_chain(violations, base_legs, outbound, inbound)
    _check_duplicate_visits(violations, base_legs, outbound)
    _check_excursions(violations, ground_route)
    return violations


def _violation(kind: ViolationType, message: str, **context: Any) -> GroundRouteViolation:
    return GroundRouteViolation(type=kind, message=message, context=context)


def _check_required_stops(
    violations: list[GroundRouteViolation],
    base_legs: list[tuple[int, GroundLeg]],
    stops: Sequence[RouteStop],
    outbound: FlightAnchor,
    inbound: FlightAnchor,
) -> None:
    reached = [leg.to_city for _, leg in base_legs] + [outbound.to_city, inbound.from_city]
    for position, stop in enumerate(stops):
        if not stop.required:
            continue
        if any(same_city(stop.city, city) for city in reached):
            continue
        violations.append(
            _violation(
                "missing-required-stop",
                f"Required stop {stop.city} is never reached by the base route or a flight anchor.",
                city=stop.city,
                stop_index=position,
            )
        )


def _check_offsets(
    violations: list[GroundRouteViolation],
    ground_route: Sequence[GroundLeg],
    outbound: FlightAnchor,
    inbound: FlightAnchor,
) -> None:
    trip_length_days = (inbound.date - outbound.date).days + 1
    previous: int | None = None
    for index, leg in enumerate(ground_route):
        offset = leg.departure_day_offset
        if previous is not None and offset < previous:
            violations.append(
                _violation(
                    "non-monotonic-day-offset",
                    f"Leg {index} ({leg.from_city} → {leg.to_city}) departs on day {offset}, "
                    f"before the previous leg's day {previous}.",
                    leg_index=index,
                    offset=offset,
                    previous_offset=previous,
                )
            )
        if offset < 0 or offset >= trip_length_days:
            violations.append(
                _violation(
                    "day-offset-out-of-range",
                    f"Leg {index} ({leg.from_city} → {leg.to_city}) departs on day {offset}, "
                    f"outside the {trip_length_days}-day trip window.",
                    leg_index=index,
                    offset=offset,
                    trip_length_days=trip_length_days,
                )
            )
        previous = offset


def _check_chain(
    violations: list[GroundRouteViolation],
    base_legs: list[tuple[int, GroundLeg]],
    outbound: FlightAnchor,
    inbound: FlightAnchor,
) -> None:
    if not base_legs:
        if not same_city(outbound.to_city, inbound.from_city):
            violations.append(
                _violation(
                    "disconnected-leg",
                    f"No ground legs connect the outbound arrival {outbound.to_city} "
                    f"to the inbound departure {inbound.from_city}.",
                    from_city=outbound.to_city,
                    to_city=inbound.from_city,
                )
            )
        return

    current_city = outbound.to_city
    for index, leg in base_legs:
        if not same_city(current_city, leg.from_city):
            violations.append(
                _violation(
                    "disconnected-leg",
                    f"Leg {index} starts in {leg.from_city} but the traveler is in {current_city}.",
                    leg_index=index,
                    expected_city=current_city,
                    actual_city=leg.from_city,
                )
            )
        current_city = leg.to_city

    if not same_city(current_city, inbound.from_city):
        last_index = base_legs[-1][0]
        violations.append(
            _violation(
                "disconnected-leg",
                f"The base route ends in {current_city} but the inbound flight departs "
                f"from {inbound.from_city}.",
                leg_index=last_index,
                expected_city=inbound.from_city,
                actual_city=current_city,
            )
        )


def _check_duplicate_visits(
    violations: list[GroundRouteViolation],
    base_legs: list[tuple[int, GroundLeg]],
    outbound: FlightAnchor,
) -> None:
    entered: list[tuple[str, int | None]] = [(outbound.to_city, None)]
    for index, leg in base_legs:
        earlier = [entry for city, entry in entered if same_city(city, leg.to_city)]
        if earlier:
            violations.append(
                _violation(
                    "duplicate-base-visit",
                    f"{leg.to_city} is entered again by leg {index}.",
                    leg_index=index,
                    city=leg.to_city,
                    first_leg_index=earlier[0],
                )
            )
            continue
        entered.append((leg.to_city, index))


def _check_excursions(
    violations: list[GroundRouteViolation],
    ground_route: Sequence[GroundLeg],
) -> None:
    index = 0
    while index < len(ground_route):
        leg = ground_route[index]
        if leg.role != "EXCURSION":
            index += 1
            continue
        following = ground_route[index + 1] if index + 1 < len(ground_route) else None
        returns = (
            following is not None
            and following.role == "EXCURSION"
            and following.departure_day_offset == leg.departure_day_offset
            and same_city(following.from_city, leg.to_city)
            and same_city(following.to_city, leg.from_city)
        )
        if not returns:
            violations.append(
                _violation(
                    "unreturned-excursion",
                    f"Excursion {leg.from_city} → {leg.to_city} on day "
                    f"{leg.departure_day_offset} has no same-day return leg.",
                    leg_index=index,
                    base_city=leg.from_city,
                    excursion_city=leg.to_city,
                )
            )
            index += 1
            continue
        index += 2
