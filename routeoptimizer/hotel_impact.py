"""Read-only what-if analysis of locking a hotel stay into a baseline route."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Sequence

from routeoptimizer.contracts import (
    HotelImpactReport,
    HotelStayConstraint,
    ImpactCard,
    ImpactCardType,
    ImpactSeverity,
    LockedHotelStay,
    StructuralRoute,
)
from routeoptimizer.guardrails import (
    RequestValidationError,
    validate_hotel_stay,
    validate_non_overlapping_stays,
)
from routeoptimizer.itinerary_impact import is_hard_invalidated
from routeoptimizer.reference_data import same_city
from routeoptimizer.telemetry import start_span

_SEVERITY_ORDER: dict[ImpactSeverity, int] = {"BLOCKING": 0, 3: 1, 2: 2, 1: 3}


@dataclass(frozen=True)
class StayWindow:
    """Presence in one city between arrival and departure dates."""

    city: str
    arrival: date
    departure: date

    @property
    def nights(self) -> int:
        return (self.departure - self.arrival).days

    def covers(self, check_in: date, check_out: date) -> bool:
        return self.arrival <= check_in and check_out <= self.departure


def derive_stays(route: StructuralRoute) -> list[StayWindow]:
    """Walk the BASE legs of a route and return one stay per visited city."""
    start = route.outbound_flight.date
    stays: list[StayWindow] = []
    city = route.outbound_flight.to_city
    arrival = start
    for leg in route.ground_route:
        if leg.role != "BASE":
            continue
        departure = start + timedelta(days=leg.departure_day_offset)
        stays.append(StayWindow(city=city, arrival=arrival, departure=departure))
        city = leg.to_city
        arrival = departure
    stays.append(StayWindow(city=city, arrival=arrival, departure=route.inbound_flight.date))
    return stays


def evaluate_hotel_impact(
    baseline: StructuralRoute,
    hotel: HotelStayConstraint,
    locked_stays: Iterable[LockedHotelStay] = (),
) -> HotelImpactReport:
    """Describe what locking ``hotel`` would change; ``baseline`` is only read."""
    if is_hard_invalidated(baseline):
        raise RequestValidationError(
            f"Baseline route {baseline.id} carries hard invalidations and cannot be evaluated."
        )
    validate_hotel_stay(hotel)
    locked = list(locked_stays)
    validate_non_overlapping_stays([(stay.check_in, stay.check_out) for stay in locked])

    with start_span("optimizer.hotel_impact") as span:
        cards = sort_cards(_impact_cards(baseline, hotel, locked))
        compatible = not any(card.severity == "BLOCKING" for card in cards)
        if span is not None:
            span.set_attribute("route.impact_cards", len(cards))
            span.set_attribute("route.impact_compatible", compatible)

    return HotelImpactReport(
        hotel=hotel,
        baseline_route_id=baseline.id,
        compatible=compatible,
        cards=tuple(cards),
    )


def sort_cards(cards: Iterable[ImpactCard]) -> list[ImpactCard]:
    return sorted(cards, key=lambda card: _SEVERITY_ORDER[card.severity])


def _card(
    kind: ImpactCardType,
    severity: ImpactSeverity,
    summary: str,
    *,
    cities: Iterable[str] = (),
    dates: Iterable[date] = (),
) -> ImpactCard:
    return ImpactCard(
        type=kind,
        severity=severity,
        summary=summary,
        affected_cities=tuple(dict.fromkeys(cities)),
        affected_dates=tuple(sorted(set(dates))),
    )


def _impact_cards(
    baseline: StructuralRoute,
    hotel: HotelStayConstraint,
    locked: list[LockedHotelStay],
) -> list[ImpactCard]:
    trip_start = baseline.outbound_flight.date
    trip_end = baseline.inbound_flight.date
    if hotel.check_in < trip_start or hotel.check_out > trip_end:
        return [
            _card(
                "INCOMPATIBLE_BOOKING",
                "BLOCKING",
                f"{hotel.city} stay {hotel.check_in.isoformat()} to {hotel.check_out.isoformat()} "
                f"falls outside the trip ({trip_start.isoformat()} to {trip_end.isoformat()}).",
                cities=[hotel.city],
                dates=[hotel.check_in, hotel.check_out],
            )
        ]

    stays = derive_stays(baseline)
    index = _match_stay(stays, hotel)
    if index is None:
        return [
            _card(
                "INCOMPATIBLE_BOOKING",
                "BLOCKING",
                f"{hotel.city} is not part of route {baseline.id}.",
                cities=[hotel.city],
                dates=[hotel.check_in, hotel.check_out],
            )
        ]

    blocking = _locked_overlap_conflicts(hotel, locked)
    proposed, problem = _widen_stay(stays, index, hotel)
    if problem is not None:
        blocking.append(problem)
    if proposed is not None:
        blocking.extend(_locked_coverage_conflicts(stays, proposed, locked))
    if blocking or proposed is None:
        return blocking

    cards: list[ImpactCard] = []
    cards.extend(_date_shift_cards(stays, proposed, hotel))
    cards.extend(_night_shift_cards(stays, proposed))
    cards.extend(_structure_cards(baseline, stays, proposed))
    cards.extend(_time_stress_cards(baseline, stays, proposed))
    cards.extend(_uncovered_night_cards(proposed[index], hotel))
    return cards


def _match_stay(stays: Sequence[StayWindow], hotel: HotelStayConstraint) -> int | None:
    best_index: int | None = None
    best_overlap = -1
    for index, stay in enumerate(stays):
        if not same_city(stay.city, hotel.city):
            continue
        overlap = max(0, (min(stay.departure, hotel.check_out) - max(stay.arrival, hotel.check_in)).days)
        if overlap > best_overlap:
            best_index, best_overlap = index, overlap
    return best_index


def _widen_stay(
    stays: Sequence[StayWindow],
    index: int,
    hotel: HotelStayConstraint,
) -> tuple[list[StayWindow] | None, ImpactCard | None]:
    """Grow the matched stay to cover the hotel; neighbours give up the days."""
    target = stays[index]
    arrival = min(target.arrival, hotel.check_in)
    departure = max(target.departure, hotel.check_out)
    proposed = list(stays)
    proposed[index] = StayWindow(target.city, arrival, departure)

    if index > 0:
        previous = proposed[index - 1]
        if arrival < previous.arrival:
            return None, _card(
                "INCOMPATIBLE_BOOKING",
                "BLOCKING",
                f"Checking in to {target.city} on {arrival.isoformat()} would mean leaving "
                f"{previous.city} before arriving there on {previous.arrival.isoformat()}.",
                cities=[previous.city, target.city],
                dates=[arrival, previous.arrival],
            )
        proposed[index - 1] = StayWindow(previous.city, previous.arrival, min(previous.departure, arrival))

    if index < len(stays) - 1:
        following = proposed[index + 1]
        if departure > following.departure:
            return None, _card(
                "INCOMPATIBLE_BOOKING",
                "BLOCKING",
                f"Checking out of {target.city} on {departure.isoformat()} would mean arriving in "
                f"{following.city} after its planned departure on {following.departure.isoformat()}.",
                cities=[target.city, following.city],
                dates=[departure, following.departure],
            )
        proposed[index + 1] = StayWindow(following.city, max(following.arrival, departure), following.departure)

    return proposed, None


def _locked_overlap_conflicts(
    hotel: HotelStayConstraint,
    locked: Sequence[LockedHotelStay],
) -> list[ImpactCard]:
    cards: list[ImpactCard] = []
    for stay in locked:
        if same_city(stay.city, hotel.city):
            continue
        if hotel.check_in < stay.check_out and stay.check_in < hotel.check_out:
            cards.append(
                _card(
                    "LOCKED_STAY_CONFLICT",
                    "BLOCKING",
                    f"Overlaps the locked stay {stay.hotel_id} in {stay.city} "
                    f"({stay.check_in.isoformat()} to {stay.check_out.isoformat()}).",
                    cities=[hotel.city, stay.city],
                    dates=[max(hotel.check_in, stay.check_in), min(hotel.check_out, stay.check_out)],
                )
            )
    return cards


def _locked_coverage_conflicts(
    stays: Sequence[StayWindow],
    proposed: Sequence[StayWindow],
    locked: Sequence[LockedHotelStay],
) -> list[ImpactCard]:
    cards: list[ImpactCard] = []
    for stay in locked:
        if _holds_locked(stays, stay) and not _holds_locked(proposed, stay):
            cards.append(
                _card(
                    "LOCKED_STAY_CONFLICT",
                    "BLOCKING",
                    f"The locked stay {stay.hotel_id} in {stay.city} would no longer fit the "
                    f"time spent in {stay.city}.",
                    cities=[stay.city],
                    dates=[stay.check_in, stay.check_out],
                )
            )
    return cards


def _date_shift_cards(
    stays: Sequence[StayWindow],
    proposed: Sequence[StayWindow],
    hotel: HotelStayConstraint,
) -> list[ImpactCard]:
    changes: list[str] = []
    cities: list[str] = []
    dates: list[date] = []
    largest_shift = 0
    for before, after in zip(stays, proposed):
        if before.arrival != after.arrival:
            changes.append(
                f"arrive in {after.city} on {after.arrival.isoformat()} instead of {before.arrival.isoformat()}"
            )
            largest_shift = max(largest_shift, abs((after.arrival - before.arrival).days))
            cities.append(after.city)
            dates.append(after.arrival)
        if before.departure != after.departure:
            changes.append(
                f"leave {after.city} on {after.departure.isoformat()} instead of {before.departure.isoformat()}"
            )
            largest_shift = max(largest_shift, abs((after.departure - before.departure).days))
            cities.append(after.city)
            dates.append(after.departure)
    if not changes:
        return []

    absorbable = hotel.flexibility == "DATE_RANGE" or (
        hotel.flexibility == "PLUS_MINUS_1_DAY" and largest_shift <= 1
    )
    summary = "Presence dates shift: " + "; ".join(changes) + "."
    if absorbable:
        summary += " The booking's flexible dates may absorb this."
    return [_card("DATE_PRESENCE_SHIFT", 1 if absorbable else 2, summary, cities=cities, dates=dates)]


def _night_shift_cards(
    stays: Sequence[StayWindow],
    proposed: Sequence[StayWindow],
) -> list[ImpactCard]:
    shifts = [(before, after) for before, after in zip(stays, proposed) if before.nights != after.nights]
    if not shifts:
        return []
    collapsed = any(after.nights == 0 and before.nights > 0 for before, after in shifts)
    summary = "Night counts change: " + ", ".join(
        f"{after.city} {before.nights} → {after.nights}" for before, after in shifts
    ) + "."
    return [
        _card(
            "NIGHT_COUNT_SHIFT",
            3 if collapsed else 2,
            summary,
            cities=[after.city for _, after in shifts],
            dates=[after.arrival for _, after in shifts],
        )
    ]


def _structure_cards(
    baseline: StructuralRoute,
    stays: Sequence[StayWindow],
    proposed: Sequence[StayWindow],
) -> list[ImpactCard]:
    start = baseline.outbound_flight.date
    base_legs = [leg for leg in baseline.ground_route if leg.role == "BASE"]
    cards: list[ImpactCard] = []

    moved: list[str] = []
    moved_cities: list[str] = []
    moved_dates: list[date] = []
    for position, leg in enumerate(base_legs):
        new_offset = (proposed[position].departure - start).days
        if new_offset == leg.departure_day_offset:
            continue
        moved.append(f"{leg.from_city} → {leg.to_city} day {leg.departure_day_offset} → day {new_offset}")
        moved_cities.extend([leg.from_city, leg.to_city])
        moved_dates.append(proposed[position].departure)
    if moved:
        cards.append(
            _card(
                "ROUTE_STRUCTURE_CHANGE",
                2,
                f"{len(moved)} ground leg(s) move to a different day: " + "; ".join(moved) + ".",
                cities=moved_cities,
                dates=moved_dates,
            )
        )

    last = len(proposed) - 1
    for position, (before, after) in enumerate(zip(stays, proposed)):
        if not (before.nights > 0 and after.nights == 0):
            continue
        neighbours: list[str] = []
        if position > 0:
            neighbours.append(f"{proposed[position - 1].city} → {after.city}")
        if position < last:
            neighbours.append(f"{after.city} → {proposed[position + 1].city}")
        legs_text = " and ".join(neighbours) if neighbours else "its connections"
        cards.append(
            _card(
                "ROUTE_STRUCTURE_CHANGE",
                3,
                f"{after.city} becomes a same-day pass-through; {legs_text} would run on "
                f"{after.arrival.isoformat()}.",
                cities=[after.city],
                dates=[after.arrival],
            )
        )
    return cards


def _time_stress_cards(
    baseline: StructuralRoute,
    stays: Sequence[StayWindow],
    proposed: Sequence[StayWindow],
) -> list[ImpactCard]:
    issues: list[str] = []
    cities: list[str] = []
    dates: list[date] = []
    for before, after in zip(stays, proposed):
        if before.nights > 1 and after.nights <= 1:
            issues.append(f"only {after.nights} night(s) left in {after.city}")
            cities.append(after.city)
            dates.append(after.arrival)

    start = baseline.outbound_flight.date
    for leg in baseline.ground_route:
        if leg.role != "EXCURSION":
            continue
        day = start + timedelta(days=leg.departure_day_offset)
        if _hosts_day(stays, leg.from_city, day) and not _hosts_day(proposed, leg.from_city, day):
            issues.append(f"day trip {leg.from_city} → {leg.to_city} on {day.isoformat()} no longer fits")
            cities.extend([leg.from_city, leg.to_city])
            dates.append(day)

    if not issues:
        return []
    return [
        _card(
            "TIME_STRESS",
            1,
            "Schedule gets tighter: " + "; ".join(issues) + ".",
            cities=cities,
            dates=dates,
        )
    ]


def _uncovered_night_cards(stay: StayWindow, hotel: HotelStayConstraint) -> list[ImpactCard]:
    if stay.nights <= hotel.nights:
        return []
    uncovered = [
        stay.arrival + timedelta(days=offset)
        for offset in range(stay.nights)
        if not hotel.check_in <= stay.arrival + timedelta(days=offset) < hotel.check_out
    ]
    return [
        _card(
            "UNCOVERED_NIGHTS",
            1,
            f"{hotel.hotel_id} covers {hotel.nights} of {stay.nights} nights in {stay.city}; "
            f"{len(uncovered)} night(s) still need accommodation.",
            cities=[stay.city],
            dates=uncovered,
        )
    ]


def _holds_locked(windows: Sequence[StayWindow], stay: LockedHotelStay) -> bool:
    return any(
        same_city(window.city, stay.city) and window.covers(stay.check_in, stay.check_out)
        for window in windows
    )


def _hosts_day(windows: Sequence[StayWindow], city: str, day: date) -> bool:
    return any(
        same_city(window.city, city) and window.arrival <= day <= window.departure
        for window in windows
    )
