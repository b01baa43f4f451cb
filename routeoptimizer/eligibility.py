"""Trip scope classification and long-haul flight-anchor eligibility."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from routeoptimizer.contracts import RouteOptimizerInput, RouteStop, TripScope
from routeoptimizer.reference_data import (
    CAPITAL_CITIES,
    NEAREST_ELIGIBLE_HUB,
    PRIMARY_ORIGIN_CITIES,
    TIER1_HUBS,
    WHITELISTED_GATEWAYS,
    city_in,
    country_of_city,
    lookup_city,
    region_of_country,
)

RegionResolver = Callable[[str, str | None], str | None]


@dataclass(frozen=True)
class EligibilityVerdict:
    eligible: bool
    reason: str


class AnchorEligibility(Protocol):
    """Decides whether a city may host a flight anchor for a given trip scope."""

    def __call__(self, city: str, scope: TripScope) -> EligibilityVerdict: ...


class HubListEligibility:
    """Default predicate: on long-haul trips only capitals, tier-1 hubs and
    whitelisted gateways may host a flight anchor. Short-haul trips accept
    every city.
    """

    def __init__(
        self,
        *,
        capitals: Iterable[str] | None = None,
        hubs: Iterable[str] | None = None,
        gateways: Iterable[str] | None = None,
    ) -> None:
        self._capitals = _as_keys(capitals, CAPITAL_CITIES)
        self._hubs = _as_keys(hubs, TIER1_HUBS)
        self._gateways = _as_keys(gateways, WHITELISTED_GATEWAYS)

    def __call__(self, city: str, scope: TripScope) -> EligibilityVerdict:
        if scope == "short-haul":
            return EligibilityVerdict(True, "short-haul trip: every city can host a flight")
        if city_in(self._capitals, city):
            return EligibilityVerdict(True, f"{city} is a capital city")
        if city_in(self._hubs, city):
            return EligibilityVerdict(True, f"{city} is a tier-1 hub")
        if city_in(self._gateways, city):
            return EligibilityVerdict(True, f"{city} is a whitelisted long-haul gateway")
        return EligibilityVerdict(False, f"{city} has no recognised long-haul connections")


def _as_keys(values: Iterable[str] | None, default: frozenset[str]) -> frozenset[str]:
    if values is None:
        return default
    return frozenset(" ".join(value.strip().lower().split()) for value in values)


def region_of_city(city: str, country_code: str | None = None) -> str | None:
    return region_of_country(country_code or country_of_city(city))


def dominant_stop_region(
    stops: Iterable[RouteStop],
    *,
    region_of: RegionResolver = region_of_city,
) -> str | None:
    regions = [region_of(stop.city, stop.country_code) for stop in stops]
    known = [region for region in regions if region is not None]
    if not known:
        return None
    counts = Counter(known)
    top = max(counts.values())
    # First occurrence wins a tie.
    return next(region for region in known if counts[region] == top)


def determine_trip_scope(
    request: RouteOptimizerInput,
    *,
    region_of: RegionResolver = region_of_city,
) -> TripScope:
    origin_region = region_of(request.origin_city, request.origin_country_code)
    stop_region = dominant_stop_region(request.stops, region_of=region_of)
    if origin_region is None or stop_region is None:
        return "short-haul"
    return "short-haul" if origin_region == stop_region else "long-haul"


def nearest_eligible_hub(
    city: str,
    scope: TripScope,
    eligibility: AnchorEligibility,
) -> str | None:
    hub = lookup_city(NEAREST_ELIGIBLE_HUB, city)
    if hub is None:
        return None
    if not eligibility(hub, scope).eligible:
        return None
    return hub


def normalize_home_city(
    city: str,
    scope: TripScope,
    eligibility: AnchorEligibility,
) -> str | None:
    """Return the departure hub for a secondary home city, or None to keep it."""
    if scope != "long-haul":
        return None
    if city_in(PRIMARY_ORIGIN_CITIES, city):
        return None
    if eligibility(city, scope).eligible:
        return None
    return nearest_eligible_hub(city, scope, eligibility)
