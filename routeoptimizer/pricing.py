"""Pricing collaborators consumed by the concrete route evaluator."""

from __future__ import annotations

import asyncio
from datetime import date
import json
import logging
import re
import time
from typing import Any, Callable, Protocol, TypeVar
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from routeoptimizer.cache import MemoryCache, RateLimiter, make_cache_key
from routeoptimizer.contracts import FlightAnchor, GroundLeg, PriceQuote
from routeoptimizer.reference_data import airport_code_for

logger = logging.getLogger(__name__)

T = TypeVar("T")
Fetcher = Callable[[Request], dict[str, Any]]

_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


class PricingClientError(RuntimeError):
    """Raised when the live pricing provider cannot be queried safely."""


class PricingCollaborator(Protocol):
    """Price/availability source for flight anchors and ground legs."""

    async def quote_flight(self, anchor: FlightAnchor) -> PriceQuote: ...

    async def quote_ground_leg(self, leg: GroundLeg, travel_date: date) -> PriceQuote: ...


class OfflinePricingCollaborator:
    """Answers every query with an explicit "unavailable" signal."""

    def __init__(self, reason: str = "Live pricing is not configured (offline mode).") -> None:
        self._reason = reason

    async def quote_flight(self, anchor: FlightAnchor) -> PriceQuote:
        return PriceQuote.unavailable(self._reason)

    async def quote_ground_leg(self, leg: GroundLeg, travel_date: date) -> PriceQuote:
        return PriceQuote.unavailable(self._reason)


def _default_fetcher(request: Request) -> dict[str, Any]:
    with urlopen(request, timeout=20) as response:  # nosec B310 - fixed trusted Duffel endpoint
        payload = json.loads(response.read().decode("utf-8"))
    if not isinstance(payload, dict):
        raise PricingClientError("Unexpected Duffel response shape.")
    return payload


class DuffelClient:
    """Minimal Duffel offer-request client."""

    BASE_URL = "https://api.duffel.com/air/offer_requests"

    def __init__(
        self,
        api_key: str,
        fetcher: Fetcher | None = None,
        *,
        api_version: str = "v2",
    ) -> None:
        if not api_key:
            raise PricingClientError("Duffel API key is required.")
        self._api_key = api_key
        self._fetcher = fetcher or _default_fetcher
        self._api_version = api_version

    def search_offers(
        self,
        *,
        origin_code: str,
        destination_code: str,
        departure_date: date,
        max_connections: int | None = None,
        departure_window: tuple[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        slice_payload: dict[str, Any] = {
            "origin": origin_code,
            "destination": destination_code,
            "departure_date": departure_date.isoformat(),
        }
        if departure_window is not None:
            slice_payload["departure_time"] = {"from": departure_window[0], "to": departure_window[1]}
        body = {
            "data": {
                "slices": [slice_payload],
                "passengers": [{"type": "adult"}],
                "cabin_class": "economy",
                "max_connections": 2 if max_connections is None else max_connections,
            }
        }
        request = Request(  # noqa: S310
            f"{self.BASE_URL}?return_offers=true",
            data=json.dumps(body).encode("utf-8"),
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Duffel-Version": self._api_version,
                "Authorization": f"Bearer {self._api_key}",
            },
        )
        payload = self._fetcher(request)
        data = payload.get("data")
        offers = data.get("offers") if isinstance(data, dict) else None
        if offers is None:
            offers = payload.get("offers")
        if not isinstance(offers, list):
            return []
        return [offer for offer in offers if isinstance(offer, dict)]


class FlightPricingTool:
    """Cached, rate-limited flight quotes on top of DuffelClient."""

    def __init__(
        self,
        client: DuffelClient,
        cache: MemoryCache | None = None,
        rate_limiter: RateLimiter | None = None,
        *,
        ttl_seconds: float = 15 * 60,
        max_wait_seconds: float = 2.0,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._cache = cache or MemoryCache(max_size=512)
        self._rate_limiter = rate_limiter or RateLimiter(rate_per_second=5.0, capacity=5.0)
        self._ttl_seconds = ttl_seconds
        self._max_wait_seconds = max_wait_seconds
        self._sleep_fn = sleep_fn

    def quote(self, anchor: FlightAnchor) -> PriceQuote:
        origin_code = airport_code_for(anchor.from_city)
        destination_code = airport_code_for(anchor.to_city)
        if not origin_code or not destination_code:
            return PriceQuote.unavailable(
                f"Unable to resolve airport codes for {anchor.from_city} or {anchor.to_city}."
            )

        window = None
        if anchor.time_window is not None:
            window = (
                anchor.time_window.earliest.strftime("%H:%M"),
                anchor.time_window.latest.strftime("%H:%M"),
            )
        cache_key = make_cache_key(
            "flight-quote",
            origin_code,
            destination_code,
            anchor.date.isoformat(),
            anchor.max_stops,
            window,
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            stats = self._cache.stats
            logger.debug("Quote cache hit for %s (hits=%d misses=%d)", cache_key, stats.hits, stats.misses)
            return PriceQuote.model_validate(cached)

        if not self._rate_limiter.acquire(max_wait_seconds=self._max_wait_seconds, sleep_fn=self._sleep_fn):
            return PriceQuote.unavailable("Pricing provider rate limit reached.")

        offers = _invoke_with_transient_retry(
            lambda: self._client.search_offers(
                origin_code=origin_code,
                destination_code=destination_code,
                departure_date=anchor.date,
                max_connections=anchor.max_stops,
                departure_window=window,
            ),
            sleep_fn=self._sleep_fn,
        )
        quote = summarize_offers(offers)
        self._cache.set(cache_key, quote.model_dump(mode="json"), ttl_seconds=self._ttl_seconds)
        return quote


class LivePricingCollaborator:
    """Async adapter running the blocking flight tool on worker threads."""

    def __init__(self, tool: FlightPricingTool) -> None:
        self._tool = tool

    async def quote_flight(self, anchor: FlightAnchor) -> PriceQuote:
        try:
            return await asyncio.to_thread(self._tool.quote, anchor)
        except (PricingClientError, URLError, TimeoutError, ValueError) as exc:
            logger.warning(
                "Live flight pricing failed for %s -> %s on %s: %s",
                anchor.from_city,
                anchor.to_city,
                anchor.date.isoformat(),
                exc,
            )
            return PriceQuote.unavailable(f"Pricing provider error: {_describe_error(exc)}")

    async def quote_ground_leg(self, leg: GroundLeg, travel_date: date) -> PriceQuote:
        return PriceQuote.unavailable("The live provider only prices flights.")


def summarize_offers(offers: list[dict[str, Any]]) -> PriceQuote:
    """Reduce provider offers to one quote: cheapest price, fastest duration."""
    priced: list[tuple[float, dict[str, Any]]] = []
    for offer in offers:
        amount = _to_float(offer.get("total_amount"))
        if amount is not None:
            priced.append((amount, offer))
    if not priced:
        return PriceQuote.unavailable("Provider returned no priced offers.")

    cheapest_amount, cheapest = min(priced, key=lambda item: item[0])
    highest_amount = max(amount for amount, _ in priced)
    currency = next(
        (str(offer["total_currency"]) for _, offer in priced if offer.get("total_currency")),
        None,
    )
    durations = [
        minutes
        for minutes in (parse_iso_duration_minutes(_offer_duration(offer)) for _, offer in priced)
        if minutes is not None
    ]
    return PriceQuote(
        available=True,
        source="live",
        price=cheapest_amount,
        currency=currency,
        duration_minutes=min(durations) if durations else None,
        stops=_offer_stops(cheapest),
        offer_count=len(offers),
        price_range=(cheapest_amount, highest_amount),
    )


def parse_iso_duration_minutes(value: str | None) -> float | None:
    if not value:
        return None
    match = _ISO_DURATION.match(value.strip())
    if not match or not any(match.groupdict().values()):
        return None
    parts = {key: int(raw) if raw else 0 for key, raw in match.groupdict().items()}
    return parts["days"] * 1440 + parts["hours"] * 60 + parts["minutes"] + parts["seconds"] / 60


def _offer_duration(offer: dict[str, Any]) -> str | None:
    duration = offer.get("total_duration")
    if duration:
        return str(duration)
    slices = offer.get("slices")
    if isinstance(slices, list) and slices and isinstance(slices[0], dict):
        first = slices[0].get("duration")
        return str(first) if first else None
    return None


def _offer_stops(offer: dict[str, Any]) -> int | None:
    slices = offer.get("slices")
    if not isinstance(slices, list) or not slices or not isinstance(slices[0], dict):
        return None
    segments = slices[0].get("segments")
    if not isinstance(segments, list) or not segments:
        return None
    return len(segments) - 1


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, HTTPError):
        return f"HTTP {exc.code}"
    return str(exc) or type(exc).__name__


def _invoke_with_transient_retry(
    func: Callable[[], T],
    *,
    max_attempts: int = 2,
    base_delay_seconds: float = 0.5,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> T:
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    for attempt in range(1, max_attempts + 1):
        try:
            return func()
        except Exception as exc:
            if not _is_retryable_transient_error(exc) or attempt >= max_attempts:
                raise
            sleep_fn(base_delay_seconds * (2 ** (attempt - 1)))
    raise RuntimeError("Unreachable retry state.")


def _is_retryable_transient_error(exc: Exception) -> bool:
    if isinstance(exc, HTTPError):
        return exc.code in {429, 500, 502, 503, 504}
    if isinstance(exc, URLError):
        return True
    return isinstance(exc, TimeoutError)
