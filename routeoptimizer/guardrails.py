"""Request and date guardrails applied before any optimization stage runs."""

from __future__ import annotations

from datetime import date, datetime, timedelta
import re
from typing import Any, Mapping
from zoneinfo import ZoneInfo

import dateparser
from pydantic import ValidationError

from routeoptimizer.contracts import (
    HotelStayConstraint,
    LockedHotelStay,
    RouteOptimizerInput,
    StructuralRoute,
)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class RequestValidationError(ValueError):
    """Raised when a caller-supplied request is malformed or incomplete."""


class DateGuardrailError(RequestValidationError):
    """Raised when date parsing/validation fails."""


def _to_local_now(now_ts: datetime, timezone: str) -> datetime:
    tz = ZoneInfo(timezone)
    if now_ts.tzinfo is None:
        return now_ts.replace(tzinfo=tz)
    return now_ts.astimezone(tz)


def parse_date_expression(expression: str, now_ts: datetime, timezone: str) -> date:
    text = expression.strip()
    if not text:
        raise DateGuardrailError("Date expression cannot be empty.")

    if _ISO_DATE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError as exc:
            raise DateGuardrailError(f"Invalid calendar date: '{expression}'.") from exc

    normalized = " ".join(text.lower().split())
    local_now = _to_local_now(now_ts, timezone)

    if normalized in {"next weekend", "this weekend"}:
        return resolve_weekend_range(normalized, now_ts, timezone)[0]

    parsed = dateparser.parse(
        text,
        settings={
            "RELATIVE_BASE": local_now,
            "TIMEZONE": timezone,
            "TO_TIMEZONE": timezone,
            "RETURN_AS_TIMEZONE_AWARE": True,
            "PREFER_DATES_FROM": "future",
            "PREFER_DAY_OF_MONTH": "first",
        },
    )
    if parsed is None:
        raise DateGuardrailError(f"Could not parse date expression: '{expression}'.")

    return parsed.astimezone(ZoneInfo(timezone)).date()


def resolve_weekend_range(expression: str, now_ts: datetime, timezone: str) -> tuple[date, date]:
    normalized = " ".join(expression.lower().split())
    if normalized not in {"next weekend", "this weekend"}:
        raise DateGuardrailError(
            "Weekend resolver supports only 'this weekend' and 'next weekend'."
        )

    local_now = _to_local_now(now_ts, timezone)
    days_until_saturday = (5 - local_now.weekday()) % 7
    saturday = local_now.date() + timedelta(days=days_until_saturday)
    if normalized == "next weekend":
        saturday = saturday + timedelta(days=7)
    sunday = saturday + timedelta(days=1)
    return saturday, sunday


def validate_date_range(
    start_date: date,
    end_date: date,
    *,
    min_trip_days: int = 1,
    max_trip_days: int | None = None,
) -> None:
    """Check date order, plus an optional length window the caller opts into."""
    if min_trip_days <= 0:
        raise DateGuardrailError("min_trip_days must be > 0.")
    if max_trip_days is not None and max_trip_days < min_trip_days:
        raise DateGuardrailError("max_trip_days must be >= min_trip_days.")
    if end_date < start_date:
        raise DateGuardrailError(
            f"Invalid date range: end_date ({end_date.isoformat()}) is before "
            f"start_date ({start_date.isoformat()})."
        )

    trip_days = (end_date - start_date).days + 1
    if trip_days < min_trip_days:
        raise DateGuardrailError(
            f"Trip duration {trip_days} day(s) is below minimum {min_trip_days}."
        )
    if max_trip_days is not None and trip_days > max_trip_days:
        raise DateGuardrailError(
            f"Trip duration {trip_days} day(s) exceeds maximum {max_trip_days}."
        )


def validate_non_overlapping_stays(stays: list[tuple[date, date]]) -> None:
    """Stays may touch (check-out day equals next check-in) but never overlap."""
    sorted_stays = sorted(stays, key=lambda stay: stay[0])
    for index in range(1, len(sorted_stays)):
        previous_end = sorted_stays[index - 1][1]
        current_start = sorted_stays[index][0]
        if current_start < previous_end:
            raise DateGuardrailError("Locked hotel stays overlap each other.")


def validate_optimizer_request(payload: Mapping[str, Any]) -> RouteOptimizerInput:
    """Turn a raw request mapping into a validated RouteOptimizerInput."""
    if not isinstance(payload, Mapping):
        raise RequestValidationError("request body must be a JSON object")
    _require_text(payload, "origin_city")
    _require_text(payload, "start_date")
    _require_text(payload, "end_date")
    stops = payload.get("stops")
    if not isinstance(stops, list) or not stops:
        raise RequestValidationError("stops must be a non-empty list of cities")

    request = _validate_model(RouteOptimizerInput, payload)
    validate_date_range(request.start_date, request.end_date)

    outbound = request.outbound_flight_anchor
    if outbound is not None and outbound.date != request.start_date:
        raise RequestValidationError("outbound_flight_anchor.date must equal start_date")
    inbound = request.inbound_flight_anchor
    if inbound is not None and inbound.date != request.end_date:
        raise RequestValidationError("inbound_flight_anchor.date must equal end_date")
    return request


def validate_hotel_stay(hotel: HotelStayConstraint) -> None:
    if hotel.check_out <= hotel.check_in:
        raise DateGuardrailError(
            f"check_out ({hotel.check_out.isoformat()}) must be after "
            f"check_in ({hotel.check_in.isoformat()})."
        )
    span_nights = (hotel.check_out - hotel.check_in).days
    if hotel.nights != span_nights:
        raise RequestValidationError(
            f"nights ({hotel.nights}) does not match the check-in/check-out span ({span_nights})."
        )


def validate_hotel_impact_request(
    payload: Mapping[str, Any],
) -> tuple[StructuralRoute, HotelStayConstraint, list[LockedHotelStay]]:
    if not isinstance(payload, Mapping):
        raise RequestValidationError("request body must be a JSON object")
    baseline_raw = payload.get("baseline_route")
    if not isinstance(baseline_raw, Mapping):
        raise RequestValidationError("baseline_route is required and must be an object")
    hotel_raw = payload.get("hotel")
    if not isinstance(hotel_raw, Mapping):
        raise RequestValidationError("hotel is required and must be an object")
    for key in ("hotel_id", "city", "check_in", "check_out", "nights"):
        if hotel_raw.get(key) in (None, ""):
            raise RequestValidationError(f"hotel.{key} is required")
    locked_raw = payload.get("locked_stays") or []
    if not isinstance(locked_raw, list):
        raise RequestValidationError("locked_stays must be a list")

    baseline = _validate_model(StructuralRoute, baseline_raw)
    hotel = _validate_model(HotelStayConstraint, hotel_raw)
    locked = [_validate_model(LockedHotelStay, item) for item in locked_raw]
    validate_hotel_stay(hotel)
    validate_non_overlapping_stays([(stay.check_in, stay.check_out) for stay in locked])
    return baseline, hotel, locked


def _require_text(payload: Mapping[str, Any], key: str) -> None:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise RequestValidationError(f"{key} is required and must be a string")


def _validate_model(model: Any, payload: Any) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid value')}" if location else error.get("msg", ""))
    return "; ".join(parts) or "invalid request"
