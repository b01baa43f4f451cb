"""Unit tests for request and date guardrails."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from routeoptimizer.guardrails import (
    DateGuardrailError,
    RequestValidationError,
    parse_date_expression,
    resolve_weekend_range,
    validate_date_range,
    validate_hotel_impact_request,
    validate_non_overlapping_stays,
    validate_optimizer_request,
)


FIXED_NOW_TS = datetime.fromisoformat("2026-02-16T10:30:00+00:00")
TIMEZONE = "Europe/Rome"


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "origin_city": "Zurich",
        "origin_country_code": "CH",
        "start_date": "2026-06-01",
        "end_date": "2026-06-08",
        "stops": [{"city": "Vienna", "nights": 3}, {"city": "Munich", "nights": 4}],
    }
    payload.update(overrides)
    return payload


def test_parse_absolute_date_expression() -> None:
    parsed = parse_date_expression("2026-03-10", FIXED_NOW_TS, TIMEZONE)
    assert parsed == date(2026, 3, 10)


def test_parse_rejects_impossible_calendar_date() -> None:
    with pytest.raises(DateGuardrailError, match="Invalid calendar date"):
        parse_date_expression("2026-02-30", FIXED_NOW_TS, TIMEZONE)


def test_parse_relative_in_two_weeks_is_deterministic() -> None:
    parsed = parse_date_expression("in two weeks", FIXED_NOW_TS, TIMEZONE)
    assert parsed == date(2026, 3, 2)


def test_resolve_next_weekend_range_is_deterministic() -> None:
    saturday, sunday = resolve_weekend_range("next weekend", FIXED_NOW_TS, TIMEZONE)
    assert saturday == date(2026, 2, 28)
    assert sunday == date(2026, 3, 1)


def test_validate_date_range_rejects_end_before_start() -> None:
    with pytest.raises(DateGuardrailError, match="before"):
        validate_date_range(date(2026, 3, 5), date(2026, 3, 4))


def test_validate_date_range_has_no_length_cap_by_default() -> None:
    validate_date_range(date(2026, 6, 1), date(2026, 7, 31))
    validate_date_range(date(2026, 1, 1), date(2026, 12, 31))


def test_validate_date_range_enforces_opt_in_maximum() -> None:
    with pytest.raises(DateGuardrailError, match="exceeds maximum"):
        validate_date_range(date(2026, 3, 1), date(2026, 4, 15), max_trip_days=20)


def test_validate_optimizer_request_accepts_long_trip() -> None:
    request = validate_optimizer_request(_payload(start_date="2026-06-01", end_date="2026-07-31"))
    assert (request.end_date - request.start_date).days + 1 == 61


def test_validate_non_overlapping_stays_allows_touching_but_not_overlap() -> None:
    validate_non_overlapping_stays(
        [(date(2026, 3, 10), date(2026, 3, 12)), (date(2026, 3, 12), date(2026, 3, 15))]
    )
    with pytest.raises(DateGuardrailError, match="overlap"):
        validate_non_overlapping_stays(
            [(date(2026, 3, 10), date(2026, 3, 13)), (date(2026, 3, 12), date(2026, 3, 15))]
        )


def test_validate_optimizer_request_accepts_well_formed_payload() -> None:
    request = validate_optimizer_request(_payload())
    assert request.origin_city == "Zurich"
    assert [stop.city for stop in request.stops] == ["Vienna", "Munich"]


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"origin_city": ""}, "origin_city is required"),
        ({"start_date": None}, "start_date is required"),
        ({"stops": []}, "stops must be a non-empty list"),
        ({"end_date": "2026-05-30"}, "before"),
        ({"stops": [{"city": "Vienna", "nights": -2}]}, "stops"),
    ],
)
def test_validate_optimizer_request_rejects_caller_errors(overrides: dict[str, object], message: str) -> None:
    with pytest.raises(RequestValidationError, match=message):
        validate_optimizer_request(_payload(**overrides))


def test_validate_optimizer_request_rejects_non_mapping() -> None:
    with pytest.raises(RequestValidationError, match="JSON object"):
        validate_optimizer_request(["Vienna"])  # type: ignore[arg-type]


def test_fixed_anchor_dates_must_match_trip_window() -> None:
    anchor = {"from_city": "Zurich", "to_city": "Vienna", "date": "2026-06-02"}
    with pytest.raises(RequestValidationError, match="outbound_flight_anchor.date must equal start_date"):
        validate_optimizer_request(_payload(outbound_flight_anchor=anchor))


def _baseline_payload() -> dict[str, object]:
    return {
        "id": "route-base",
        "summary": "Vienna → Munich",
        "outbound_flight": {"from_city": "Zurich", "to_city": "Vienna", "date": "2026-06-01"},
        "inbound_flight": {"from_city": "Munich", "to_city": "Zurich", "date": "2026-06-08"},
        "ground_route": [
            {"from_city": "Vienna", "to_city": "Munich", "departure_day_offset": 3},
        ],
    }


def test_validate_hotel_impact_request_parses_models() -> None:
    baseline, hotel, locked = validate_hotel_impact_request(
        {
            "baseline_route": _baseline_payload(),
            "hotel": {
                "hotel_id": "h-1",
                "city": "Vienna",
                "check_in": "2026-06-01",
                "check_out": "2026-06-04",
                "nights": 3,
            },
        }
    )
    assert baseline.id == "route-base"
    assert hotel.flexibility == "FIXED"
    assert locked == []


def test_validate_hotel_impact_request_rejects_inconsistent_nights() -> None:
    with pytest.raises(RequestValidationError, match="nights"):
        validate_hotel_impact_request(
            {
                "baseline_route": _baseline_payload(),
                "hotel": {
                    "hotel_id": "h-1",
                    "city": "Vienna",
                    "check_in": "2026-06-01",
                    "check_out": "2026-06-04",
                    "nights": 2,
                },
            }
        )


def test_validate_hotel_impact_request_requires_hotel_fields() -> None:
    with pytest.raises(RequestValidationError, match="hotel.check_out is required"):
        validate_hotel_impact_request(
            {
                "baseline_route": _baseline_payload(),
                "hotel": {"hotel_id": "h-1", "city": "Vienna", "check_in": "2026-06-01", "nights": 3},
            }
        )
