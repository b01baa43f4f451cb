"""Command line interface for the route optimizer."""

from __future__ import annotations

import argparse
from datetime import date, datetime, timedelta, timezone
import json
import logging
import os
from pathlib import Path
from typing import Any, Sequence

from routeoptimizer.guardrails import (
    RequestValidationError,
    parse_date_expression,
    validate_date_range,
)
from routeoptimizer.pipeline_runner import run_hotel_impact, run_optimizer
from routeoptimizer.pricing import OfflinePricingCollaborator
from routeoptimizer.telemetry import start_span

EXIT_OK = 0
EXIT_INVALID_REQUEST = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routeoptimizer",
        description="Multi-city route optimizer CLI.",
    )
    subparsers = parser.add_subparsers(dest="command")

    optimize_parser = subparsers.add_parser(
        "optimize",
        help="Rank route options for a request file.",
    )
    optimize_parser.add_argument("request", help="Path to a JSON optimization request.")
    optimize_parser.add_argument("--start", default=None, help="Override start date (ISO or natural language).")
    optimize_parser.add_argument("--end", default=None, help="Override end date (ISO or natural language).")
    optimize_parser.add_argument(
        "--timezone",
        default=None,
        help="IANA timezone for date expressions (defaults to ROUTEOPT_TIMEZONE or UTC).",
    )
    _add_format_argument(optimize_parser)

    hotel_parser = subparsers.add_parser(
        "hotel-impact",
        help="Assess a hotel booking against a baseline route.",
    )
    hotel_parser.add_argument("request", help="Path to a JSON hotel impact request.")
    _add_format_argument(hotel_parser)

    demo_parser = subparsers.add_parser(
        "demo",
        help="Optimize a built-in three-city request with offline pricing.",
    )
    _add_format_argument(demo_parser)
    return parser


def _add_format_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=["json", "text"],
        default="json",
        help="Output format.",
    )


def configure_logging() -> None:
    level_name = os.getenv("ROUTEOPT_LOG_LEVEL", "WARNING").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_now() -> datetime:
    raw = os.getenv("ROUTEOPT_NOW_TS")
    if raw:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    return datetime.now(timezone.utc)


def load_request(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise RequestValidationError(f"Cannot read request file '{path}': {exc.strerror}") from exc
    except json.JSONDecodeError as exc:
        raise RequestValidationError(f"Request file '{path}' is not valid JSON: {exc.msg}") from exc


def apply_date_overrides(
    payload: Any,
    *,
    start: str | None,
    end: str | None,
    timezone_name: str,
    now_ts: datetime,
) -> Any:
    """Replace request dates; fixed flight anchors move with them."""
    if not isinstance(payload, dict) or (start is None and end is None):
        return payload
    updated = dict(payload)
    if start is not None:
        start_date = parse_date_expression(start, now_ts, timezone_name)
        updated["start_date"] = start_date.isoformat()
        _move_anchor(updated, "outbound_flight_anchor", start_date)
    if end is not None:
        end_date = parse_date_expression(end, now_ts, timezone_name)
        updated["end_date"] = end_date.isoformat()
        _move_anchor(updated, "inbound_flight_anchor", end_date)
    if start is not None and end is not None:
        validate_date_range(
            date.fromisoformat(updated["start_date"]),
            date.fromisoformat(updated["end_date"]),
        )
    return updated


def _move_anchor(payload: dict[str, Any], key: str, new_date: date) -> None:
    anchor = payload.get(key)
    if isinstance(anchor, dict):
        payload[key] = {**anchor, "date": new_date.isoformat()}


def build_demo_request(now_ts: datetime) -> dict[str, Any]:
    start_date = now_ts.date() + timedelta(days=30)
    end_date = start_date + timedelta(days=7)
    return {
        "origin_city": "Zurich",
        "origin_country_code": "CH",
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "stops": [
            {"city": "Vienna", "country_code": "AT", "nights": 3},
            {"city": "Salzburg", "country_code": "AT", "nights": 2},
            {"city": "Munich", "country_code": "DE", "nights": 2},
        ],
    }


def run_optimize_command(args: argparse.Namespace) -> dict[str, Any]:
    timezone_name = args.timezone or os.getenv("ROUTEOPT_TIMEZONE", "UTC")
    try:
        payload = apply_date_overrides(
            load_request(args.request),
            start=args.start,
            end=args.end,
            timezone_name=timezone_name,
            now_ts=resolve_now(),
        )
    except RequestValidationError as exc:
        return {"status": "invalid_request", "error": str(exc)}
    return run_optimizer(payload)


def run_hotel_impact_command(args: argparse.Namespace) -> dict[str, Any]:
    try:
        payload = load_request(args.request)
    except RequestValidationError as exc:
        return {"status": "invalid_request", "error": str(exc)}
    return run_hotel_impact(payload)


def run_demo() -> dict[str, Any]:
    with start_span("optimizer.demo"):
        return run_optimizer(
            build_demo_request(resolve_now()),
            collaborator=OfflinePricingCollaborator(),
        )


def render_text(payload: dict[str, Any]) -> str:
    if payload.get("status") != "completed":
        return f"Invalid request: {payload.get('error', '')}"
    if "report" in payload:
        report = payload["report"]
        lines = [f"Hotel {report['hotel']['hotel_id']} compatible: {'yes' if report['compatible'] else 'no'}"]
        lines.extend(f"[{card['severity']}] {card['type']}: {card['summary']}" for card in report["cards"])
        return "\n".join(lines)
    routes = payload.get("routes") or []
    if not routes:
        return "No valid routes for this request."
    return "\n".join(
        f"{route['score']:>3} {route['title']}: {route['summary']} "
        f"({route['metrics']['total_price']:.2f}, {route['metrics']['pricing_source']}, {route['confidence']})"
        for route in routes
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    configure_logging()
    if args.command == "optimize":
        payload = run_optimize_command(args)
    elif args.command == "hotel-impact":
        payload = run_hotel_impact_command(args)
    else:
        payload = run_demo()

    if args.format == "text":
        print(render_text(payload))
    else:
        print(json.dumps(payload, ensure_ascii=True))
    return EXIT_OK if payload.get("status") == "completed" else EXIT_INVALID_REQUEST
