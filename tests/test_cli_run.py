from __future__ import annotations

from datetime import datetime, timezone
import json

from routeoptimizer import cli


def _write_request(tmp_path, payload: object) -> str:  # type: ignore[no-untyped-def]
    path = tmp_path / "request.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def _payload() -> dict[str, object]:
    return {
        "origin_city": "Zurich",
        "start_date": "2026-06-01",
        "end_date": "2026-06-08",
        "stops": [{"city": "Vienna", "nights": 3}, {"city": "Munich", "nights": 4}],
        "outbound_flight_anchor": {"from_city": "Zurich", "to_city": "Vienna", "date": "2026-06-01"},
    }


def test_cli_optimize_command_invokes_pipeline(monkeypatch, capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    def fake_run_optimizer(payload):  # type: ignore[no-untyped-def]
        assert payload["origin_city"] == "Zurich"
        return {"status": "completed", "routes": [], "diagnostics": []}

    monkeypatch.setattr(cli, "run_optimizer", fake_run_optimizer)
    exit_code = cli.main(["optimize", _write_request(tmp_path, _payload())])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "completed"


def test_cli_date_overrides_move_fixed_anchors(monkeypatch, capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    seen: dict[str, object] = {}

    def fake_run_optimizer(payload):  # type: ignore[no-untyped-def]
        seen.update(payload)
        return {"status": "completed", "routes": [], "diagnostics": []}

    monkeypatch.setattr(cli, "run_optimizer", fake_run_optimizer)
    monkeypatch.setenv("ROUTEOPT_NOW_TS", "2026-02-16T10:30:00Z")
    exit_code = cli.main(
        [
            "optimize",
            _write_request(tmp_path, _payload()),
            "--start",
            "in two weeks",
            "--end",
            "2026-03-09",
            "--timezone",
            "Europe/Rome",
        ]
    )

    assert exit_code == 0
    assert seen["start_date"] == "2026-03-02"
    assert seen["end_date"] == "2026-03-09"
    assert seen["outbound_flight_anchor"]["date"] == "2026-03-02"  # type: ignore[index]
    capsys.readouterr()


def test_cli_invalid_request_exits_with_code_two(capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    exit_code = cli.main(["optimize", _write_request(tmp_path, {"origin_city": "Zurich"})])

    assert exit_code == 2
    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "invalid_request"
    assert "start_date" in payload["error"]


def test_cli_unreadable_request_file(capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    assert cli.main(["optimize", str(broken)]) == 2
    assert "not valid JSON" in capsys.readouterr().out


def test_cli_text_format_renders_one_line_per_option(monkeypatch, capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    def fake_run_optimizer(payload):  # type: ignore[no-untyped-def]
        return {
            "status": "completed",
            "routes": [
                {
                    "score": 100,
                    "title": "Recommended route",
                    "summary": "Vienna → Munich: Visit cities in the suggested order",
                    "confidence": "high",
                    "metrics": {"total_price": 580.0, "pricing_source": "mock"},
                }
            ],
            "diagnostics": [],
        }

    monkeypatch.setattr(cli, "run_optimizer", fake_run_optimizer)
    exit_code = cli.main(["optimize", _write_request(tmp_path, _payload()), "--format", "text"])

    assert exit_code == 0
    output = capsys.readouterr().out
    assert output.strip() == (
        "100 Recommended route: Vienna → Munich: Visit cities in the suggested order (580.00, mock, high)"
    )


def test_cli_hotel_impact_text_output(monkeypatch, capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    def fake_run_hotel_impact(payload):  # type: ignore[no-untyped-def]
        return {
            "status": "completed",
            "report": {
                "hotel": {"hotel_id": "h-1"},
                "compatible": False,
                "cards": [{"severity": "BLOCKING", "type": "INCOMPATIBLE_BOOKING", "summary": "Outside trip."}],
            },
        }

    monkeypatch.setattr(cli, "run_hotel_impact", fake_run_hotel_impact)
    exit_code = cli.main(["hotel-impact", _write_request(tmp_path, {}), "--format", "text"])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == [
        "Hotel h-1 compatible: no",
        "[BLOCKING] INCOMPATIBLE_BOOKING: Outside trip.",
    ]


def test_demo_request_is_anchored_to_now() -> None:
    request = cli.build_demo_request(datetime(2026, 2, 16, 10, 30, tzinfo=timezone.utc))

    assert request["start_date"] == "2026-03-18"
    assert request["end_date"] == "2026-03-25"
    assert len(request["stops"]) == 3
