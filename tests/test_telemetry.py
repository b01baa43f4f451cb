"""Telemetry baseline tests."""

from __future__ import annotations

import json
import os
import subprocess
import sys

from routeoptimizer.telemetry import record_attributes


def _run_demo_with_env(extra_env: dict[str, str]) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    env.update({"ROUTEOPT_NOW_TS": "2026-02-17T10:00:00Z"})
    env.update(extra_env)
    return subprocess.run(
        [sys.executable, "-m", "routeoptimizer", "demo"],
        capture_output=True,
        text=True,
        check=False,
        env=env,
    )


def test_demo_runs_with_tracing_disabled() -> None:
    completed = _run_demo_with_env({"ROUTEOPT_TRACING_ENABLED": "0"})
    assert completed.returncode == 0
    payload = json.loads(completed.stdout)
    assert payload["status"] == "completed"
    assert "[trace]" not in completed.stderr


def test_demo_runs_with_compact_console_tracing() -> None:
    completed = _run_demo_with_env(
        {
            "ROUTEOPT_TRACING_ENABLED": "1",
            "ROUTEOPT_TRACING_EXPORTER": "console",
        }
    )
    assert completed.returncode == 0
    payload = json.loads(completed.stdout)
    assert payload["status"] == "completed"
    assert "[trace] optimizer.generate" in completed.stderr
    assert "candidates=5" in completed.stderr


def test_record_attributes_ignores_missing_span_and_none_values() -> None:
    record_attributes(None, {"route.options": 3})

    class FakeSpan:
        def __init__(self) -> None:
            self.attributes: dict[str, object] = {}

        def set_attribute(self, key: str, value: object) -> None:
            self.attributes[key] = value

    span = FakeSpan()
    record_attributes(span, {"route.options": 3, "route.top_pricing_source": None})
    assert span.attributes == {"route.options": 3}
