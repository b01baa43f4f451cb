"""Environment-driven settings for the optimizer pipeline."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping


def load_env_file(path: str = ".env") -> None:
    """Best-effort .env loader without external dependencies."""
    env_path = Path(path)
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("\"'")
        if key and key not in os.environ:
            os.environ[key] = value


@dataclass(frozen=True)
class OptimizerSettings:
    max_candidates: int = 5
    pricing_concurrency: int = 4
    pricing_timeout_seconds: float = 10.0
    pipeline_timeout_seconds: float = 60.0
    quote_cache_ttl_seconds: float = 900.0
    duffel_api_key: str | None = None

    def __post_init__(self) -> None:
        if self.max_candidates < 1:
            raise ValueError("max_candidates must be >= 1")
        if self.pricing_concurrency < 1:
            raise ValueError("pricing_concurrency must be >= 1")
        if self.pricing_timeout_seconds <= 0:
            raise ValueError("pricing_timeout_seconds must be > 0")
        if self.pipeline_timeout_seconds <= 0:
            raise ValueError("pipeline_timeout_seconds must be > 0")

    @property
    def live_pricing_enabled(self) -> bool:
        return bool(self.duffel_api_key)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> OptimizerSettings:
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            max_candidates=_as_int(env, "ROUTEOPT_MAX_CANDIDATES", defaults.max_candidates),
            pricing_concurrency=_as_int(env, "ROUTEOPT_PRICING_CONCURRENCY", defaults.pricing_concurrency),
            pricing_timeout_seconds=_as_float(
                env, "ROUTEOPT_PRICING_TIMEOUT_SECONDS", defaults.pricing_timeout_seconds
            ),
            pipeline_timeout_seconds=_as_float(
                env, "ROUTEOPT_PIPELINE_TIMEOUT_SECONDS", defaults.pipeline_timeout_seconds
            ),
            quote_cache_ttl_seconds=_as_float(
                env, "ROUTEOPT_QUOTE_CACHE_TTL_SECONDS", defaults.quote_cache_ttl_seconds
            ),
            duffel_api_key=(env.get("DUFFEL_API_KEY") or "").strip() or None,
        )


def _as_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _as_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
