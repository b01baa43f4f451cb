"""Stage C: deterministic weighted scoring and labeling of evaluated routes."""

from __future__ import annotations

from typing import Sequence

from routeoptimizer.contracts import EvaluatedRoute, OptimizedRouteOption, RouteMetrics
from routeoptimizer.data_confidence import DataConfidencePolicy
from routeoptimizer.invalidation_filter import ensure_no_hard_invalidations

PRICE_WEIGHT = 0.6
TIME_WEIGHT = 0.3
TRANSFER_WEIGHT = 0.1
MINUTES_PER_TRANSFER = 60
MAX_OPTIONS = 5
BEST_SCORE = 100
WORST_SCORE = 20

_TITLES = ("Recommended route", "Great value alternative")
_FALLBACK_TITLE = "Alternative route"


def raw_cost(metrics: RouteMetrics) -> float:
    """Weighted cost; lower is better."""
    return (
        PRICE_WEIGHT * metrics.total_price
        + TIME_WEIGHT * metrics.total_travel_minutes
        + TRANSFER_WEIGHT * (metrics.total_transfers * MINUTES_PER_TRANSFER)
    )


def display_score(raw: float, best: float, worst: float) -> int:
    if worst == best:
        return BEST_SCORE
    fraction = (raw - best) / (worst - best)
    return int(round(BEST_SCORE - (BEST_SCORE - WORST_SCORE) * fraction))


class RouteRanker:
    def __init__(self, *, policy: DataConfidencePolicy | None = None) -> None:
        self._policy = policy or DataConfidencePolicy()

    def rank(self, evaluated: Sequence[EvaluatedRoute]) -> list[OptimizedRouteOption]:
        ensure_no_hard_invalidations((item.structural for item in evaluated), stage="rank")
        if not evaluated:
            return []

        # sorted() is stable, so equal costs keep generation order.
        ordered = sorted(evaluated, key=lambda item: raw_cost(item.metrics))
        retained = ordered[:MAX_OPTIONS]
        costs = [raw_cost(item.metrics) for item in retained]
        best, worst = costs[0], costs[-1]

        options: list[OptimizedRouteOption] = []
        for index, (item, cost) in enumerate(zip(retained, costs)):
            explanations = (
                *item.explanations,
                f"Ranked #{index + 1} of {len(retained)} by weighted cost "
                "(price 60%, time 30%, transfers 10%).",
            )
            options.append(
                OptimizedRouteOption(
                    id=item.structural.id,
                    title=_TITLES[index] if index < len(_TITLES) else _FALLBACK_TITLE,
                    summary=item.structural.summary,
                    structural=item.structural,
                    metrics=item.metrics,
                    explanations=explanations,
                    confidence=self._policy.confidence_for(index, item.metrics.pricing_source),
                    score=display_score(cost, best, worst),
                )
            )
        return options
