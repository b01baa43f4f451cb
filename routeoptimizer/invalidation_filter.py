"""Gate between structural generation and any pricing or ranking work."""

from __future__ import annotations

from typing import Iterable

from routeoptimizer.contracts import StructuralRoute
from routeoptimizer.itinerary_impact import is_hard_invalidated


class InvariantViolationError(RuntimeError):
    """Raised when a stage receives input that an earlier stage should have removed."""


def partition_candidates(
    routes: Iterable[StructuralRoute],
) -> tuple[list[StructuralRoute], list[StructuralRoute]]:
    """Split candidates into (valid, discarded), preserving generation order."""
    valid: list[StructuralRoute] = []
    discarded: list[StructuralRoute] = []
    for route in routes:
        (discarded if is_hard_invalidated(route) else valid).append(route)
    return valid, discarded


def filter_hard_invalidations(routes: Iterable[StructuralRoute]) -> list[StructuralRoute]:
    return partition_candidates(routes)[0]


def ensure_no_hard_invalidations(routes: Iterable[StructuralRoute], *, stage: str) -> None:
    for route in routes:
        if is_hard_invalidated(route):
            reasons = ", ".join(item.reason for item in route.hard_invalidations)
            raise InvariantViolationError(
                f"Route {route.id} reached stage '{stage}' with hard invalidations: {reasons}."
            )
