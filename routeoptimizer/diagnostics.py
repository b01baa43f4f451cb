"""Side-channel diagnostics emitted after each pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageEvent:
    stage: str
    candidate_ids: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.candidate_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "count": self.count,
            "candidate_ids": list(self.candidate_ids),
            "details": self.details,
        }


class DiagnosticsObserver(Protocol):
    def on_stage(self, event: StageEvent) -> None: ...


class LoggingObserver:
    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_stage(self, event: StageEvent) -> None:
        self._log.debug(
            "stage=%s count=%d ids=%s details=%s",
            event.stage,
            event.count,
            ",".join(event.candidate_ids),
            event.details,
        )


class RecordingObserver:
    """Keeps every event in memory; handy for tests and CLI diagnostics output."""

    def __init__(self) -> None:
        self.events: list[StageEvent] = []

    def on_stage(self, event: StageEvent) -> None:
        self.events.append(event)

    def stage(self, name: str) -> StageEvent | None:
        for event in self.events:
            if event.stage == name:
                return event
        return None


class CompositeObserver:
    def __init__(self, observers: Iterable[DiagnosticsObserver]) -> None:
        self._observers = list(observers)

    def on_stage(self, event: StageEvent) -> None:
        for observer in self._observers:
            notify(observer, event)


def notify(observer: DiagnosticsObserver, event: StageEvent) -> None:
    """Deliver one event; a failing observer never affects the result path."""
    try:
        observer.on_stage(event)
    except Exception:
        logger.exception("Diagnostics observer %r failed on stage %s", observer, event.stage)
