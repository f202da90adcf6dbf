"""
Ordering rules for the timestamped severity samples of one episode.

History is kept ascending by timestamp after every mutation; samples that
share a timestamp keep insertion order, so the newest of them sits last.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence, Tuple

from migrainelog.services.episode_types import SeveritySample


class SeverityHistoryError(RuntimeError):
    pass


def seed(start_time: int, severity: int) -> Tuple[SeveritySample, ...]:
    return (SeveritySample(timestamp=start_time, severity=severity),)


def insert(
    history: Sequence[SeveritySample], sample: SeveritySample
) -> Tuple[SeveritySample, ...]:
    # Walk back from the tail: most samples are "now" and land at the end.
    idx = len(history)
    while idx > 0 and history[idx - 1].timestamp > sample.timestamp:
        idx -= 1
    return tuple(history[:idx]) + (sample,) + tuple(history[idx:])


def current_severity(history: Sequence[SeveritySample]) -> int:
    if not history:
        raise SeverityHistoryError("severity history is empty")
    return history[-1].severity


def is_ordered(history: Sequence[SeveritySample]) -> bool:
    return all(a.timestamp <= b.timestamp for a, b in zip(history, history[1:]))


def from_json(raw: Iterable[Any] | None) -> Tuple[SeveritySample, ...]:
    history = tuple(SeveritySample.from_dict(d) for d in (raw or []))
    if not is_ordered(history):
        raise SeverityHistoryError("stored severity history is out of order")
    return history


def to_json(history: Sequence[SeveritySample]) -> list[dict[str, int]]:
    return [s.to_dict() for s in history]
