# services/episode_types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class Active:
    """End-time variant for an episode that has not ended yet."""

    def __repr__(self) -> str:
        return "Active"


@dataclass(frozen=True)
class EndedAt:
    timestamp: int


EndTime = Union[Active, EndedAt]

ACTIVE = Active()


def end_time_from_column(value: Optional[int]) -> EndTime:
    # Storage keeps NULL for the active variant.
    return ACTIVE if value is None else EndedAt(int(value))


def end_time_to_column(end: EndTime) -> Optional[int]:
    return None if isinstance(end, Active) else end.timestamp


@dataclass(frozen=True)
class SeveritySample:
    timestamp: int
    severity: int

    def to_dict(self) -> Dict[str, int]:
        return {"timestamp": self.timestamp, "severity": self.severity}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SeveritySample":
        return cls(timestamp=int(d["timestamp"]), severity=int(d["severity"]))


@dataclass(frozen=True)
class EpisodeRecord:
    id: str
    owner_id: str
    start_time: int
    end_time: EndTime
    severity: int
    severity_history: Tuple[SeveritySample, ...]
    notes: Optional[str] = None
    triggers: Tuple[str, ...] = ()

    @property
    def active(self) -> bool:
        return isinstance(self.end_time, Active)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True)
class EpisodePatch:
    """Field overwrites for update(); UNSET leaves the stored value alone."""

    start_time: Any = UNSET
    end_time: Any = UNSET
    severity: Any = UNSET
    notes: Any = UNSET
    triggers: Any = UNSET

    def provided(self) -> list[str]:
        return [
            name
            for name in ("start_time", "end_time", "severity", "notes", "triggers")
            if getattr(self, name) is not UNSET
        ]
