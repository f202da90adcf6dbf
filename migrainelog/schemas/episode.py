# schemas/episode.py
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from migrainelog.services.episode_types import (
    UNSET,
    EpisodePatch,
    EpisodeRecord,
    end_time_to_column,
)


class SeveritySampleOut(BaseModel):
    timestamp: int
    severity: int


class EpisodeOut(BaseModel):
    id: str = Field(..., description="Episode id")
    owner_id: str

    start_time: int = Field(..., description="ms since epoch")
    end_time: Optional[int] = Field(None, description="ms since epoch; null while active")
    active: bool

    severity: int = Field(..., ge=1, le=10)
    severity_history: List[SeveritySampleOut] = Field(default_factory=list)

    notes: Optional[str] = None
    triggers: List[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, r: EpisodeRecord) -> "EpisodeOut":
        return cls(
            id=r.id,
            owner_id=r.owner_id,
            start_time=r.start_time,
            end_time=end_time_to_column(r.end_time),
            active=r.active,
            severity=r.severity,
            severity_history=[SeveritySampleOut(**s.to_dict()) for s in r.severity_history],
            notes=r.notes,
            triggers=list(r.triggers),
        )


# Numeric inputs are passed through untouched; the episode service owns the
# severity and timestamp rules and reports them with a stable error code.


class EpisodeCreate(BaseModel):
    severity: Any = Field(..., description="whole number 1..10")
    start_time: Any = Field(None, description="ms since epoch; defaults to now")
    end_time: Any = Field(None, description="ms since epoch; omit to start an active episode")
    notes: Optional[str] = Field(None, max_length=5000)
    triggers: Optional[List[str]] = None


class EpisodeUpdate(BaseModel):
    """Only fields present in the request body are applied; end_time=null re-opens."""

    start_time: Any = None
    end_time: Any = None
    severity: Any = None
    notes: Optional[str] = Field(None, max_length=5000)
    triggers: Optional[List[str]] = None

    def to_patch(self) -> EpisodePatch:
        sent = self.model_fields_set
        return EpisodePatch(
            start_time=self.start_time if "start_time" in sent else UNSET,
            end_time=self.end_time if "end_time" in sent else UNSET,
            severity=self.severity if "severity" in sent else UNSET,
            notes=self.notes if "notes" in sent else UNSET,
            triggers=self.triggers if "triggers" in sent else UNSET,
        )


class SeverityChangeIn(BaseModel):
    severity: Any = Field(..., description="whole number 1..10")
    timestamp: Any = Field(None, description="defaults to now; older values backfill")
