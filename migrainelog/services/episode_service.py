"""
Lifecycle of migraine episodes for one owner.

Invariants kept here:
- at most one active episode per owner (checked up front, enforced by the
  partial unique index in the same commit)
- severity history stays ascending by timestamp; every severity change
  merges a sample into it
- ``severity`` is always the newest sample's value
"""

from __future__ import annotations

import math
from datetime import timedelta
from typing import Any, Callable, Iterable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from migrainelog.config.app_config import load_app_config
from migrainelog.models.episode import Episode
from migrainelog.services import episodes_repo, severity_history
from migrainelog.services.episode_types import (
    ACTIVE,
    UNSET,
    Active,
    EndedAt,
    EndTime,
    EpisodePatch,
    EpisodeRecord,
    SeveritySample,
    end_time_to_column,
)
from migrainelog.services.errors import (
    ConcurrentModification,
    ConflictActiveEpisode,
    EpisodeError,
    InvalidSeverity,
    InvalidTimestamp,
    NotFound,
)
from migrainelog.services.notifications import run_check_in_job
from migrainelog.services.scheduler import Scheduler
from migrainelog.util.log_events import get_event_logger, log_event
from migrainelog.util.time import TimePolicyError, now_ms, require_epoch_ms, utcnow


logger = get_event_logger("episodes")

SEVERITY_MIN = 1
SEVERITY_MAX = 10

T = TypeVar("T")


def validate_severity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidSeverity("Severity must be a number from 1 to 10.")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise InvalidSeverity("Severity must be a whole number from 1 to 10.")
        value = int(value)
    if not SEVERITY_MIN <= value <= SEVERITY_MAX:
        raise InvalidSeverity("Severity must be a number from 1 to 10.")
    return value


def _timestamp(value: Any, field_name: str) -> int:
    try:
        return require_epoch_ms(value, field_name)
    except TimePolicyError as e:
        raise InvalidTimestamp(str(e)) from e


def coerce_end_time(value: Any) -> EndTime:
    """None and ACTIVE mean active; an int or EndedAt means ended at that instant."""
    if value is None or isinstance(value, Active):
        return ACTIVE
    if isinstance(value, EndedAt):
        return EndedAt(_timestamp(value.timestamp, "end_time"))
    return EndedAt(_timestamp(value, "end_time"))


def normalize_triggers(triggers: Optional[Iterable[Any]]) -> list[str]:
    out: list[str] = []
    for t in triggers or ():
        label = str(t).strip()
        if label and label not in out:
            out.append(label)
    return out


class EpisodeService:
    def __init__(
        self,
        db: Session,
        *,
        scheduler: Optional[Scheduler] = None,
        check_in_delay: Optional[timedelta] = None,
        check_in_action: Callable[[str], Any] = run_check_in_job,
        clock: Callable[[], int] = now_ms,
        max_write_attempts: Optional[int] = None,
    ):
        cfg = load_app_config()
        self.db = db
        self.scheduler = scheduler
        self.check_in_delay = check_in_delay if check_in_delay is not None else cfg.checkin_delay()
        self.check_in_action = check_in_action
        self.clock = clock
        self.max_write_attempts = (
            max_write_attempts if max_write_attempts is not None else cfg.episodes_max_write_attempts()
        )

    # --- reads ---

    def get_active(self, owner_id: str) -> Optional[EpisodeRecord]:
        ep = episodes_repo.find_active(self.db, owner_id=owner_id)
        return episodes_repo.to_record(ep) if ep else None

    def get(self, episode_id: str, owner_id: str) -> EpisodeRecord:
        ep = episodes_repo.get_owned(self.db, episode_id=episode_id, owner_id=owner_id)
        if ep is None:
            raise NotFound("Migraine not found")
        return episodes_repo.to_record(ep)

    def list_episodes(self, owner_id: str, limit: Optional[int] = None) -> list[EpisodeRecord]:
        eps = episodes_repo.list_for_owner(self.db, owner_id=owner_id, limit=limit)
        return [episodes_repo.to_record(e) for e in eps]

    # --- mutations ---

    def create(
        self,
        owner_id: str,
        severity: Any,
        start_time: Any = None,
        end_time: Any = None,
        notes: Optional[str] = None,
        triggers: Optional[Iterable[Any]] = None,
    ) -> EpisodeRecord:
        sev = validate_severity(severity)
        start = self.clock() if start_time is None else _timestamp(start_time, "start_time")
        end = coerce_end_time(end_time)
        active = isinstance(end, Active)

        try:
            if active:
                existing = episodes_repo.find_active(self.db, owner_id=owner_id, for_update=True)
                if existing is not None:
                    raise self._conflict(owner_id, existing_id=existing.id)

            ep = episodes_repo.insert_episode(
                self.db,
                owner_id=owner_id,
                start_time=start,
                end_time=end_time_to_column(end),
                severity=sev,
                history=severity_history.to_json(severity_history.seed(start, sev)),
                notes=notes,
                triggers=normalize_triggers(triggers),
            )
            self.db.commit()
        except IntegrityError:
            # Lost the race: another active episode landed between check and insert.
            self.db.rollback()
            raise self._conflict(owner_id, existing_id=None)
        except EpisodeError:
            self.db.rollback()
            raise

        record = episodes_repo.to_record(ep)
        log_event(
            logger,
            level="INFO",
            event="episode_created",
            msg="episode created",
            episode_id=record.id,
            owner_id=owner_id,
            active=record.active,
            severity=record.severity,
        )

        if record.active:
            self._schedule_check_in(record.id)
        return record

    def update(self, episode_id: str, owner_id: str, patch: EpisodePatch) -> EpisodeRecord:
        # Validate everything before taking any lock.
        start = UNSET if patch.start_time is UNSET else _timestamp(patch.start_time, "start_time")
        end = UNSET if patch.end_time is UNSET else coerce_end_time(patch.end_time)
        sev = UNSET if patch.severity is UNSET else validate_severity(patch.severity)
        triggers = UNSET if patch.triggers is UNSET else normalize_triggers(patch.triggers)

        def apply(ep: Episode) -> None:
            if start is not UNSET:
                ep.start_time = start
            if end is not UNSET:
                reopening = isinstance(end, Active) and ep.end_time is not None
                if reopening:
                    other = episodes_repo.find_active(
                        self.db, owner_id=owner_id, exclude_id=ep.id, for_update=True
                    )
                    if other is not None:
                        raise self._conflict(owner_id, existing_id=other.id)
                ep.end_time = end_time_to_column(end)
            if sev is not UNSET:
                # An overwrite must become current, even over a future-dated sample.
                history = severity_history.from_json(ep.severity_history)
                ts = max(self.clock(), history[-1].timestamp) if history else self.clock()
                self._merge_sample(ep, SeveritySample(timestamp=ts, severity=sev))
            if patch.notes is not UNSET:
                ep.notes = patch.notes
            if triggers is not UNSET:
                ep.triggers = triggers

        record = self._mutate(episode_id, owner_id, apply)
        log_event(
            logger,
            level="INFO",
            event="episode_updated",
            msg="episode updated",
            episode_id=episode_id,
            owner_id=owner_id,
            fields=patch.provided(),
            active=record.active,
        )
        return record

    def record_severity_change(
        self,
        episode_id: str,
        owner_id: str,
        severity: Any,
        timestamp: Any = None,
    ) -> EpisodeRecord:
        sev = validate_severity(severity)
        ts = self.clock() if timestamp is None else _timestamp(timestamp, "timestamp")

        def apply(ep: Episode) -> None:
            self._merge_sample(ep, SeveritySample(timestamp=ts, severity=sev))

        record = self._mutate(episode_id, owner_id, apply)
        log_event(
            logger,
            level="INFO",
            event="severity_recorded",
            msg="severity sample recorded",
            episode_id=episode_id,
            owner_id=owner_id,
            sample={"timestamp": ts, "severity": sev},
            current_severity=record.severity,
            history_len=len(record.severity_history),
        )
        return record

    def mark_done(self, episode_id: str, owner_id: str) -> EpisodeRecord:
        """Ends the episode now. Repeating it on an ended episode just re-sets end_time."""

        def apply(ep: Episode) -> None:
            ep.end_time = self.clock()

        record = self._mutate(episode_id, owner_id, apply)
        log_event(
            logger,
            level="INFO",
            event="episode_marked_done",
            msg="episode marked done",
            episode_id=episode_id,
            owner_id=owner_id,
            end_time=end_time_to_column(record.end_time),
        )
        return record

    def delete(self, episode_id: str, owner_id: str) -> None:
        """Raises NotFound for unknown, foreign, or already-deleted ids alike."""
        for attempt in range(1, self.max_write_attempts + 1):
            ep = episodes_repo.get_owned(
                self.db, episode_id=episode_id, owner_id=owner_id, for_update=True
            )
            if ep is None:
                self.db.rollback()
                raise NotFound("Migraine not found")
            try:
                self.db.delete(ep)
                self.db.commit()
                break
            except StaleDataError:
                self.db.rollback()
                if attempt == self.max_write_attempts:
                    raise ConcurrentModification("Migraine was modified concurrently; retry.")

        log_event(
            logger,
            level="INFO",
            event="episode_deleted",
            msg="episode deleted",
            episode_id=episode_id,
            owner_id=owner_id,
        )

    # --- internals ---

    def _mutate(
        self,
        episode_id: str,
        owner_id: str,
        apply: Callable[[Episode], None],
    ) -> EpisodeRecord:
        """
        Locked read-modify-write of one owned episode.

        The row is selected FOR UPDATE where the database supports it; the
        version column turns a lost update into StaleDataError, which is
        retried against fresh state.
        """
        for attempt in range(1, self.max_write_attempts + 1):
            try:
                ep = episodes_repo.get_owned(
                    self.db, episode_id=episode_id, owner_id=owner_id, for_update=True
                )
                if ep is None:
                    raise NotFound("Migraine not found")
                apply(ep)
                ep.updated_at = utcnow()
                self.db.commit()
                return episodes_repo.to_record(ep)
            except StaleDataError:
                self.db.rollback()
                if attempt == self.max_write_attempts:
                    raise ConcurrentModification("Migraine was modified concurrently; retry.")
            except IntegrityError:
                self.db.rollback()
                raise self._conflict(owner_id, existing_id=None)
            except EpisodeError:
                self.db.rollback()
                raise
        raise ConcurrentModification("Migraine was modified concurrently; retry.")

    def _merge_sample(self, ep: Episode, sample: SeveritySample) -> None:
        history = severity_history.insert(
            severity_history.from_json(ep.severity_history), sample
        )
        ep.severity_history = severity_history.to_json(history)
        ep.severity = severity_history.current_severity(history)

    def _conflict(self, owner_id: str, *, existing_id: Optional[str]) -> ConflictActiveEpisode:
        log_event(
            logger,
            level="INFO",
            event="episode_conflict",
            msg="active episode already exists",
            owner_id=owner_id,
            existing_id=existing_id,
        )
        return ConflictActiveEpisode(
            "There is already an active migraine. Mark it done before starting a new one."
        )

    def _schedule_check_in(self, episode_id: str) -> Optional[str]:
        if self.scheduler is None:
            return None
        try:
            job_id = self.scheduler.schedule(
                self.check_in_delay,
                self.check_in_action,
                (episode_id,),
                label=f"checkin:{episode_id}",
            )
        except Exception as e:
            # Check-ins are best-effort; the episode itself is already committed.
            log_event(
                logger,
                level="ERROR",
                event="checkin_schedule_failed",
                msg="could not schedule check-in",
                episode_id=episode_id,
                error={"type": type(e).__name__, "message": str(e)},
            )
            return None

        log_event(
            logger,
            level="INFO",
            event="checkin_scheduled",
            msg="check-in scheduled",
            episode_id=episode_id,
            job_id=job_id,
            delay_seconds=int(self.check_in_delay.total_seconds()),
        )
        return job_id
