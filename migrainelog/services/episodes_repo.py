# services/episodes_repo.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from migrainelog.models.episode import Episode
from migrainelog.services import severity_history
from migrainelog.services.episode_types import EpisodeRecord, end_time_from_column
from migrainelog.util.time import utcnow


def get_by_id(db: Session, episode_id: str) -> Optional[Episode]:
    return db.get(Episode, episode_id, populate_existing=True)


def get_owned(
    db: Session,
    *,
    episode_id: str,
    owner_id: str,
    for_update: bool = False,
) -> Optional[Episode]:
    # Not-found and not-owned are indistinguishable to the caller.
    q = select(Episode).where(Episode.id == episode_id, Episode.owner_id == owner_id)
    if for_update:
        q = q.with_for_update()
    return db.execute(q.execution_options(populate_existing=True)).scalars().first()


def find_active(
    db: Session,
    *,
    owner_id: str,
    exclude_id: Optional[str] = None,
    for_update: bool = False,
) -> Optional[Episode]:
    q = select(Episode).where(Episode.owner_id == owner_id, Episode.end_time.is_(None))
    if exclude_id is not None:
        q = q.where(Episode.id != exclude_id)
    if for_update:
        q = q.with_for_update()
    q = q.order_by(Episode.start_time.desc())
    return db.execute(q).scalars().first()


def list_for_owner(
    db: Session,
    *,
    owner_id: str,
    limit: Optional[int] = None,
) -> list[Episode]:
    q = (
        select(Episode)
        .where(Episode.owner_id == owner_id)
        .order_by(Episode.start_time.desc(), Episode.created_at.desc())
    )
    if limit:
        q = q.limit(limit)
    return list(db.execute(q).scalars().all())


def insert_episode(
    db: Session,
    *,
    owner_id: str,
    start_time: int,
    end_time: Optional[int],
    severity: int,
    history: list[dict[str, int]],
    notes: Optional[str],
    triggers: list[str],
) -> Episode:
    now = utcnow()
    ep = Episode(
        owner_id=owner_id,
        start_time=start_time,
        end_time=end_time,
        severity=severity,
        severity_history=history,
        notes=notes,
        triggers=triggers,
        created_at=now,
        updated_at=now,
    )
    db.add(ep)
    db.flush()  # assigns id, hits the active-owner index
    return ep


def to_record(ep: Episode) -> EpisodeRecord:
    return EpisodeRecord(
        id=ep.id,
        owner_id=ep.owner_id,
        start_time=int(ep.start_time),
        end_time=end_time_from_column(ep.end_time),
        severity=int(ep.severity),
        severity_history=severity_history.from_json(ep.severity_history),
        notes=ep.notes,
        triggers=tuple(ep.triggers or ()),
    )
