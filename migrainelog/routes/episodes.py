# routes/episodes.py

from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from migrainelog.config.app_config import load_app_config
from migrainelog.db import get_db
from migrainelog.schemas.episode import (
    EpisodeCreate,
    EpisodeOut,
    EpisodeUpdate,
    SeverityChangeIn,
)
from migrainelog.services.auth import require_api_key, require_owner_id
from migrainelog.services.episode_service import EpisodeService
from migrainelog.services.errors import (
    ConcurrentModification,
    ConflictActiveEpisode,
    EpisodeError,
    InvalidSeverity,
    InvalidTimestamp,
    NotFound,
)
from migrainelog.services.scheduler import get_check_in_scheduler


router = APIRouter(
    prefix="/episodes",
    tags=["episodes"],
    dependencies=[Depends(require_api_key)],
)

_STATUS_BY_ERROR = {
    InvalidSeverity: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidTimestamp: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConflictActiveEpisode: status.HTTP_409_CONFLICT,
    ConcurrentModification: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
}


def _raise_http(e: EpisodeError) -> NoReturn:
    code = _STATUS_BY_ERROR.get(type(e), status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=code, detail={"code": e.code, "message": e.message})


def get_episode_service(
    db: Session = Depends(get_db),
    scheduler=Depends(get_check_in_scheduler),
) -> EpisodeService:
    return EpisodeService(db, scheduler=scheduler)


@router.get("", response_model=List[EpisodeOut])
def list_episodes(
    limit: Optional[int] = Query(default=None, ge=1, le=2000),
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    limit = limit or load_app_config().episodes_list_limit()
    return [EpisodeOut.from_record(r) for r in svc.list_episodes(owner_id, limit=limit)]


@router.get("/active", response_model=Optional[EpisodeOut])
def get_active_episode(
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    r = svc.get_active(owner_id)
    return EpisodeOut.from_record(r) if r else None


@router.get("/{episode_id}", response_model=EpisodeOut)
def get_episode(
    episode_id: str,
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    try:
        return EpisodeOut.from_record(svc.get(episode_id, owner_id))
    except EpisodeError as e:
        _raise_http(e)


@router.post("", response_model=EpisodeOut, status_code=status.HTTP_201_CREATED)
def create_episode(
    payload: EpisodeCreate,
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    try:
        r = svc.create(
            owner_id,
            payload.severity,
            start_time=payload.start_time,
            end_time=payload.end_time,
            notes=payload.notes,
            triggers=payload.triggers,
        )
    except EpisodeError as e:
        _raise_http(e)
    return EpisodeOut.from_record(r)


@router.patch("/{episode_id}", response_model=EpisodeOut)
def patch_episode(
    episode_id: str,
    payload: EpisodeUpdate,
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    try:
        return EpisodeOut.from_record(svc.update(episode_id, owner_id, payload.to_patch()))
    except EpisodeError as e:
        _raise_http(e)


@router.post("/{episode_id}/severity", response_model=EpisodeOut)
def record_severity(
    episode_id: str,
    payload: SeverityChangeIn,
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    try:
        r = svc.record_severity_change(
            episode_id, owner_id, payload.severity, timestamp=payload.timestamp
        )
    except EpisodeError as e:
        _raise_http(e)
    return EpisodeOut.from_record(r)


@router.post("/{episode_id}/done", response_model=EpisodeOut)
def mark_episode_done(
    episode_id: str,
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    try:
        return EpisodeOut.from_record(svc.mark_done(episode_id, owner_id))
    except EpisodeError as e:
        _raise_http(e)


@router.delete("/{episode_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_episode(
    episode_id: str,
    owner_id: str = Depends(require_owner_id),
    svc: EpisodeService = Depends(get_episode_service),
):
    try:
        svc.delete(episode_id, owner_id)
    except EpisodeError as e:
        _raise_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
