from typing import Optional

from fastapi import APIRouter, Depends

from migrainelog.services.auth import require_api_key
from migrainelog.services.scheduler import APSchedulerAdapter, get_check_in_scheduler

router = APIRouter(prefix="/checkins", tags=["checkins"], dependencies=[Depends(require_api_key)])


@router.get("/pending")
def pending_check_ins(scheduler: Optional[APSchedulerAdapter] = Depends(get_check_in_scheduler)):
    # In-memory view of the process-wide scheduler; empty while it is switched off.
    if scheduler is None:
        return []
    return scheduler.pending()
