from __future__ import annotations

import os
import uuid
from datetime import timedelta
from typing import Any, Callable, Optional, Protocol, Sequence

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from migrainelog import db as db_module
from migrainelog.config.app_config import load_app_config
from migrainelog.util.log_events import get_event_logger, log_event
from migrainelog.util.time import utc_iso, utcnow


scheduler = BackgroundScheduler(timezone="UTC")

logger = get_event_logger("scheduler")


class Scheduler(Protocol):
    """Run ``action(*args)`` no earlier than ``now + delay``, off the caller's thread."""

    def schedule(
        self,
        delay: timedelta,
        action: Callable[..., Any],
        args: Sequence[Any] = (),
        *,
        label: str = "job",
    ) -> str: ...


class APSchedulerAdapter:
    """One-shot DateTrigger jobs on an APScheduler backend."""

    def __init__(
        self,
        backend: BaseScheduler | None = None,
        *,
        misfire_grace_seconds: int = 300,
    ):
        self._backend = backend if backend is not None else scheduler
        self._misfire_grace_seconds = misfire_grace_seconds

    def schedule(
        self,
        delay: timedelta,
        action: Callable[..., Any],
        args: Sequence[Any] = (),
        *,
        label: str = "job",
    ) -> str:
        if delay < timedelta(0):
            raise ValueError("delay must not be negative")

        run_date = utcnow() + delay
        job = self._backend.add_job(
            action,
            trigger=DateTrigger(run_date=run_date),
            args=list(args),
            id=f"{label}:{uuid.uuid4()}",
            misfire_grace_time=self._misfire_grace_seconds,
            coalesce=True,
        )
        return job.id

    def pending(self) -> list[dict[str, Any]]:
        return [
            {
                "id": j.id,
                "next_run_time": (utc_iso(j.next_run_time) if j.next_run_time else None),
                "trigger": str(j.trigger),
            }
            for j in self._backend.get_jobs()
        ]


def scheduler_enabled() -> bool:
    # SCHEDULER_ENABLED=0 switches the background scheduler off (e.g. manual testing).
    return os.getenv("SCHEDULER_ENABLED", "1").lower() not in ("0", "false", "no", "off")


def get_check_in_scheduler() -> Optional[APSchedulerAdapter]:
    """None while the scheduler is switched off; jobs would never run."""
    if not scheduler_enabled():
        return None
    cfg = load_app_config()
    return APSchedulerAdapter(
        scheduler, misfire_grace_seconds=cfg.scheduler_misfire_grace_seconds()
    )


def setup_scheduler() -> None:
    cfg = load_app_config()
    jobstore = cfg.scheduler_jobstore()

    if jobstore == "sqlalchemy":
        # Pending check-ins survive a restart; jobs are referenced by module path.
        stores = {
            "default": SQLAlchemyJobStore(engine=db_module.engine, tablename="checkin_jobs")
        }
    elif jobstore == "memory":
        stores = {"default": MemoryJobStore()}
    else:
        raise RuntimeError(f"Unknown scheduler.jobstore: {jobstore!r}")

    if not scheduler.running:
        scheduler.configure(
            jobstores=stores,
            timezone="UTC",
            job_defaults={
                "coalesce": True,
                "misfire_grace_time": cfg.scheduler_misfire_grace_seconds(),
            },
        )

    log_event(
        logger,
        level="INFO",
        event="scheduler_configured",
        msg="scheduler configured",
        run_id="startup",
        jobstore=jobstore,
        checkin_delay_minutes=cfg.checkin_delay_minutes(),
    )
