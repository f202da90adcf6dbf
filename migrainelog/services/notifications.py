from __future__ import annotations

import json
import time
import traceback
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session

from migrainelog import db as db_module
from migrainelog.config.app_config import AppConfig, load_app_config
from migrainelog.services import episodes_repo
from migrainelog.services.push_registry import SqlSubscriptionRegistry, SubscriptionRegistry
from migrainelog.services.push_transport import DeliveryResult, HttpPushTransport, PushTransport
from migrainelog.util.log_events import get_event_logger, log_event


logger = get_event_logger("notifications")

STATUS_SENT = "sent"
STATUS_SKIPPED_MISSING = "skipped_missing"
STATUS_SKIPPED_ENDED = "skipped_ended"
STATUS_NO_ENDPOINTS = "no_endpoints"


@dataclass(frozen=True)
class CheckInMessage:
    title: str = "Migraine Check-in"
    body: str = "Is your migraine still ongoing? Tap to update."
    icon: str = "/favicon.ico"
    url: str = "/"

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "CheckInMessage":
        return cls(
            title=cfg.checkin_title(),
            body=cfg.checkin_body(),
            icon=cfg.checkin_icon(),
            url=cfg.checkin_url(),
        )

    def payload_for(self, episode_id: str) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "data": {"migraineId": episode_id, "url": self.url},
        }


@dataclass
class DispatchReport:
    episode_id: str
    status: str
    deliveries: list[DeliveryResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for d in self.deliveries if d.ok)

    @property
    def failed(self) -> int:
        return sum(1 for d in self.deliveries if not d.ok)


class NotificationDispatcher:
    """
    Sends the check-in for an episode if, and only if, it is still active
    when the scheduled job fires.

    State is read fresh from the store on every call; an episode that was
    ended or deleted after scheduling is skipped.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: SubscriptionRegistry,
        transport: PushTransport,
        message: CheckInMessage | None = None,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._transport = transport
        self._message = message or CheckInMessage()

    def send_check_in(self, episode_id: str) -> DispatchReport:
        db = self._session_factory()
        try:
            ep = episodes_repo.get_by_id(db, episode_id)
            if ep is None:
                return self._skip(episode_id, STATUS_SKIPPED_MISSING, "episode no longer exists")
            if ep.end_time is not None:
                return self._skip(episode_id, STATUS_SKIPPED_ENDED, "episode already ended")
            owner_id = ep.owner_id
        finally:
            db.close()

        endpoints = self._registry.list_endpoints(owner_id)
        if not endpoints:
            return self._skip(episode_id, STATUS_NO_ENDPOINTS, "no push endpoints registered")

        payload = json.dumps(self._message.payload_for(episode_id), ensure_ascii=False)

        report = DispatchReport(episode_id=episode_id, status=STATUS_SENT)
        for endpoint in endpoints:
            try:
                result = self._transport.send(endpoint, payload)
            except Exception as e:
                result = DeliveryResult(
                    endpoint=endpoint.endpoint,
                    ok=False,
                    error=f"{type(e).__name__}: {e}",
                )
            report.deliveries.append(result)

            if not result.ok:
                log_event(
                    logger,
                    level="WARNING",
                    event="checkin_delivery_failed",
                    msg="push delivery failed",
                    episode_id=episode_id,
                    endpoint=result.endpoint,
                    status_code=result.status_code,
                    error=result.error,
                )

        log_event(
            logger,
            level="INFO",
            event="checkin_dispatched",
            msg="check-in notifications sent",
            episode_id=episode_id,
            counts={
                "endpoints": len(endpoints),
                "succeeded": report.succeeded,
                "failed": report.failed,
            },
        )
        return report

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if callable(close):
            close()

    def _skip(self, episode_id: str, status: str, msg: str) -> DispatchReport:
        log_event(
            logger,
            level="INFO",
            event="checkin_skipped",
            msg=msg,
            episode_id=episode_id,
            reason=status,
        )
        return DispatchReport(episode_id=episode_id, status=status)


def build_default_dispatcher() -> NotificationDispatcher:
    cfg = load_app_config()
    return NotificationDispatcher(
        session_factory=db_module.SessionLocal,
        registry=SqlSubscriptionRegistry(db_module.SessionLocal),
        transport=HttpPushTransport.from_config(cfg),
        message=CheckInMessage.from_config(cfg),
    )


def run_check_in_job(episode_id: str) -> None:
    """Scheduler entry point. Never raises: nobody is waiting on this path."""
    run_id = str(uuid.uuid4())
    t0 = time.monotonic()
    try:
        dispatcher = build_default_dispatcher()
        try:
            report = dispatcher.send_check_in(episode_id)
        finally:
            dispatcher.close()
        log_event(
            logger,
            level="INFO",
            event="checkin_job_end",
            msg="check-in job finished",
            run_id=run_id,
            episode_id=episode_id,
            status=report.status,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
    except Exception as e:
        log_event(
            logger,
            level="ERROR",
            event="checkin_job_end",
            msg="check-in job failed",
            run_id=run_id,
            episode_id=episode_id,
            duration_ms=int((time.monotonic() - t0) * 1000),
            error={
                "type": type(e).__name__,
                "message": str(e),
                "stacktrace": traceback.format_exc(),
            },
        )
