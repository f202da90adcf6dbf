"""Stand-ins for the scheduler, subscription registry and push transport, plus table checks."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

from sqlalchemy import func, select

from migrainelog.models.episode import Episode
from migrainelog.services.push_registry import PushEndpoint
from migrainelog.services.push_transport import DeliveryResult


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass
class ScheduledJob:
    id: str
    delay: timedelta
    action: Callable[..., Any]
    args: tuple


class FakeScheduler:
    """Records schedule() calls; jobs only run when the test fires them."""

    def __init__(self):
        self.jobs: list[ScheduledJob] = []

    def schedule(self, delay, action, args=(), *, label="job"):
        job = ScheduledJob(id=f"{label}:{len(self.jobs) + 1}", delay=delay, action=action, args=tuple(args))
        self.jobs.append(job)
        return job.id

    def fire_all(self) -> list[Any]:
        jobs, self.jobs = self.jobs, []
        return [j.action(*j.args) for j in jobs]

    def pending(self) -> list[dict[str, Any]]:
        return [{"id": j.id, "next_run_time": None, "trigger": f"delay[{j.delay}]"} for j in self.jobs]


class FailingScheduler:
    def schedule(self, delay, action, args=(), *, label="job"):
        raise RuntimeError("job queue unavailable")


class FakeRegistry:
    def __init__(self, endpoints_by_owner: dict[str, list[str]] | None = None):
        self._by_owner = {
            owner: [PushEndpoint(endpoint=e, p256dh="p-key", auth="a-key") for e in endpoints]
            for owner, endpoints in (endpoints_by_owner or {}).items()
        }
        self.calls: list[str] = []

    def list_endpoints(self, owner_id: str) -> list[PushEndpoint]:
        self.calls.append(owner_id)
        return list(self._by_owner.get(owner_id, []))


class RecordingTransport:
    def __init__(self, rejecting: tuple[str, ...] = (), raising: tuple[str, ...] = ()):
        self.rejecting = set(rejecting)
        self.raising = set(raising)
        self.sent: list[tuple[str, dict]] = []

    def send(self, endpoint: PushEndpoint, payload: str) -> DeliveryResult:
        self.sent.append((endpoint.endpoint, json.loads(payload)))
        if endpoint.endpoint in self.raising:
            raise ConnectionError("connection reset")
        if endpoint.endpoint in self.rejecting:
            return DeliveryResult(endpoint=endpoint.endpoint, ok=False, status_code=410, error="HTTP 410")
        return DeliveryResult(endpoint=endpoint.endpoint, ok=True, status_code=201)


def count_active(db, owner_id: str) -> int:
    """Active rows straight from the table, bypassing the service."""
    q = select(func.count()).select_from(Episode).where(
        Episode.owner_id == owner_id, Episode.end_time.is_(None)
    )
    return db.execute(q).scalar_one()
