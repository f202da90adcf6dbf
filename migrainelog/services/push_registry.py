# services/push_registry.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from migrainelog.models.push_subscription import PushSubscription


@dataclass(frozen=True)
class PushEndpoint:
    endpoint: str
    p256dh: str = field(default="", repr=False)
    auth: str = field(default="", repr=False)


class SubscriptionRegistry(Protocol):
    def list_endpoints(self, owner_id: str) -> list[PushEndpoint]: ...


class SqlSubscriptionRegistry:
    """Reads an owner's registered push endpoints from the push_subscriptions table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def list_endpoints(self, owner_id: str) -> list[PushEndpoint]:
        db = self._session_factory()
        try:
            rows = (
                db.execute(
                    select(PushSubscription)
                    .where(PushSubscription.owner_id == owner_id)
                    .order_by(PushSubscription.id)
                )
                .scalars()
                .all()
            )
            return [PushEndpoint(endpoint=r.endpoint, p256dh=r.p256dh, auth=r.auth) for r in rows]
        finally:
            db.close()


def upsert_subscription(
    db: Session,
    *,
    owner_id: str,
    endpoint: str,
    p256dh: str,
    auth: str,
) -> PushSubscription:
    # One row per endpoint; a re-registration refreshes keys and owner.
    existing = db.execute(
        select(PushSubscription).where(PushSubscription.endpoint == endpoint)
    ).scalars().one_or_none()

    if existing:
        existing.owner_id = owner_id
        existing.p256dh = p256dh
        existing.auth = auth
        db.commit()
        return existing

    sub = PushSubscription(owner_id=owner_id, endpoint=endpoint, p256dh=p256dh, auth=auth)
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub


def remove_subscription(db: Session, *, endpoint: str) -> bool:
    existing = db.execute(
        select(PushSubscription).where(PushSubscription.endpoint == endpoint)
    ).scalars().one_or_none()
    if not existing:
        return False
    db.delete(existing)
    db.commit()
    return True
