from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from migrainelog.config.app_config import AppConfig
from migrainelog.services.push_registry import PushEndpoint


@dataclass(frozen=True)
class DeliveryResult:
    endpoint: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class PushTransport(Protocol):
    def send(self, endpoint: PushEndpoint, payload: str) -> DeliveryResult: ...


class HttpPushTransport:
    """
    Single-attempt HTTP delivery of a JSON payload to a push endpoint.

    2xx counts as delivered; any other status or a transport error is a
    failed delivery. Retries, if any, belong to the push service itself.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout_seconds: float = 10.0,
        ttl_seconds: int = 3600,
    ):
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._ttl_seconds = ttl_seconds

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "HttpPushTransport":
        return cls(timeout_seconds=cfg.push_timeout_seconds(), ttl_seconds=cfg.push_ttl_seconds())

    def send(self, endpoint: PushEndpoint, payload: str) -> DeliveryResult:
        try:
            r = self._client.post(
                endpoint.endpoint,
                content=payload.encode("utf-8"),
                headers={
                    "Content-Type": "application/json",
                    "TTL": str(self._ttl_seconds),
                },
            )
        except httpx.HTTPError as e:
            return DeliveryResult(
                endpoint=endpoint.endpoint,
                ok=False,
                error=f"{type(e).__name__}: {e}",
            )

        if 200 <= r.status_code < 300:
            return DeliveryResult(endpoint=endpoint.endpoint, ok=True, status_code=r.status_code)
        return DeliveryResult(
            endpoint=endpoint.endpoint,
            ok=False,
            status_code=r.status_code,
            error=f"HTTP {r.status_code}",
        )

    def close(self) -> None:
        self._client.close()
