from __future__ import annotations

import os

from fastapi import Header, HTTPException, status


def _auth_mode() -> str:
    return os.getenv("MIGRAINELOG_AUTH_MODE", "off").strip().lower()


def _api_keys() -> set[str]:
    raw = os.getenv("MIGRAINELOG_API_KEYS", "").strip()
    if not raw:
        return set()
    return {x.strip() for x in raw.split(",") if x.strip()}


def require_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """
    Shared-key check for the upstream gateway that forwards episode and
    check-in requests. It says nothing about which owner is calling; that
    comes from X-Owner-Id.

    With MIGRAINELOG_AUTH_MODE=api_key a request without a listed key is 401
    before any episode is read or written. Mode "off" (default) is for local
    runs behind a trusted proxy.
    """
    mode = _auth_mode()
    if mode == "off":
        return
    if mode != "api_key":
        raise RuntimeError(f"Unknown MIGRAINELOG_AUTH_MODE: {mode!r}")

    keys = _api_keys()
    if not keys:
        raise RuntimeError("MIGRAINELOG_API_KEYS must be set when MIGRAINELOG_AUTH_MODE=api_key")

    if not x_api_key or x_api_key not in keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def require_owner_id(
    x_owner_id: str | None = Header(default=None, alias="X-Owner-Id"),
) -> str:
    """
    Owner identity as verified by the upstream auth layer.

    Sessions and logins live in front of this service; it trusts the header.
    """
    owner_id = (x_owner_id or "").strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing owner identity",
        )
    return owner_id


def validate_auth_config_on_startup() -> None:
    """Fail fast on invalid auth configuration."""
    mode = _auth_mode()
    if mode not in ("off", "api_key"):
        raise RuntimeError(f"Unknown MIGRAINELOG_AUTH_MODE: {mode!r}")
    if mode == "api_key" and not _api_keys():
        raise RuntimeError("MIGRAINELOG_API_KEYS must be set when MIGRAINELOG_AUTH_MODE=api_key")
