from __future__ import annotations

import math
from datetime import datetime, timezone


class TimePolicyError(ValueError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current wall-clock time as integer milliseconds since the epoch."""
    return int(utcnow().timestamp() * 1000)


def ms_to_utc(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def utc_iso(dt: datetime) -> str:
    # Expecting aware UTC datetimes from utcnow(); keep a stable "Z" format.
    s = dt.astimezone(timezone.utc).isoformat()
    return s.replace("+00:00", "Z")


def require_epoch_ms(value, field_name: str) -> int:
    """
    Strict policy for stored timestamps:
    - integer milliseconds since epoch
    - integral floats are accepted (JSON clients), bools and NaN/inf are not
    """
    if isinstance(value, bool):
        raise TimePolicyError(f"{field_name} must be integer milliseconds since epoch")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    raise TimePolicyError(f"{field_name} must be integer milliseconds since epoch")
