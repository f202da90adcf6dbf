from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "settings.yaml"


@dataclass(frozen=True)
class AppConfig:
    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.raw.get(name) if isinstance(self.raw, dict) else None
        return dict(section) if isinstance(section, dict) else {}

    def checkin_delay_minutes(self) -> int:
        return int(self._section("checkin").get("delay_minutes", 60))

    def checkin_delay(self) -> timedelta:
        return timedelta(minutes=self.checkin_delay_minutes())

    def checkin_title(self) -> str:
        return str(self._section("checkin").get("title", "Migraine Check-in"))

    def checkin_body(self) -> str:
        return str(
            self._section("checkin").get(
                "body", "Is your migraine still ongoing? Tap to update."
            )
        )

    def checkin_icon(self) -> str:
        return str(self._section("checkin").get("icon", "/favicon.ico"))

    def checkin_url(self) -> str:
        return str(self._section("checkin").get("url", "/"))

    def scheduler_jobstore(self) -> str:
        return str(self._section("scheduler").get("jobstore", "memory")).strip().lower()

    def scheduler_misfire_grace_seconds(self) -> int:
        return int(self._section("scheduler").get("misfire_grace_seconds", 300))

    def push_timeout_seconds(self) -> float:
        return float(self._section("push").get("timeout_seconds", 10))

    def push_ttl_seconds(self) -> int:
        return int(self._section("push").get("ttl_seconds", 3600))

    def episodes_max_write_attempts(self) -> int:
        # At least one attempt, whatever the file says.
        return max(1, int(self._section("episodes").get("max_write_attempts", 3)))

    def episodes_list_limit(self) -> int:
        return int(self._section("episodes").get("list_limit", 200))


_cached: Optional[AppConfig] = None


def load_app_config(path: Path | None = None) -> AppConfig:
    global _cached
    if _cached is not None and path is None:
        return _cached

    env_path = os.getenv("MIGRAINELOG_CONFIG", "").strip()
    p = path or (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    cfg = AppConfig(raw=data)
    if path is None:
        _cached = cfg
    return cfg


def reset_app_config_cache() -> None:
    global _cached
    _cached = None
