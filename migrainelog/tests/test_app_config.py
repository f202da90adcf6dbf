from datetime import timedelta

from migrainelog.config.app_config import AppConfig, load_app_config, reset_app_config_cache


def test_shipped_settings():
    cfg = load_app_config()

    assert cfg.checkin_delay() == timedelta(hours=1)
    assert cfg.checkin_title() == "Migraine Check-in"
    assert cfg.scheduler_jobstore() == "memory"
    assert cfg.push_ttl_seconds() == 3600
    assert cfg.episodes_max_write_attempts() == 3


def test_missing_sections_fall_back_to_defaults():
    cfg = AppConfig(raw={})

    assert cfg.checkin_delay_minutes() == 60
    assert cfg.checkin_url() == "/"
    assert cfg.scheduler_misfire_grace_seconds() == 300
    assert cfg.push_timeout_seconds() == 10.0
    assert cfg.episodes_list_limit() == 200


def test_write_attempts_never_below_one():
    assert AppConfig(raw={"episodes": {"max_write_attempts": 0}}).episodes_max_write_attempts() == 1


def test_config_path_from_env(tmp_path, monkeypatch):
    p = tmp_path / "settings.yaml"
    p.write_text(
        "checkin:\n  delay_minutes: 15\nscheduler:\n  jobstore: SQLAlchemy\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("MIGRAINELOG_CONFIG", str(p))
    reset_app_config_cache()

    cfg = load_app_config()

    assert cfg.checkin_delay() == timedelta(minutes=15)
    assert cfg.scheduler_jobstore() == "sqlalchemy"
    assert cfg.checkin_title() == "Migraine Check-in"


def test_loaded_config_is_cached(tmp_path, monkeypatch):
    first = load_app_config()
    p = tmp_path / "other.yaml"
    p.write_text("checkin:\n  delay_minutes: 5\n", encoding="utf-8")
    monkeypatch.setenv("MIGRAINELOG_CONFIG", str(p))

    assert load_app_config() is first
    assert load_app_config(p).checkin_delay_minutes() == 5
