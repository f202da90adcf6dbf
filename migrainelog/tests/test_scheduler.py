import threading
from datetime import timedelta

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from migrainelog.config.app_config import reset_app_config_cache
from migrainelog.services import scheduler as scheduler_module
from migrainelog.services.scheduler import APSchedulerAdapter


@pytest.fixture
def backend():
    s = BackgroundScheduler(timezone="UTC")
    s.start()
    try:
        yield s
    finally:
        s.shutdown(wait=False)


def test_schedule_runs_action_later_on_another_thread(backend):
    fired = threading.Event()
    seen = {}

    def action(episode_id):
        seen["episode_id"] = episode_id
        seen["thread"] = threading.get_ident()
        fired.set()

    adapter = APSchedulerAdapter(backend)
    adapter.schedule(timedelta(milliseconds=300), action, ("ep-1",), label="checkin:ep-1")
    # The caller is not held up by the delay.
    assert not fired.is_set()

    assert fired.wait(timeout=5)
    assert seen["episode_id"] == "ep-1"
    assert seen["thread"] != threading.get_ident()


def test_job_ids_carry_label_and_are_unique(backend):
    adapter = APSchedulerAdapter(backend)

    a = adapter.schedule(timedelta(hours=1), print, ("x",), label="checkin:ep-1")
    b = adapter.schedule(timedelta(hours=1), print, ("x",), label="checkin:ep-1")

    assert a.startswith("checkin:ep-1:")
    assert b.startswith("checkin:ep-1:")
    assert a != b


def test_pending_lists_jobs_not_yet_run(backend):
    adapter = APSchedulerAdapter(backend)
    job_id = adapter.schedule(timedelta(hours=1), print, ("x",), label="checkin:ep-2")

    pending = adapter.pending()

    assert [p["id"] for p in pending] == [job_id]
    assert pending[0]["next_run_time"].endswith("Z")


def test_negative_delay_is_rejected(backend):
    adapter = APSchedulerAdapter(backend)
    with pytest.raises(ValueError):
        adapter.schedule(timedelta(seconds=-1), print)
    assert backend.get_jobs() == []


def test_setup_scheduler_rejects_unknown_jobstore(tmp_path, monkeypatch):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("scheduler:\n  jobstore: redis\n", encoding="utf-8")
    monkeypatch.setenv("MIGRAINELOG_CONFIG", str(cfg))
    reset_app_config_cache()

    with pytest.raises(RuntimeError, match="redis"):
        scheduler_module.setup_scheduler()


def test_setup_scheduler_logs_configuration(captured_events):
    scheduler_module.setup_scheduler()

    (ev,) = [e for e in captured_events if e["event"] == "scheduler_configured"]
    assert ev["jobstore"] == "memory"
    assert ev["checkin_delay_minutes"] == 60


def test_check_in_scheduler_wraps_process_scheduler(monkeypatch):
    monkeypatch.setenv("SCHEDULER_ENABLED", "1")

    adapter = scheduler_module.get_check_in_scheduler()

    assert isinstance(adapter, APSchedulerAdapter)
    assert adapter.pending() == []


@pytest.mark.parametrize("flag", ["0", "false", "off"])
def test_no_check_in_scheduler_while_switched_off(monkeypatch, flag):
    monkeypatch.setenv("SCHEDULER_ENABLED", flag)

    assert scheduler_module.get_check_in_scheduler() is None
    assert not scheduler_module.scheduler_enabled()
