import os

# migrainelog/main.py
from fastapi import FastAPI

from migrainelog.init_db import init_db
from migrainelog.routes.checkins import router as checkins_router
from migrainelog.routes.episodes import router as episodes_router
from migrainelog.services.auth import validate_auth_config_on_startup
from migrainelog.services.scheduler import scheduler, scheduler_enabled, setup_scheduler


app = FastAPI(title="Migraine Tracker Backend")
app.include_router(episodes_router)
app.include_router(checkins_router)


def _env_flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).lower() not in ("0", "false", "no", "off")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
def on_startup():
    validate_auth_config_on_startup()

    if _env_flag("DB_AUTO_CREATE"):
        # Local/dev convenience; deployments run the alembic migrations instead.
        init_db()

    if not scheduler_enabled():
        # Scheduler can be switched off locally (e.g. during manual testing)
        return

    setup_scheduler()
    if not scheduler.running:
        scheduler.start()


@app.on_event("shutdown")
def on_shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)
