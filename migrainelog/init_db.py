from typing import Optional

from sqlalchemy.engine import Engine

from migrainelog import db as db_module
import migrainelog.models  # noqa: F401  (registers mappers)


def init_db(bind: Optional[Engine] = None) -> list[str]:
    """Create any missing tables; returns the table names known to the metadata."""
    target = bind if bind is not None else db_module.engine
    db_module.Base.metadata.create_all(bind=target)
    return sorted(db_module.Base.metadata.tables)


if __name__ == "__main__":
    print("tables:", ", ".join(init_db()))
