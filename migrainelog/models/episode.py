# models/episode.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from migrainelog.db import Base
from migrainelog.util.time import utcnow


class Episode(Base):
    __tablename__ = "episodes"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    owner_id: Mapped[str] = mapped_column(String(200), nullable=False)

    # ms since epoch; NULL end_time means the episode is still active
    start_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # 1..10, always the severity of the newest history sample
    severity: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    # [{timestamp, severity}] ascending by timestamp
    severity_history: Mapped[List[Dict[str, int]]] = mapped_column(
        JSON, nullable=False, default=list
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    triggers: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __mapper_args__ = {"version_id_col": version}


Index("ix_episodes_owner_start_time", Episode.owner_id, Episode.start_time)
Index("ix_episodes_owner_end_time", Episode.owner_id, Episode.end_time)

# At most one active episode per owner, enforced in the same commit as the write.
Index(
    "uq_episodes_active_owner",
    Episode.owner_id,
    unique=True,
    postgresql_where=Episode.end_time.is_(None),
    sqlite_where=Episode.end_time.is_(None),
)
