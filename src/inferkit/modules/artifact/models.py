"""Artifact ORM model for byte payloads addressed by key."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, LargeBinary, String, func
from sqlalchemy.orm import Mapped, mapped_column
from ulid import ULID

from inferkit.core.database import Base
from inferkit.core.types import ULIDType


class Artifact(Base):
    """ORM model storing a serialized model artifact under a unique key."""

    __tablename__ = "artifacts"

    id: Mapped[ULID] = mapped_column(ULIDType, primary_key=True, default=lambda: ULID())
    key: Mapped[str] = mapped_column(String(512), unique=True, index=True)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    size_bytes: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
