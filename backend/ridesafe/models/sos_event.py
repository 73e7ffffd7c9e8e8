"""SOS event model."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Enum, Float, ForeignKey, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from ridesafe.db.base import Base


class SosStatus(str, enum.Enum):
    active = "active"
    sent = "sent"
    partially_sent = "partially_sent"
    failed = "failed"
    resolved = "resolved"


class SosEvent(Base):
    """One emergency trigger by a user and the outcome of alerting their contacts."""

    __tablename__ = "sos_events"
    __table_args__ = (
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_sos_events_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_sos_events_longitude"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[SosStatus] = mapped_column(
        Enum(SosStatus, name="sos_status", validate_strings=True),
        nullable=False,
        default=SosStatus.active,
    )
    # Ordered per-recipient, per-channel outcome records
    dispatch_results: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    failure_detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
