from __future__ import annotations

"""SQLAlchemy ORM model for the execution log.

Table names are prefixed with ``tp_`` to avoid collisions in shared databases.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Float, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ExecutionLogRow(Base):
    """Row model for ``tp_execution_logs``.

    One row per dispatch. ``parameters_digest`` holds the sanitized digest
    only; raw parameters are never stored.
    """

    __tablename__ = "tp_execution_logs"
    __table_args__ = (
        Index("ix_tp_execution_logs_caller_started", "caller_id", "started_at"),
        Index("ix_tp_execution_logs_capability", "capability_name"),
    )

    execution_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    capability_name: Mapped[str] = mapped_column(String(64))
    caller_id: Mapped[str] = mapped_column(String(128))
    parameters_digest: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration_ms: Mapped[float] = mapped_column(Float)
    outcome: Mapped[str] = mapped_column(String(16))
    error_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
