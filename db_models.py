"""
SQL history of budget consumption events and release policy transitions.
"""
from __future__ import annotations

from datetime import datetime
from sqlalchemy import DateTime, Float, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class BudgetEventRow(Base):
    __tablename__ = "budget_events"

    event_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    slo_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start: Mapped[float] = mapped_column(Float, nullable=False)
    duration: Mapped[float] = mapped_column(Float, nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    cause: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_budget_events_tenant_slo_start", "tenant_id", "slo_id", "start"),
    )


class PolicyTransitionRow(Base):
    __tablename__ = "policy_transitions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    service_id: Mapped[str] = mapped_column(String(256), nullable=False)
    from_level: Mapped[str] = mapped_column(String(32), nullable=False)
    to_level: Mapped[str] = mapped_column(String(32), nullable=False)
    trigger_status: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    at: Mapped[float] = mapped_column(Float, nullable=False)
    approval_ref: Mapped[str | None] = mapped_column(String(256), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        Index("ix_policy_transitions_tenant_service_at", "tenant_id", "service_id", "at"),
    )
