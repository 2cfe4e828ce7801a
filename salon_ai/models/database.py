"""
Database Models

SQLAlchemy ORM models for closure rule storage. Every row belongs to
exactly one tenant; rows are soft-deleted via the ``active`` flag.
"""

from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Index,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class ClosureRuleRecord(Base, TimestampMixin):
    """
    Closure rule (special hours) for one tenant.

    Date range is fixed after creation. Rows change only through the soft
    delete (``active`` flipped, ``reason`` annotated) or when a quick
    closure converts an existing single-day rule to a full closure.
    """

    __tablename__ = "closure_rules"
    __table_args__ = (
        Index("idx_closure_tenant_active", "tenant_id", "active"),
        Index("idx_closure_tenant_dates", "tenant_id", "start_date", "end_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hours_start: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    hours_end: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    customer_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    affected_employee_ids: Mapped[list] = mapped_column(JSON, default=list)
    affected_service_ids: Mapped[list] = mapped_column(JSON, default=list)
    notify_existing_customers: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ClosureRuleRecord(id={self.id}, tenant_id='{self.tenant_id}', "
            f"kind={self.kind}, {self.start_date}..{self.end_date})>"
        )
