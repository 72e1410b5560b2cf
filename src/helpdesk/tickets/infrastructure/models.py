"""
Ticket Infrastructure Models
=============================

SQLAlchemy ORM model for the ticket aggregate.

The owned records (SLA, status history, metrics, priority audit and
escalation history) are stored as JSON documents. The SLA fields the
sweep filters on are duplicated into indexed columns.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.config import Priority, TicketCategory, TicketStatus
from helpdesk.infrastructure.database import Base


class TicketModel(Base):
    """
    Database model for the Ticket aggregate.

    Maps to the 'tickets' table.
    """
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Ticket content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default=TicketCategory.OTHER.value)
    priority: Mapped[str] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM.value)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True, default=TicketStatus.OPEN.value)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    first_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # SLA columns used by the sweep query
    sla_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    sla_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_is_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sla_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Owned records
    sla: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    status_history: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    metrics: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    priority_audit: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    escalation_history: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
