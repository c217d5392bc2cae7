"""Order status/notes audit log models."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum as SqlEnum, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from levelup_api.db.base import Base, enum_values


class OrderStateEventTypeEnum(str, Enum):
    """Supported order timeline event categories."""

    STATE_CHANGE = "state_change"
    NOTE = "note"


class OrderStateActorTypeEnum(str, Enum):
    """Identity of the actor emitting the order event."""

    SYSTEM = "system"
    CUSTOMER = "customer"
    ADMIN = "admin"


class OrderStateEvent(Base):
    """Audit log entry capturing each order status transition and notes change."""

    __tablename__ = "order_state_events"
    __table_args__ = (UniqueConstraint("order_id", "sequence", name="uq_order_state_events_sequence"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # Position within the order timeline, starting at 1.
    sequence = Column(Integer, nullable=False)
    event_type = Column(
        SqlEnum(OrderStateEventTypeEnum, name="order_state_event_type_enum", values_callable=enum_values),
        nullable=False,
    )
    actor_type = Column(
        SqlEnum(OrderStateActorTypeEnum, name="order_state_actor_type_enum", values_callable=enum_values),
        nullable=True,
    )
    actor_id = Column(String(255), nullable=True)
    actor_label = Column(String(255), nullable=True)
    from_status = Column(String(64), nullable=True)
    to_status = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="state_events")
