"""Points ledger models."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum as SqlEnum, ForeignKey, Integer, JSON, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from levelup_api.db.base import Base, enum_values


class PointsLedgerEntryType(str, Enum):
    """Ledger entry types for points balance adjustments."""

    ORDER_EARN = "order_earn"
    ORDER_SPEND = "order_spend"
    REDEEM = "redeem"
    REDEEM_REFUND = "redeem_refund"
    REFERRAL_WELCOME = "referral_welcome"
    REFERRAL_BONUS = "referral_bonus"
    ADJUSTMENT = "adjustment"


EARNING_ENTRY_TYPES = frozenset(
    {
        PointsLedgerEntryType.ORDER_EARN,
        PointsLedgerEntryType.REFERRAL_WELCOME,
        PointsLedgerEntryType.REFERRAL_BONUS,
    }
)


class PointsLedgerEntry(Base):
    """One signed change to an account's points balance."""

    __tablename__ = "points_ledger_entries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_type = Column(
        SqlEnum(PointsLedgerEntryType, name="points_ledger_entry_type", values_callable=enum_values),
        nullable=False,
    )
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reference = Column(String, nullable=True, index=True)
    description = Column(String, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="ledger_entries")
