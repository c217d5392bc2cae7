from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, JSON, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from levelup_api.db.base import Base


class UserRoleEnum(str, Enum):
    CLIENT = "client"
    ADMIN = "admin"


class AccountTypeEnum(str, Enum):
    STANDARD = "standard"
    INSTITUTIONAL = "institutional"


class User(Base):
    """Storefront account holding the loyalty points balance."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=True)
    display_name = Column(String, nullable=False)
    phone_number = Column(String(32), nullable=True)
    tax_id = Column(String(32), nullable=True)
    role = Column(String(length=16), nullable=False, default=UserRoleEnum.CLIENT.value, server_default=UserRoleEnum.CLIENT.value)
    account_type = Column(
        String(length=16),
        nullable=False,
        default=AccountTypeEnum.STANDARD.value,
        server_default=AccountTypeEnum.STANDARD.value,
    )
    points_balance = Column(Integer, nullable=False, default=0, server_default="0")
    lifetime_points = Column(Integer, nullable=False, default=0, server_default="0")
    tier = Column(String(length=16), nullable=False, default="bronce", server_default="bronce")
    referral_code = Column(String(16), nullable=False, unique=True, index=True)
    referred_by = Column(String(16), nullable=True)
    addresses = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    orders = relationship("Order", back_populates="user")
    redemptions = relationship("Redemption", back_populates="user")
    ledger_entries = relationship("PointsLedgerEntry", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_end_user(self) -> bool:
        return self.role == UserRoleEnum.CLIENT.value
