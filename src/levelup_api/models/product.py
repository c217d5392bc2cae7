from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from levelup_api.db.base import Base


class ProductOriginEnum(str, Enum):
    STORE = "store"
    REWARDS = "rewards"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("points_cost >= 0", name="ck_products_points_cost_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0, server_default="0")
    points_cost = Column(Integer, nullable=False, default=0, server_default="0")
    points_reward = Column(Integer, nullable=False, default=0, server_default="0")
    is_redeemable = Column(Boolean, nullable=False, default=False, server_default="false")
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    origin = Column(String(16), nullable=False, default=ProductOriginEnum.STORE.value, server_default=ProductOriginEnum.STORE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
