from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from levelup_api.db.base import Base, enum_values


class OrderStatusEnum(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderCreatorEnum(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
        CheckConstraint("points_spent >= 0", name="ck_orders_points_spent_non_negative"),
        CheckConstraint("points_earned >= 0", name="ck_orders_points_earned_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    order_number = Column(String, nullable=False, unique=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    status = Column(
        SqlEnum(OrderStatusEnum, name="order_status_enum", values_callable=enum_values),
        nullable=False,
        default=OrderStatusEnum.PENDING,
        server_default=OrderStatusEnum.PENDING.value,
    )
    subtotal = Column(Numeric(12, 2), nullable=False, server_default="0")
    tier_discount = Column(Numeric(12, 2), nullable=False, server_default="0")
    points_discount = Column(Numeric(12, 2), nullable=False, server_default="0")
    total = Column(Numeric(12, 2), nullable=False, server_default="0")
    points_spent = Column(Integer, nullable=False, default=0, server_default="0")
    points_earned = Column(Integer, nullable=False, default=0, server_default="0")
    shipping_address = Column(JSON, nullable=True)
    payment_method = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(
        SqlEnum(OrderCreatorEnum, name="order_creator_enum", values_callable=enum_values),
        nullable=False,
        default=OrderCreatorEnum.USER,
        server_default=OrderCreatorEnum.USER.value,
    )
    admin_id = Column(String(64), nullable=True)
    admin_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    state_events = relationship("OrderStateEvent", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    product_code = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="items")
