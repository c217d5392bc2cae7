"""Order state machine orchestration and audit logging."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from levelup_api.domain.errors import InvalidStatusTransitionError
from levelup_api.models.order import Order, OrderStatusEnum
from levelup_api.models.order_state_event import (
    OrderStateActorTypeEnum,
    OrderStateEvent,
    OrderStateEventTypeEnum,
)


@dataclass(slots=True)
class OrderEventDescriptor:
    """Internal representation of a state timeline entry."""

    event: OrderStateEvent
    order: Order


class OrderStateMachine:
    """Encapsulates order state transitions and the audit timeline.

    The machine only stages changes on the session; the calling service
    decides when to commit.
    """

    _ALLOWED_TRANSITIONS: dict[OrderStatusEnum, set[OrderStatusEnum]] = {
        OrderStatusEnum.PENDING: {
            OrderStatusEnum.PAID,
            OrderStatusEnum.CANCELLED,
        },
        OrderStatusEnum.PAID: {
            OrderStatusEnum.SHIPPED,
            OrderStatusEnum.CANCELLED,
            OrderStatusEnum.REFUNDED,
        },
        OrderStatusEnum.SHIPPED: {
            OrderStatusEnum.DELIVERED,
        },
        OrderStatusEnum.DELIVERED: {
            OrderStatusEnum.REFUNDED,
        },
        OrderStatusEnum.CANCELLED: set(),
        OrderStatusEnum.REFUNDED: set(),
    }

    # Terminal states reachable only through store administration.
    _ADMIN_ONLY_TARGETS = frozenset({OrderStatusEnum.CANCELLED, OrderStatusEnum.REFUNDED})

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @classmethod
    def allowed_targets(cls, status: OrderStatusEnum) -> frozenset[OrderStatusEnum]:
        return frozenset(cls._ALLOWED_TRANSITIONS.get(status, set()))

    @classmethod
    def ensure_transition(
        cls,
        current_status: OrderStatusEnum,
        target_status: OrderStatusEnum,
        actor_type: OrderStateActorTypeEnum | None,
    ) -> None:
        if target_status == current_status or target_status not in cls.allowed_targets(current_status):
            raise InvalidStatusTransitionError(current_status.value, target_status.value)
        if target_status in cls._ADMIN_ONLY_TARGETS and actor_type != OrderStateActorTypeEnum.ADMIN:
            raise InvalidStatusTransitionError(current_status.value, target_status.value)

    def record_created(
        self,
        order: Order,
        *,
        actor_type: OrderStateActorTypeEnum | None,
        actor_id: str | None,
        actor_label: str | None,
    ) -> OrderEventDescriptor:
        event = OrderStateEvent(
            order_id=order.id,
            sequence=1,
            event_type=OrderStateEventTypeEnum.STATE_CHANGE,
            actor_type=actor_type,
            actor_id=actor_id,
            actor_label=actor_label,
            metadata_json={"order_number": order.order_number},
            from_status=None,
            to_status=OrderStatusEnum(order.status).value,
        )
        self._session.add(event)
        return OrderEventDescriptor(event=event, order=order)

    async def transition(
        self,
        order: Order,
        *,
        target_status: OrderStatusEnum,
        actor_type: OrderStateActorTypeEnum | None,
        actor_id: str | None,
        actor_label: str | None,
        notes: str | None = None,
        metadata: dict | None = None,
    ) -> OrderEventDescriptor:
        """Move ``order`` to ``target_status`` if the transition table allows it."""

        current_status = OrderStatusEnum(order.status)
        self.ensure_transition(current_status, target_status, actor_type)

        sequence = await self._next_sequence(order.id)
        order.status = target_status
        event = OrderStateEvent(
            order_id=order.id,
            sequence=sequence,
            event_type=OrderStateEventTypeEnum.STATE_CHANGE,
            actor_type=actor_type,
            actor_id=actor_id,
            actor_label=actor_label,
            notes=notes,
            metadata_json=metadata or {},
            from_status=current_status.value,
            to_status=target_status.value,
        )
        self._session.add(event)
        logger.info(
            "Order status transitioned",
            order_id=str(order.id),
            from_status=current_status.value,
            to_status=target_status.value,
            actor_type=actor_type.value if actor_type else None,
        )
        return OrderEventDescriptor(event=event, order=order)

    async def record_note(
        self,
        order: Order,
        *,
        actor_type: OrderStateActorTypeEnum | None,
        actor_id: str | None,
        actor_label: str | None,
        notes: str | None,
        metadata: dict | None = None,
    ) -> OrderEventDescriptor:
        """Insert a non-state-change audit entry for a notes edit."""

        event = OrderStateEvent(
            order_id=order.id,
            sequence=await self._next_sequence(order.id),
            event_type=OrderStateEventTypeEnum.NOTE,
            actor_type=actor_type,
            actor_id=actor_id,
            actor_label=actor_label,
            notes=notes,
            metadata_json=metadata or {},
        )
        self._session.add(event)
        logger.info(
            "Order timeline event recorded",
            order_id=str(order.id),
            event_type=OrderStateEventTypeEnum.NOTE.value,
            actor_type=actor_type.value if actor_type else None,
        )
        return OrderEventDescriptor(event=event, order=order)

    async def list_events(self, order_id: UUID) -> list[OrderStateEvent]:
        """Return order state events, newest first."""

        stmt = (
            select(OrderStateEvent)
            .where(OrderStateEvent.order_id == order_id)
            .order_by(OrderStateEvent.sequence.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def _next_sequence(self, order_id: UUID) -> int:
        # Callers hold the order row lock, so the max cannot move underneath us.
        stmt = select(func.coalesce(func.max(OrderStateEvent.sequence), 0)).where(
            OrderStateEvent.order_id == order_id
        )
        current = await self._session.scalar(stmt)
        return int(current or 0) + 1


__all__ = ["OrderEventDescriptor", "OrderStateMachine"]
