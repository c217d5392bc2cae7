"""Order placement: stock, points and the order record in one transaction."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence
from uuid import UUID, uuid4

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from levelup_api.core.settings import Settings, settings as default_settings
from levelup_api.domain.errors import (
    AccountNotFoundError,
    DuplicateResourceError,
    InvalidInputError,
    OrderNotFoundError,
    ProductNotFoundError,
    StorefrontError,
)
from levelup_api.domain.patch import Clear, is_unset, resolve
from levelup_api.models.order import Order, OrderCreatorEnum, OrderItem, OrderStatusEnum
from levelup_api.models.order_state_event import OrderStateActorTypeEnum, OrderStateEvent
from levelup_api.models.user import User, UserRoleEnum
from levelup_api.observability.storefront import get_storefront_store
from levelup_api.schemas.orders import AdminContext, ClientIdentity, OrderAmounts, OrderPatch, ShippingAddress
from levelup_api.services.accounts import AccountRef, account_type_for_email, find_account, insert_account
from levelup_api.services.loyalty import PointsLedgerService, apply_points_delta
from levelup_api.services.orders.order_numbers import generate_order_number
from levelup_api.services.orders.state_machine import OrderStateMachine
from levelup_api.services.pricing import PricedLine, PricingPolicy, StorefrontPricingPolicy, check_amounts
from levelup_api.services.stores import AccountStore, CatalogStore, OrderStore


def normalize_line_items(line_items: Mapping[Any, Any]) -> dict[UUID, int]:
    """Validate a product id -> quantity mapping."""

    if not line_items:
        raise InvalidInputError("Order must contain at least one line item")

    normalized: dict[UUID, int] = {}
    for raw_id, quantity in line_items.items():
        try:
            product_id = raw_id if isinstance(raw_id, UUID) else UUID(str(raw_id))
        except ValueError:
            raise InvalidInputError(f"Invalid product id {raw_id!r}") from None
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidInputError(f"Quantity for product {product_id} must be a positive integer")
        normalized[product_id] = normalized.get(product_id, 0) + quantity
    return normalized


def _address_snapshot(address: ShippingAddress | Mapping[str, Any] | None) -> dict[str, Any] | None:
    if address is None:
        return None
    if isinstance(address, ShippingAddress):
        return address.snapshot()
    return ShippingAddress.model_validate(dict(address)).snapshot()


class OrderFulfillmentService:
    """Create and maintain orders.

    ``create_order`` runs every step inside the session's transaction and
    either commits all of them or rolls all of them back:

    1. resolve (and lock) the account, synthesizing one for point-of-sale
       callers that supply a client identity;
    2. lock every referenced product in id order;
    3. take the caller's precomputed amounts or quote them from the pricing
       policy;
    4. check the points spend against the locked balance before touching stock;
    5. decrement stock line by line with a guarded update;
    6. apply the net points adjustment through the ledger;
    7. insert the order under a fresh ``ORD-YYYYMMDD-NNNNN`` number, retrying
       on collisions.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        pricing: PricingPolicy | None = None,
        config: Settings | None = None,
        order_number_factory: Callable[[], str] | None = None,
    ) -> None:
        self._session = session
        self._settings = config or default_settings
        self._pricing = pricing or StorefrontPricingPolicy(self._settings)
        self._order_number_factory = order_number_factory or generate_order_number
        self._catalog = CatalogStore(session)
        self._accounts = AccountStore(session)
        self._orders = OrderStore(session)
        self._ledger = PointsLedgerService(session, config=self._settings)
        self._state_machine = OrderStateMachine(session)
        self._observability = get_storefront_store()

    async def create_order(
        self,
        account_ref: AccountRef | None,
        line_items: Mapping[Any, int],
        *,
        shipping_address: ShippingAddress | Mapping[str, Any] | None = None,
        payment_method: str | None = None,
        amounts: OrderAmounts | None = None,
        points_to_use: int = 0,
        admin_context: AdminContext | None = None,
        client_identity: ClientIdentity | None = None,
        notes: str | None = None,
    ) -> Order:
        try:
            quantities = normalize_line_items(line_items)
            account = await self._resolve_account(account_ref, client_identity)

            products = await self._catalog.lock_products(quantities.keys())
            lines: list[PricedLine] = []
            for product_id, quantity in quantities.items():
                product = products.get(product_id)
                if product is None:
                    raise ProductNotFoundError(product_id)
                if not product.is_active:
                    raise InvalidInputError(f"Product {product.name} is not available for sale")
                lines.append(PricedLine(product=product, quantity=quantity))

            if amounts is not None:
                figures = check_amounts(amounts, lines)
            else:
                figures = self._pricing.quote(lines, account, points_to_use=points_to_use)

            apply_points_delta(
                int(account.points_balance or 0),
                points_spent=figures.points_spent,
                points_earned=figures.points_earned,
                account_id=account.id,
            )

            order_items = await self._take_stock(lines)

            order_id = uuid4()
            await self._ledger.apply_order_points(
                account,
                points_spent=figures.points_spent,
                points_earned=figures.points_earned,
                reference=f"order:{order_id}",
            )

            order = Order(
                id=order_id,
                user_id=account.id,
                status=OrderStatusEnum.PENDING,
                subtotal=figures.subtotal,
                tier_discount=figures.tier_discount,
                points_discount=figures.points_discount,
                total=figures.total,
                points_spent=figures.points_spent,
                points_earned=figures.points_earned,
                shipping_address=_address_snapshot(shipping_address),
                payment_method=payment_method,
                notes=notes,
                created_by=admin_context.created_by if admin_context else OrderCreatorEnum.USER,
                admin_id=admin_context.admin_id if admin_context else None,
                admin_name=admin_context.admin_name if admin_context else None,
                items=order_items,
            )
            await self._insert_with_order_number(order)

            actor_type = OrderStateActorTypeEnum.ADMIN if admin_context else OrderStateActorTypeEnum.CUSTOMER
            self._state_machine.record_created(
                order,
                actor_type=actor_type,
                actor_id=admin_context.admin_id if admin_context else str(account.id),
                actor_label=admin_context.admin_name if admin_context else account.display_name,
            )
            await self._session.commit()
        except StorefrontError as exc:
            await self._session.rollback()
            self._observability.record_order_rejected(exc.code)
            logger.warning("Rejected order", reason=exc.code, error=str(exc))
            raise
        except Exception:
            await self._session.rollback()
            raise

        self._observability.record_order_created()
        logger.info(
            "Created order",
            order_id=str(order.id),
            order_number=order.order_number,
            account_id=str(account.id),
            total=str(figures.total),
            points_spent=figures.points_spent,
            points_earned=figures.points_earned,
        )
        return await self._reload(order.id)

    async def update_order(
        self,
        order_id: UUID,
        patch: OrderPatch,
        *,
        actor_type: OrderStateActorTypeEnum | None = OrderStateActorTypeEnum.ADMIN,
        actor_id: str | None = None,
        actor_label: str | None = None,
    ) -> Order:
        """Apply only the fields present in ``patch``."""

        try:
            order = await self._orders.find_by_id(order_id, lock=True)
            if order is None:
                raise OrderNotFoundError(order_id)

            if isinstance(patch.status, Clear):
                raise InvalidInputError("Order status cannot be cleared")
            if not is_unset(patch.status):
                try:
                    target = OrderStatusEnum(patch.status.value)
                except ValueError:
                    raise InvalidInputError(f"Unknown order status {patch.status.value!r}") from None
                await self._state_machine.transition(
                    order,
                    target_status=target,
                    actor_type=actor_type,
                    actor_id=actor_id,
                    actor_label=actor_label,
                )

            if not is_unset(patch.notes):
                notes = resolve(patch.notes, order.notes, empty=lambda: None)
                if notes != order.notes:
                    order.notes = notes
                    await self._state_machine.record_note(
                        order,
                        actor_type=actor_type,
                        actor_id=actor_id,
                        actor_label=actor_label,
                        notes=notes,
                    )

            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        return await self._reload(order_id)

    async def get_order(self, order_id: UUID) -> Order:
        order = await self._orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_account_orders(self, account_ref: AccountRef) -> Sequence[Order]:
        account = await find_account(self._accounts, account_ref)
        if account is None:
            raise AccountNotFoundError(account_ref)
        return await self._orders.find_all_by_account(account.id)

    async def list_orders(self) -> Sequence[Order]:
        return await self._orders.find_all()

    async def list_events(self, order_id: UUID) -> list[OrderStateEvent]:
        return await self._state_machine.list_events(order_id)

    async def _resolve_account(self, account_ref: AccountRef | None, client_identity: ClientIdentity | None) -> User:
        account = None
        if account_ref is not None:
            account = await find_account(self._accounts, account_ref, lock=True)
        if account is None and client_identity is not None:
            account = await find_account(self._accounts, client_identity.email, lock=True)
            if account is None:
                account = await self._synthesize_account(client_identity)
        if account is None:
            raise AccountNotFoundError(account_ref)
        return account

    async def _synthesize_account(self, identity: ClientIdentity) -> User:
        """Create a zero-balance account for a walk-in customer."""

        email = identity.email.strip().lower()
        if "@" not in email:
            raise InvalidInputError("Client identity requires a valid email")
        name = identity.name.strip()
        if not name:
            raise InvalidInputError("Client identity requires a name")

        account = User(
            email=email,
            display_name=name,
            tax_id=identity.tax_id,
            phone_number=identity.phone,
            role=UserRoleEnum.CLIENT.value,
            account_type=account_type_for_email(email, self._settings),
            points_balance=0,
            lifetime_points=0,
            tier=self._settings.default_tier,
            addresses=[],
        )
        await insert_account(self._session, account, max_attempts=self._settings.referral_code_max_attempts)
        logger.info("Synthesized point-of-sale account", account_id=str(account.id), email=email)
        return account

    async def _take_stock(self, lines: Sequence[PricedLine]) -> list[OrderItem]:
        items: list[OrderItem] = []
        for position, line in enumerate(lines):
            await self._catalog.decrement_stock(line.product, line.quantity)
            items.append(
                OrderItem(
                    product_id=line.product.id,
                    position=position,
                    product_code=line.product.code,
                    product_name=line.product.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.line_total,
                )
            )
        return items

    async def _insert_with_order_number(self, order: Order) -> Order:
        max_attempts = self._settings.order_number_max_attempts
        for attempt in range(1, max_attempts + 1):
            candidate = self._order_number_factory()
            if await self._orders.order_number_exists(candidate):
                self._record_number_collision(candidate, attempt)
                continue
            order.order_number = candidate
            try:
                async with self._session.begin_nested():
                    self._session.add(order)
                    await self._session.flush()
            except IntegrityError:
                self._record_number_collision(candidate, attempt)
                continue
            return order

        raise DuplicateResourceError(f"Could not allocate a unique order number after {max_attempts} attempts")

    def _record_number_collision(self, candidate: str, attempt: int) -> None:
        self._observability.record_uniqueness_retry("order_number")
        logger.warning("Order number collision, retrying", order_number=candidate, attempt=attempt)

    async def _reload(self, order_id: UUID) -> Order:
        order = await self._orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order


__all__ = ["OrderFulfillmentService", "normalize_line_items"]
