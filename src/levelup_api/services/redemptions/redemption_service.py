"""Points-for-product redemptions."""

from __future__ import annotations

from typing import Sequence
from uuid import UUID, uuid4

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from levelup_api.core.settings import Settings, settings as default_settings
from levelup_api.domain.errors import (
    AccountNotFoundError,
    InvalidInputError,
    InvalidStatusTransitionError,
    ProductNotFoundError,
    RedemptionNotFoundError,
    StorefrontError,
)
from levelup_api.models.loyalty import PointsLedgerEntryType
from levelup_api.models.redemption import (
    FulfillmentMethodEnum,
    Redemption,
    RedemptionStateEvent,
    RedemptionStatusEnum,
)
from levelup_api.observability.storefront import get_storefront_store
from levelup_api.schemas.redemptions import RedemptionRequest
from levelup_api.services.accounts import AccountRef, find_account
from levelup_api.services.loyalty import PointsLedgerService, apply_points_delta
from levelup_api.services.stores import AccountStore, CatalogStore, RedemptionStore


class RedemptionService:
    """Exchange points for redeemable products and track fulfillment.

    Whether a redemption draws down ``Product.stock`` is governed by the
    ``redemption_decrements_stock`` setting. The number of units taken is kept
    on the redemption (``stock_reserved``) so a cancellation restocks exactly
    what was taken, even if the setting changes in between.
    """

    _ALLOWED_TRANSITIONS: dict[RedemptionStatusEnum, set[RedemptionStatusEnum]] = {
        RedemptionStatusEnum.PENDING: {
            RedemptionStatusEnum.CONFIRMED,
            RedemptionStatusEnum.CANCELLED,
        },
        RedemptionStatusEnum.CONFIRMED: {
            RedemptionStatusEnum.SHIPPED,
            RedemptionStatusEnum.CANCELLED,
        },
        RedemptionStatusEnum.SHIPPED: {
            RedemptionStatusEnum.DELIVERED,
        },
        RedemptionStatusEnum.DELIVERED: set(),
        RedemptionStatusEnum.CANCELLED: set(),
    }

    def __init__(self, session: AsyncSession, *, config: Settings | None = None) -> None:
        self._session = session
        self._settings = config or default_settings
        self._catalog = CatalogStore(session)
        self._accounts = AccountStore(session)
        self._redemptions = RedemptionStore(session)
        self._ledger = PointsLedgerService(session, config=self._settings)
        self._observability = get_storefront_store()

    async def create_redemption(
        self,
        account_ref: AccountRef,
        product_id: UUID,
        request: RedemptionRequest | None = None,
    ) -> Redemption:
        details = request or RedemptionRequest()
        try:
            account = await find_account(self._accounts, account_ref, lock=True)
            if account is None:
                raise AccountNotFoundError(account_ref)

            product = (await self._catalog.lock_products([product_id])).get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            if not product.is_active or not product.is_redeemable:
                raise InvalidInputError(f"Product {product.name} cannot be redeemed")
            cost = int(product.points_cost or 0)
            if cost <= 0:
                raise InvalidInputError(f"Product {product.name} has no points cost")
            if details.fulfillment_method == FulfillmentMethodEnum.SHIPPING and details.shipping_address is None:
                raise InvalidInputError("Shipping redemptions require a shipping address")

            apply_points_delta(
                int(account.points_balance or 0),
                points_spent=cost,
                points_earned=0,
                account_id=account.id,
            )

            stock_reserved = 0
            if self._settings.redemption_decrements_stock:
                await self._catalog.decrement_stock(product, 1)
                stock_reserved = 1

            redemption_id = uuid4()
            await self._ledger.debit(
                account,
                cost,
                entry_type=PointsLedgerEntryType.REDEEM,
                reference=f"redemption:{redemption_id}",
                description=f"Redeemed {product.name}",
                metadata={"product_id": str(product.id), "product_code": product.code},
            )

            redemption = Redemption(
                id=redemption_id,
                user_id=account.id,
                product_id=product.id,
                points_spent=cost,
                quantity=1,
                fulfillment_method=details.fulfillment_method,
                status=RedemptionStatusEnum.PENDING,
                shipping_address=details.shipping_address.snapshot() if details.shipping_address else None,
                notes=details.notes,
                stock_reserved=stock_reserved,
            )
            self._session.add(
                RedemptionStateEvent(
                    redemption_id=redemption_id,
                    from_status=None,
                    to_status=RedemptionStatusEnum.PENDING.value,
                    actor_label=account.display_name,
                )
            )
            await self._redemptions.save(redemption)
            await self._session.commit()
        except StorefrontError as exc:
            await self._session.rollback()
            self._observability.record_redemption_rejected(exc.code)
            logger.warning("Rejected redemption", reason=exc.code, error=str(exc))
            raise
        except Exception:
            await self._session.rollback()
            raise

        self._observability.record_redemption_created()
        logger.info(
            "Created redemption",
            redemption_id=str(redemption_id),
            account_id=str(account.id),
            product_id=str(product_id),
            points_spent=cost,
            stock_reserved=stock_reserved,
        )
        return await self._reload(redemption_id)

    async def update_redemption_status(
        self,
        redemption_id: UUID,
        target_status: RedemptionStatusEnum,
        *,
        actor_label: str | None = None,
    ) -> Redemption:
        """Advance a redemption; cancelling refunds the points snapshot."""

        try:
            redemption = await self._redemptions.find_by_id(redemption_id, lock=True)
            if redemption is None:
                raise RedemptionNotFoundError(redemption_id)

            current_status = RedemptionStatusEnum(redemption.status)
            target_status = RedemptionStatusEnum(target_status)
            if target_status not in self._ALLOWED_TRANSITIONS.get(current_status, set()):
                raise InvalidStatusTransitionError(current_status.value, target_status.value)

            metadata: dict[str, int] = {}
            if target_status == RedemptionStatusEnum.CANCELLED:
                metadata = await self._release(redemption)

            redemption.status = target_status
            self._session.add(
                RedemptionStateEvent(
                    redemption_id=redemption.id,
                    from_status=current_status.value,
                    to_status=target_status.value,
                    actor_label=actor_label,
                    metadata_json=metadata,
                )
            )
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        logger.info(
            "Redemption status transitioned",
            redemption_id=str(redemption_id),
            from_status=current_status.value,
            to_status=target_status.value,
        )
        return await self._reload(redemption_id)

    async def get_redemption(self, redemption_id: UUID) -> Redemption:
        return await self._reload(redemption_id)

    async def list_account_redemptions(self, account_ref: AccountRef) -> Sequence[Redemption]:
        account = await find_account(self._accounts, account_ref)
        if account is None:
            raise AccountNotFoundError(account_ref)
        return await self._redemptions.find_all_by_account(account.id)

    async def _release(self, redemption: Redemption) -> dict[str, int]:
        """Refund the points and any reserved stock held by ``redemption``."""

        account = await self._accounts.lock(redemption.user_id)
        if account is None:
            raise AccountNotFoundError(redemption.user_id)
        await self._ledger.credit(
            account,
            int(redemption.points_spent),
            entry_type=PointsLedgerEntryType.REDEEM_REFUND,
            reference=f"redemption:{redemption.id}",
            description="Redemption cancelled",
        )

        restocked = int(redemption.stock_reserved or 0)
        if restocked:
            product = (await self._catalog.lock_products([redemption.product_id])).get(redemption.product_id)
            if product is None:
                raise ProductNotFoundError(redemption.product_id)
            await self._catalog.restock(product, restocked)
            redemption.stock_reserved = 0

        return {"points_refunded": int(redemption.points_spent), "units_restocked": restocked}

    async def _reload(self, redemption_id: UUID) -> Redemption:
        redemption = await self._redemptions.find_by_id(redemption_id)
        if redemption is None:
            raise RedemptionNotFoundError(redemption_id)
        return redemption


__all__ = ["RedemptionService"]
