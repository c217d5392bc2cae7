"""Persistence adapters for catalog, accounts, orders and redemptions.

Stores never commit; the calling service owns the transaction boundary.
"""

from __future__ import annotations

from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from levelup_api.domain.errors import InsufficientStockError
from levelup_api.models import Order, Product, Redemption, User


class CatalogStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_product(self, product_id: UUID) -> Product | None:
        return await self._session.get(Product, product_id)

    async def find_product_by_code(self, code: str) -> Product | None:
        stmt = select(Product).where(Product.code == code)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_products(self, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        """Load and row-lock products in primary-key order to avoid lock-order deadlocks."""

        ids = list(set(product_ids))
        if not ids:
            return {}
        stmt = (
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return {product.id: product for product in result.scalars().all()}

    async def decrement_stock(self, product: Product, quantity: int) -> Product:
        """Atomically take ``quantity`` units, failing if stock would go negative."""

        stmt = (
            update(Product)
            .where(Product.id == product.id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        await self._session.refresh(product, attribute_names=["stock"])
        if result.rowcount != 1:
            raise InsufficientStockError(product.id, product.name, quantity, product.stock)
        return product

    async def restock(self, product: Product, quantity: int) -> Product:
        stmt = (
            update(Product)
            .where(Product.id == product.id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
        await self._session.refresh(product, attribute_names=["stock"])
        return product

    async def save(self, product: Product) -> Product:
        self._session.add(product)
        await self._session.flush()
        return product


class AccountStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_referral_code(self, code: str) -> User | None:
        stmt = select(User).where(User.referral_code == code)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id(self, account_id: UUID) -> User | None:
        return await self._session.get(User, account_id)

    async def lock(self, account_id: UUID) -> User | None:
        stmt = (
            select(User)
            .where(User.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def referral_code_exists(self, code: str) -> bool:
        stmt = select(exists().where(User.referral_code == code))
        result = await self._session.execute(stmt)
        return bool(result.scalar())

    async def save(self, account: User) -> User:
        self._session.add(account)
        await self._session.flush()
        return account


class OrderStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, order_id: UUID, *, lock: bool = False) -> Order | None:
        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_all_by_account(self, account_id: UUID) -> Sequence[Order]:
        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.user_id == account_id)
            .order_by(Order.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def find_all(self) -> Sequence[Order]:
        stmt = select(Order).options(selectinload(Order.items)).order_by(Order.created_at.desc())
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def order_number_exists(self, order_number: str) -> bool:
        stmt = select(exists().where(Order.order_number == order_number))
        result = await self._session.execute(stmt)
        return bool(result.scalar())

    async def save(self, order: Order) -> Order:
        self._session.add(order)
        await self._session.flush()
        return order


class RedemptionStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, redemption_id: UUID, *, lock: bool = False) -> Redemption | None:
        stmt = (
            select(Redemption)
            .where(Redemption.id == redemption_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_all_by_account(self, account_id: UUID) -> Sequence[Redemption]:
        stmt = (
            select(Redemption)
            .where(Redemption.user_id == account_id)
            .order_by(Redemption.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def save(self, redemption: Redemption) -> Redemption:
        self._session.add(redemption)
        await self._session.flush()
        return redemption


__all__ = ["AccountStore", "CatalogStore", "OrderStore", "RedemptionStore"]
