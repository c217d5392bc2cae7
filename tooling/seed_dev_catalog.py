"""Seed development accounts and catalog products into the storefront database."""

from __future__ import annotations

import asyncio
import os
from decimal import Decimal
from typing import TypedDict

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import levelup_api.models  # noqa: F401
from levelup_api import __version__
from levelup_api.core.logging import configure_logging
from levelup_api.core.settings import settings
from levelup_api.db.base import Base
from levelup_api.db.session import create_engine_for_url
from levelup_api.models.product import Product, ProductOriginEnum
from levelup_api.models.user import User
from levelup_api.services.accounts import account_type_for_email, insert_account
from levelup_api.services.auth import hash_password


class SeedAccount(TypedDict):
    email: str
    display_name: str
    role: str
    points: int


class SeedProduct(TypedDict):
    code: str
    name: str
    category: str
    price: str
    stock: int
    points_cost: int
    is_redeemable: bool


DEV_PASSWORD = os.getenv("DEV_SEED_PASSWORD", "levelup-dev")

DEV_ACCOUNTS: list[SeedAccount] = [
    {
        "email": os.getenv("DEV_SEED_CUSTOMER_EMAIL", "cliente@levelup.dev").lower(),
        "display_name": "Cliente QA",
        "role": "client",
        "points": 1500,
    },
    {
        "email": os.getenv("DEV_SEED_STUDENT_EMAIL", "alumno@duocuc.cl").lower(),
        "display_name": "Alumno QA",
        "role": "client",
        "points": 0,
    },
    {
        "email": os.getenv("DEV_SEED_ADMIN_EMAIL", "admin@levelup.dev").lower(),
        "display_name": "Admin QA",
        "role": "admin",
        "points": 0,
    },
]

DEV_PRODUCTS: list[SeedProduct] = [
    {
        "code": "JM001",
        "name": "Catan",
        "category": "juegos-de-mesa",
        "price": "29990",
        "stock": 12,
        "points_cost": 0,
        "is_redeemable": False,
    },
    {
        "code": "AC001",
        "name": "Control Xbox Series X",
        "category": "accesorios",
        "price": "59990",
        "stock": 8,
        "points_cost": 0,
        "is_redeemable": False,
    },
    {
        "code": "CO001",
        "name": "PlayStation 5",
        "category": "consolas",
        "price": "549990",
        "stock": 3,
        "points_cost": 0,
        "is_redeemable": False,
    },
    {
        "code": "RW001",
        "name": "Polera LevelUp",
        "category": "recompensas",
        "price": "0",
        "stock": 25,
        "points_cost": 800,
        "is_redeemable": True,
    },
]


async def seed_accounts(session: AsyncSession) -> None:
    for account in DEV_ACCOUNTS:
        with session.no_autoflush:
            existing = await session.execute(select(User).where(User.email == account["email"]))
        record = existing.scalar_one_or_none()

        if record:
            record.display_name = account["display_name"]
            record.role = account["role"]
            record.points_balance = account["points"]
            continue

        await insert_account(
            session,
            User(
                email=account["email"],
                password_hash=hash_password(DEV_PASSWORD),
                display_name=account["display_name"],
                role=account["role"],
                account_type=account_type_for_email(account["email"]),
                points_balance=account["points"],
                tier=settings.default_tier,
                addresses=[],
            ),
            max_attempts=settings.referral_code_max_attempts,
        )
    await session.commit()


async def seed_products(session: AsyncSession) -> None:
    for product in DEV_PRODUCTS:
        with session.no_autoflush:
            existing = await session.execute(select(Product).where(Product.code == product["code"]))
        record = existing.scalar_one_or_none()
        origin = ProductOriginEnum.REWARDS.value if product["is_redeemable"] else ProductOriginEnum.STORE.value

        if record:
            record.name = product["name"]
            record.category = product["category"]
            record.price = Decimal(product["price"])
            record.stock = product["stock"]
            record.points_cost = product["points_cost"]
            record.is_redeemable = product["is_redeemable"]
            record.origin = origin
        else:
            session.add(
                Product(
                    code=product["code"],
                    name=product["name"],
                    category=product["category"],
                    price=Decimal(product["price"]),
                    stock=product["stock"],
                    points_cost=product["points_cost"],
                    is_redeemable=product["is_redeemable"],
                    origin=origin,
                )
            )
    await session.commit()


async def main() -> None:
    configure_logging(service_name="levelup-seed", environment=settings.environment, version=__version__)
    engine = create_engine_for_url(settings.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as session:
            await seed_accounts(session)
            await seed_products(session)
        logger.info("Development catalog ready", accounts=len(DEV_ACCOUNTS), products=len(DEV_PRODUCTS))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
