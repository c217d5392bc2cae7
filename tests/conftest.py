from decimal import Decimal
from itertools import count

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import levelup_api.models  # noqa: F401
from levelup_api.core.settings import Settings
from levelup_api.db.base import Base
from levelup_api.db.session import create_engine_for_url
from levelup_api.models.product import Product
from levelup_api.models.user import User, UserRoleEnum
from levelup_api.observability.storefront import get_storefront_store


async def _build_factory(url: str):
    engine = create_engine_for_url(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session_factory():
    engine, factory = await _build_factory("sqlite+aiosqlite:///:memory:")
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Factory over a file-backed database so each session gets its own connection."""

    engine, factory = await _build_factory(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture(autouse=True)
def storefront_store():
    store = get_storefront_store()
    store.reset()
    yield store
    store.reset()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(password_hash_iterations=1_000)


_sequence = count(1)


@pytest.fixture
def make_account():
    async def _make(
        session: AsyncSession,
        *,
        email: str | None = None,
        name: str = "Test Member",
        points: int = 0,
        role: str = UserRoleEnum.CLIENT.value,
        account_type: str = "standard",
    ) -> User:
        index = next(_sequence)
        account = User(
            email=email or f"member{index}@example.com",
            display_name=name,
            role=role,
            account_type=account_type,
            points_balance=points,
            referral_code=f"TST{index:04d}",
            addresses=[],
        )
        session.add(account)
        await session.commit()
        return account

    return _make


@pytest.fixture
def make_product():
    async def _make(
        session: AsyncSession,
        *,
        name: str = "Control inalambrico",
        price: str = "10000",
        stock: int = 5,
        points_cost: int = 0,
        points_reward: int = 0,
        is_redeemable: bool = False,
        is_active: bool = True,
    ) -> Product:
        index = next(_sequence)
        product = Product(
            code=f"PRD-{index:04d}",
            name=name,
            price=Decimal(price),
            stock=stock,
            points_cost=points_cost,
            points_reward=points_reward,
            is_redeemable=is_redeemable,
            is_active=is_active,
        )
        session.add(product)
        await session.commit()
        return product

    return _make
