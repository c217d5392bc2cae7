from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from levelup_api.core.settings import Settings
from levelup_api.domain.errors import (
    AccountNotFoundError,
    DuplicateResourceError,
    InsufficientPointsError,
    InsufficientStockError,
    InvalidInputError,
    ProductNotFoundError,
)
from levelup_api.models.loyalty import PointsLedgerEntry, PointsLedgerEntryType
from levelup_api.models.order import Order, OrderCreatorEnum, OrderStatusEnum
from levelup_api.models.user import User
from levelup_api.schemas.orders import AdminContext, ClientIdentity, OrderAmounts, ShippingAddress
from levelup_api.services.orders import OrderFulfillmentService, is_order_number
from levelup_api.services.stores import OrderStore


@pytest.mark.asyncio
async def test_order_example_scenario(session_factory, make_account, make_product, storefront_store) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=0)
        product = await make_product(session, price="10000", stock=5)
        service = OrderFulfillmentService(session)

        order = await service.create_order(
            account.id,
            {product.id: 2},
            shipping_address=ShippingAddress(street="Av. Siempre Viva", number="742", city="Santiago"),
            payment_method="webpay",
        )

        assert is_order_number(order.order_number)
        assert order.status == OrderStatusEnum.PENDING
        assert order.subtotal == Decimal("20000")
        assert order.total == Decimal("20000")
        assert order.points_spent == 0
        assert order.points_earned == 200
        assert order.created_by == OrderCreatorEnum.USER
        assert order.shipping_address == {"street": "Av. Siempre Viva", "number": "742", "city": "Santiago"}
        assert order.created_at is not None

        assert len(order.items) == 1
        line = order.items[0]
        assert line.product_id == product.id
        assert line.quantity == 2
        assert line.unit_price == Decimal("10000")
        assert line.total_price == Decimal("20000")

        await session.refresh(product)
        await session.refresh(account)
        assert product.stock == 3
        assert account.points_balance == 200

    assert storefront_store.snapshot().orders["created"] == 1


@pytest.mark.asyncio
async def test_order_lines_sum_to_subtotal_and_snapshot_price(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        keyboard = await make_product(session, name="Teclado", price="15990", stock=10)
        mouse = await make_product(session, name="Mouse", price="8990", stock=10)
        service = OrderFulfillmentService(session)

        order = await service.create_order(account.id, {keyboard.id: 1, mouse.id: 3})
        assert order.subtotal == sum(item.unit_price * item.quantity for item in order.items)

        keyboard.price = Decimal("19990")
        await session.commit()

        reloaded = await service.get_order(order.id)
        keyboard_line = next(item for item in reloaded.items if item.product_id == keyboard.id)
        assert keyboard_line.unit_price == Decimal("15990")


@pytest.mark.asyncio
async def test_stock_and_points_follow_order_figures(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=500)
        product = await make_product(session, price="10000", stock=4)
        service = OrderFulfillmentService(session)

        order = await service.create_order(account.id, {product.id: 1}, points_to_use=300)

        assert order.points_discount == Decimal("300")
        assert order.total == Decimal("9700")
        assert order.points_spent == 300
        assert order.points_earned == 100

        await session.refresh(account)
        await session.refresh(product)
        assert account.points_balance == 500 - 300 + 100
        assert product.stock == 3

        entries = (
            await session.execute(select(PointsLedgerEntry).where(PointsLedgerEntry.user_id == account.id))
        ).scalars().all()
        by_type = {entry.entry_type: entry for entry in entries}
        assert by_type[PointsLedgerEntryType.ORDER_SPEND].amount == -300
        assert by_type[PointsLedgerEntryType.ORDER_SPEND].balance_after == 200
        assert by_type[PointsLedgerEntryType.ORDER_EARN].amount == 100
        assert by_type[PointsLedgerEntryType.ORDER_EARN].balance_after == 300


@pytest.mark.asyncio
async def test_points_discount_is_capped_at_order_value(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=500)
        product = await make_product(session, price="120", stock=4)
        service = OrderFulfillmentService(session)

        order = await service.create_order(account.id, {product.id: 1}, points_to_use=500)

        assert order.points_spent == 120
        assert order.total == Decimal("0")
        await session.refresh(account)
        assert account.points_balance == 500 - 120 + 1


@pytest.mark.asyncio
async def test_insufficient_stock_rolls_back_every_line(
    session_factory, make_account, make_product, storefront_store
) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=300)
        plentiful = await make_product(session, name="Audifonos", stock=5)
        scarce = await make_product(session, name="Consola", stock=1)
        account_id, plentiful_id, scarce_id = account.id, plentiful.id, scarce.id
        service = OrderFulfillmentService(session)

        with pytest.raises(InsufficientStockError) as excinfo:
            await service.create_order(account_id, {plentiful_id: 2, scarce_id: 3}, points_to_use=100)

        assert excinfo.value.product_id == scarce_id
        assert excinfo.value.product_name == "Consola"
        assert excinfo.value.requested == 3

        await session.refresh(plentiful)
        await session.refresh(scarce)
        await session.refresh(account)
        assert plentiful.stock == 5
        assert scarce.stock == 1
        assert account.points_balance == 300

        orders = await session.scalar(select(func.count()).select_from(Order))
        ledger = await session.scalar(select(func.count()).select_from(PointsLedgerEntry))
        assert orders == 0
        assert ledger == 0

    snapshot = storefront_store.snapshot()
    assert snapshot.orders["rejected:insufficient_stock"] == 1
    assert "created" not in snapshot.orders


@pytest.mark.asyncio
async def test_points_overspend_rejected_before_stock_changes(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=50)
        product = await make_product(session, price="10000", stock=2)
        account_id, product_id = account.id, product.id
        service = OrderFulfillmentService(session)

        amounts = OrderAmounts(
            subtotal=Decimal("10000"),
            points_discount=Decimal("100"),
            total=Decimal("9900"),
            points_spent=100,
            points_earned=0,
        )
        with pytest.raises(InsufficientPointsError) as excinfo:
            await service.create_order(account_id, {product_id: 1}, amounts=amounts)

        assert excinfo.value.requested == 100
        assert excinfo.value.available == 50

        await session.refresh(product)
        await session.refresh(account)
        assert product.stock == 2
        assert account.points_balance == 50


@pytest.mark.asyncio
async def test_points_to_use_beyond_balance_is_rejected(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=50)
        product = await make_product(session, stock=2)
        product_id = product.id
        service = OrderFulfillmentService(session)

        with pytest.raises(InsufficientPointsError):
            await service.create_order(account.id, {product_id: 1}, points_to_use=100)

        await session.refresh(product)
        assert product.stock == 2


@pytest.mark.asyncio
async def test_precomputed_amounts_are_used_as_supplied(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        product = await make_product(session, price="10000", stock=5)
        service = OrderFulfillmentService(session)

        amounts = OrderAmounts(
            subtotal=Decimal("20000"),
            tier_discount=Decimal("4000"),
            total=Decimal("16000"),
            points_earned=7,
        )
        order = await service.create_order(account.id, {product.id: 2}, amounts=amounts)

        assert order.tier_discount == Decimal("4000")
        assert order.total == Decimal("16000")
        assert order.points_earned == 7
        await session.refresh(account)
        assert account.points_balance == 7


@pytest.mark.asyncio
async def test_inconsistent_precomputed_amounts_are_rejected(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        account_id = account.id
        product = await make_product(session, price="10000", stock=5)
        product_id = product.id
        service = OrderFulfillmentService(session)

        wrong_subtotal = OrderAmounts(subtotal=Decimal("15000"), total=Decimal("15000"))
        with pytest.raises(InvalidInputError):
            await service.create_order(account_id, {product_id: 2}, amounts=wrong_subtotal)

        wrong_total = OrderAmounts(subtotal=Decimal("20000"), tier_discount=Decimal("1000"), total=Decimal("20000"))
        with pytest.raises(InvalidInputError):
            await service.create_order(account_id, {product_id: 2}, amounts=wrong_total)

        await session.refresh(product)
        assert product.stock == 5


@pytest.mark.asyncio
async def test_empty_cart_is_invalid_input(session_factory, make_account) -> None:
    async with session_factory() as session:
        account = await make_account(session)

        with pytest.raises(InvalidInputError):
            await OrderFulfillmentService(session).create_order(account.id, {})


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
async def test_non_positive_or_non_integer_quantities_are_invalid(
    session_factory, make_account, make_product, quantity
) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        product = await make_product(session)

        with pytest.raises(InvalidInputError):
            await OrderFulfillmentService(session).create_order(account.id, {product.id: quantity})


@pytest.mark.asyncio
async def test_unknown_references_fail(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        product = await make_product(session)
        account_id, product_id = account.id, product.id
        service = OrderFulfillmentService(session)

        with pytest.raises(AccountNotFoundError):
            await service.create_order(uuid4(), {product_id: 1})
        with pytest.raises(AccountNotFoundError):
            await service.create_order("nobody@example.com", {product_id: 1})

        missing = uuid4()
        with pytest.raises(ProductNotFoundError) as excinfo:
            await service.create_order(account_id, {product_id: 1, missing: 1})
        assert excinfo.value.reference == missing

        await session.refresh(product)
        assert product.stock == 5


@pytest.mark.asyncio
async def test_inactive_products_cannot_be_ordered(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        product = await make_product(session, is_active=False)

        with pytest.raises(InvalidInputError):
            await OrderFulfillmentService(session).create_order(account.id, {product.id: 1})


@pytest.mark.asyncio
async def test_account_resolves_by_email(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, email="gamer@example.com")
        product = await make_product(session)

        order = await OrderFulfillmentService(session).create_order("  Gamer@Example.com ", {product.id: 1})

        assert order.user_id == account.id


@pytest.mark.asyncio
async def test_point_of_sale_order_synthesizes_account(session_factory, make_product) -> None:
    async with session_factory() as session:
        product = await make_product(session, price="10000", stock=5)
        service = OrderFulfillmentService(session)

        order = await service.create_order(
            None,
            {product.id: 1},
            payment_method="efectivo",
            admin_context=AdminContext(admin_id="adm-7", admin_name="Caja Central"),
            client_identity=ClientIdentity(email="Walkin@DuocUC.cl", name="Ana Perez", tax_id="11.111.111-1"),
        )

        assert order.created_by == OrderCreatorEnum.ADMIN
        assert order.admin_id == "adm-7"
        assert order.admin_name == "Caja Central"

        account = (await session.execute(select(User).where(User.id == order.user_id))).scalar_one()
        assert account.email == "walkin@duocuc.cl"
        assert account.tax_id == "11.111.111-1"
        assert account.account_type == "institutional"
        assert account.referral_code.startswith("ANA")
        assert account.password_hash is None

        # institutional accounts get the tier discount from the default policy
        assert order.tier_discount == Decimal("2000")
        assert order.total == Decimal("8000")
        assert account.points_balance == 100

        events = await service.list_events(order.id)
        assert [event.actor_label for event in events] == ["Caja Central"]


@pytest.mark.asyncio
async def test_point_of_sale_reuses_existing_account(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, email="regular@example.com")
        product = await make_product(session)

        order = await OrderFulfillmentService(session).create_order(
            None,
            {product.id: 1},
            admin_context=AdminContext(admin_id="adm-1"),
            client_identity=ClientIdentity(email="regular@example.com", name="Regular"),
        )

        assert order.user_id == account.id
        total_accounts = await session.scalar(select(func.count()).select_from(User))
        assert total_accounts == 1


@pytest.mark.asyncio
async def test_order_number_collision_is_retried(
    session_factory, make_account, make_product, storefront_store
) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        product = await make_product(session, stock=10)

        first = await OrderFulfillmentService(
            session, order_number_factory=lambda: "ORD-20261019-00001"
        ).create_order(account.id, {product.id: 1})
        assert first.order_number == "ORD-20261019-00001"

        numbers = iter(["ORD-20261019-00001", "ORD-20261019-00002"])
        second = await OrderFulfillmentService(
            session, order_number_factory=lambda: next(numbers)
        ).create_order(account.id, {product.id: 1})

        assert second.order_number == "ORD-20261019-00002"
        assert storefront_store.snapshot().uniqueness_retries["order_number"] == 1


@pytest.mark.asyncio
async def test_order_number_retries_are_bounded(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=0)
        product = await make_product(session, stock=10)
        account_id, product_id = account.id, product.id

        await OrderFulfillmentService(session, order_number_factory=lambda: "ORD-20261019-00001").create_order(
            account_id, {product_id: 1}
        )

        service = OrderFulfillmentService(
            session,
            config=Settings(order_number_max_attempts=3),
            order_number_factory=lambda: "ORD-20261019-00001",
        )
        with pytest.raises(DuplicateResourceError):
            await service.create_order(account_id, {product_id: 2})

        await session.refresh(product)
        await session.refresh(account)
        assert product.stock == 9
        assert account.points_balance == 100


@pytest.mark.asyncio
async def test_order_number_violation_at_insert_is_retried(
    session_factory, make_account, make_product, storefront_store, monkeypatch
) -> None:
    async def _never_taken(self, order_number: str) -> bool:
        return False

    monkeypatch.setattr(OrderStore, "order_number_exists", _never_taken)

    async with session_factory() as session:
        account = await make_account(session)
        product = await make_product(session, stock=10)
        account_id, product_id = account.id, product.id

        await OrderFulfillmentService(session, order_number_factory=lambda: "ORD-20261019-00001").create_order(
            account_id, {product_id: 1}
        )

        numbers = iter(["ORD-20261019-00001", "ORD-20261019-00002"])
        second = await OrderFulfillmentService(session, order_number_factory=lambda: next(numbers)).create_order(
            account_id, {product_id: 2}
        )

        assert second.order_number == "ORD-20261019-00002"
        assert [(item.product_id, item.quantity) for item in second.items] == [(product_id, 2)]
        assert second.subtotal == Decimal("20000")
        assert storefront_store.snapshot().uniqueness_retries["order_number"] == 1

        await session.refresh(product)
        assert product.stock == 7
        order_count = await session.scalar(select(func.count()).select_from(Order))
        assert order_count == 2



@pytest.mark.asyncio
async def test_order_reads(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        alice = await make_account(session, email="alice@example.com")
        bob = await make_account(session, email="bob@example.com")
        product = await make_product(session, stock=10)
        service = OrderFulfillmentService(session)

        await service.create_order(alice.id, {product.id: 1})
        await service.create_order(alice.id, {product.id: 2})
        await service.create_order(bob.id, {product.id: 1})

        assert len(await service.list_account_orders(alice.id)) == 2
        assert len(await service.list_account_orders("bob@example.com")) == 1
        assert len(await service.list_orders()) == 3
        with pytest.raises(AccountNotFoundError):
            await service.list_account_orders(uuid4())
