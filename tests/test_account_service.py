from uuid import uuid4

import pytest

from levelup_api.domain.errors import AccountNotFoundError, InvalidInputError
from levelup_api.domain.patch import Clear, Replace
from levelup_api.schemas.accounts import AccountPatch
from levelup_api.schemas.orders import ShippingAddress
from levelup_api.services.accounts import AccountService
from levelup_api.services.orders import OrderFulfillmentService


@pytest.mark.asyncio
async def test_unset_fields_are_left_alone(session_factory, make_account) -> None:
    async with session_factory() as session:
        account = await make_account(session, name="Diego")
        service = AccountService(session)
        await service.update_account(
            account.id,
            AccountPatch(phone_number=Replace("+56900000000"), addresses=Replace([{"street": "Uno", "city": "Talca"}])),
        )

        summary = await service.update_account(account.id, AccountPatch(display_name=Replace("Diego A.")))

        assert summary.display_name == "Diego A."
        assert summary.phone_number == "+56900000000"
        assert summary.addresses == [{"street": "Uno", "city": "Talca"}]


@pytest.mark.asyncio
async def test_clear_and_replace_empty_both_empty_addresses(session_factory, make_account) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        service = AccountService(session)
        address = ShippingAddress(recipient_name="Casa", street="Dos", city="Arica")

        summary = await service.update_account(account.id, AccountPatch(addresses=Replace([address])))
        assert summary.addresses == [{"recipient_name": "Casa", "street": "Dos", "city": "Arica"}]

        summary = await service.update_account(account.id, AccountPatch(addresses=Clear()))
        assert summary.addresses == []

        await service.update_account(account.id, AccountPatch(addresses=Replace([{"street": "Tres"}])))
        summary = await service.update_account(account.id, AccountPatch(addresses=Replace([])))
        assert summary.addresses == []


@pytest.mark.asyncio
async def test_clear_phone_and_reject_blank_name(session_factory, make_account) -> None:
    async with session_factory() as session:
        account = await make_account(session)
        account_id = account.id
        service = AccountService(session)
        await service.update_account(account_id, AccountPatch(phone_number=Replace("+56911111111")))

        summary = await service.update_account(account_id, AccountPatch(phone_number=Clear()))
        assert summary.phone_number is None

        with pytest.raises(InvalidInputError):
            await service.update_account(account_id, AccountPatch(display_name=Clear()))
        with pytest.raises(InvalidInputError):
            await service.update_account(account_id, AccountPatch(display_name=Replace("   ")))


@pytest.mark.asyncio
async def test_summary_lookup(session_factory, make_account) -> None:
    async with session_factory() as session:
        account = await make_account(session, email="perfil@example.com", points=42)
        service = AccountService(session)

        by_id = await service.get_summary(account.id)
        by_email = await service.get_summary("PERFIL@example.com")

        assert by_id.id == by_email.id == account.id
        assert by_id.points_balance == 42
        assert "password_hash" not in by_id.model_dump()

        with pytest.raises(AccountNotFoundError):
            await service.get_summary(uuid4())
        with pytest.raises(AccountNotFoundError):
            await service.update_account(uuid4(), AccountPatch())


@pytest.mark.asyncio
async def test_string_account_id_resolves_by_id(session_factory, make_account, make_product) -> None:
    async with session_factory() as session:
        account = await make_account(session, points=10)
        account_id = account.id
        product = await make_product(session)

        summary = await AccountService(session).get_summary(str(account_id))
        assert summary.id == account_id

        order = await OrderFulfillmentService(session).create_order(f"  {account_id}  ", {product.id: 1})
        assert order.user_id == account_id

        with pytest.raises(AccountNotFoundError):
            await AccountService(session).get_summary(str(uuid4()))
