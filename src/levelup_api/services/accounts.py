"""Account lookups, profile patches and race-safe account creation."""

from __future__ import annotations

import random
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from levelup_api.core.settings import Settings, settings as default_settings
from levelup_api.domain.errors import (
    AccountNotFoundError,
    DuplicateResourceError,
    EmailAlreadyRegisteredError,
    InvalidInputError,
)
from levelup_api.domain.patch import Clear, Replace, is_unset, resolve
from levelup_api.models.user import AccountTypeEnum, User
from levelup_api.observability.storefront import get_storefront_store
from levelup_api.schemas.accounts import AccountPatch, AccountSummary
from levelup_api.services.loyalty.referral_codes import allocate_referral_code
from levelup_api.services.pricing import is_institutional_email
from levelup_api.services.stores import AccountStore

AccountRef = UUID | str


def account_type_for_email(email: str, config: Settings | None = None) -> str:
    domains = (config or default_settings).institutional_email_domains
    if is_institutional_email(email, domains):
        return AccountTypeEnum.INSTITUTIONAL.value
    return AccountTypeEnum.STANDARD.value


async def find_account(store: AccountStore, account_ref: AccountRef, *, lock: bool = False) -> User | None:
    """Resolve an account by id or email, optionally taking a row lock.

    A string shaped like a UUID is looked up as an id; any other string is
    treated as an email.
    """

    account: User | None = None
    if isinstance(account_ref, str):
        account_ref = _parse_account_id(account_ref) or account_ref
    if isinstance(account_ref, UUID):
        account = await store.find_by_id(account_ref)
    elif isinstance(account_ref, str) and account_ref.strip():
        account = await store.find_by_email(account_ref)
    if account is None or not lock:
        return account
    return await store.lock(account.id)


async def insert_account(
    session: AsyncSession,
    account: User,
    *,
    max_attempts: int,
    rng: random.Random | None = None,
) -> User:
    """Assign a free referral code to ``account`` and insert it inside a savepoint.

    A unique violation on the referral code (a concurrent signup drew the same
    code between the check and the insert) redraws the code; a violation on
    the email surfaces as ``EmailAlreadyRegisteredError``.
    """

    store = AccountStore(session)
    for attempt in range(1, max_attempts + 1):
        account.referral_code = await allocate_referral_code(
            account.display_name,
            store.referral_code_exists,
            max_attempts=max_attempts,
            rng=rng,
        )
        try:
            async with session.begin_nested():
                session.add(account)
                await session.flush()
        except IntegrityError:
            if await store.find_by_email(account.email) is not None:
                raise EmailAlreadyRegisteredError(account.email) from None
            get_storefront_store().record_uniqueness_retry("referral_code")
            logger.warning(
                "Referral code taken at insert time, retrying",
                referral_code=account.referral_code,
                attempt=attempt,
            )
            continue
        return account

    raise DuplicateResourceError(f"Could not persist account {account.email} with a unique referral code")


class AccountService:
    """Profile maintenance for existing accounts."""

    def __init__(self, session: AsyncSession, *, config: Settings | None = None) -> None:
        self._session = session
        self._settings = config or default_settings
        self._accounts = AccountStore(session)

    async def get_summary(self, account_ref: AccountRef) -> AccountSummary:
        account = await find_account(self._accounts, account_ref)
        if account is None:
            raise AccountNotFoundError(account_ref)
        return AccountSummary.model_validate(account)

    async def update_account(self, account_id: UUID, patch: AccountPatch) -> AccountSummary:
        """Apply a tagged patch; unset fields keep their stored value."""

        try:
            account = await self._accounts.lock(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)

            if isinstance(patch.display_name, Clear):
                raise InvalidInputError("Display name cannot be cleared")
            if isinstance(patch.display_name, Replace):
                name = (patch.display_name.value or "").strip()
                if not name:
                    raise InvalidInputError("Display name cannot be blank")
                account.display_name = name

            if not is_unset(patch.phone_number):
                account.phone_number = resolve(patch.phone_number, account.phone_number, empty=lambda: None)

            if not is_unset(patch.addresses):
                addresses = resolve(patch.addresses, list(account.addresses or []), empty=list)
                account.addresses = [_normalize_address(entry) for entry in addresses]

            await self._accounts.save(account)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        logger.info("Updated account profile", account_id=str(account_id))
        return AccountSummary.model_validate(account)


def _parse_account_id(value: str) -> UUID | None:
    try:
        return UUID(value.strip())
    except ValueError:
        return None


def _normalize_address(entry: Any) -> dict[str, Any]:
    if hasattr(entry, "snapshot"):
        return entry.snapshot()
    if isinstance(entry, dict):
        return dict(entry)
    raise InvalidInputError("Saved addresses must be mappings")


__all__ = [
    "AccountRef",
    "AccountService",
    "account_type_for_email",
    "find_account",
    "insert_account",
]
