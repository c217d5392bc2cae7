"""Points balance mutations with an append-only ledger trail."""

from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from levelup_api.core.settings import Settings, settings as default_settings
from levelup_api.domain.errors import InsufficientPointsError, InvalidInputError
from levelup_api.models.loyalty import EARNING_ENTRY_TYPES, PointsLedgerEntry, PointsLedgerEntryType
from levelup_api.models.user import User
from levelup_api.services.loyalty.points import derive_tier, net_points_delta


class PointsLedgerService:
    """Apply guarded balance updates and record a ledger entry per change.

    Balance changes are issued as ``UPDATE ... WHERE points_balance >= spent``
    so a concurrent debit can never push a balance below zero, even if the
    caller's in-memory account row is stale.
    """

    def __init__(self, db_session: AsyncSession, *, config: Settings | None = None) -> None:
        self._db = db_session
        self._settings = config or default_settings

    async def apply_order_points(
        self,
        account: User,
        *,
        points_spent: int,
        points_earned: int,
        reference: str,
    ) -> list[PointsLedgerEntry]:
        """Debit ``points_spent`` and credit ``points_earned`` as one net adjustment."""

        net_points_delta(points_spent, points_earned)
        if points_spent == 0 and points_earned == 0:
            return []

        balance_before = await self._apply(account, spent=points_spent, earned=points_earned)
        entries: list[PointsLedgerEntry] = []
        running = balance_before
        if points_spent:
            running -= points_spent
            entries.append(
                self._entry(
                    account,
                    PointsLedgerEntryType.ORDER_SPEND,
                    -points_spent,
                    running,
                    reference=reference,
                    description="Points redeemed as order discount",
                )
            )
        if points_earned:
            running += points_earned
            entries.append(
                self._entry(
                    account,
                    PointsLedgerEntryType.ORDER_EARN,
                    points_earned,
                    running,
                    reference=reference,
                    description="Points earned on purchase",
                )
            )
        await self._db.flush()
        logger.info(
            "Applied order points",
            account_id=str(account.id),
            reference=reference,
            points_spent=points_spent,
            points_earned=points_earned,
            balance=account.points_balance,
        )
        return entries

    async def debit(
        self,
        account: User,
        amount: int,
        *,
        entry_type: PointsLedgerEntryType,
        reference: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsLedgerEntry:
        if amount <= 0:
            raise InvalidInputError("Debit amount must be positive")
        balance_before = await self._apply(account, spent=amount, earned=0)
        entry = self._entry(
            account,
            entry_type,
            -amount,
            balance_before - amount,
            reference=reference,
            description=description,
            metadata=metadata,
        )
        await self._db.flush()
        logger.info(
            "Debited points",
            account_id=str(account.id),
            amount=amount,
            entry_type=entry_type.value,
            balance=account.points_balance,
        )
        return entry

    async def credit(
        self,
        account: User,
        amount: int,
        *,
        entry_type: PointsLedgerEntryType,
        reference: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsLedgerEntry:
        if amount <= 0:
            raise InvalidInputError("Credit amount must be positive")
        balance_before = await self._apply(
            account,
            spent=0,
            earned=amount,
            counts_toward_lifetime=entry_type in EARNING_ENTRY_TYPES,
        )
        entry = self._entry(
            account,
            entry_type,
            amount,
            balance_before + amount,
            reference=reference,
            description=description,
            metadata=metadata,
        )
        await self._db.flush()
        logger.info(
            "Credited points",
            account_id=str(account.id),
            amount=amount,
            entry_type=entry_type.value,
            balance=account.points_balance,
        )
        return entry

    async def _apply(
        self,
        account: User,
        *,
        spent: int,
        earned: int,
        counts_toward_lifetime: bool = True,
    ) -> int:
        """Run the guarded update and return the balance observed before it."""

        await self._db.flush()
        lifetime_increment = earned if counts_toward_lifetime else 0
        stmt = (
            update(User)
            .where(User.id == account.id, User.points_balance >= spent)
            .values(
                points_balance=User.points_balance - spent + earned,
                lifetime_points=User.lifetime_points + lifetime_increment,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        await self._db.refresh(account, attribute_names=["points_balance", "lifetime_points", "tier"])
        if result.rowcount != 1:
            raise InsufficientPointsError(account.id, spent, int(account.points_balance or 0))

        tier = derive_tier(
            int(account.lifetime_points or 0),
            self._settings.tier_thresholds,
            self._settings.default_tier,
        )
        if tier != account.tier:
            logger.info("Account tier changed", account_id=str(account.id), from_tier=account.tier, to_tier=tier)
            account.tier = tier

        return int(account.points_balance) - earned + spent

    def _entry(
        self,
        account: User,
        entry_type: PointsLedgerEntryType,
        amount: int,
        balance_after: int,
        *,
        reference: str | None,
        description: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> PointsLedgerEntry:
        entry = PointsLedgerEntry(
            user_id=account.id,
            entry_type=entry_type,
            amount=amount,
            balance_after=balance_after,
            reference=reference,
            description=description,
            metadata_json=metadata or {},
        )
        self._db.add(entry)
        return entry


__all__ = ["PointsLedgerService"]
