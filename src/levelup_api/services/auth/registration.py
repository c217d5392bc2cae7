"""Signup with referral-code allocation and referral bonuses."""

from __future__ import annotations

import random

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from levelup_api.core.settings import Settings, settings as default_settings
from levelup_api.domain.errors import EmailAlreadyRegisteredError, StorefrontError
from levelup_api.models.loyalty import PointsLedgerEntryType
from levelup_api.models.user import User, UserRoleEnum
from levelup_api.observability.storefront import get_storefront_store
from levelup_api.schemas.accounts import AccountSummary, AuthenticatedSession, RegistrationProfile
from levelup_api.services.accounts import account_type_for_email, insert_account
from levelup_api.services.auth.passwords import hash_password
from levelup_api.services.auth.sessions import issue_session
from levelup_api.services.loyalty import PointsLedgerService, referral_grants
from levelup_api.services.stores import AccountStore


def normalize_referral_code(code: str | None) -> str | None:
    if code is None:
        return None
    normalized = code.strip().upper()
    return normalized or None


class RegistrationService:
    """Create accounts and settle referral bonuses in one transaction.

    An unknown referral code never blocks signup: the account is created
    without bonuses and the miss is logged and counted.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        config: Settings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._session = session
        self._settings = config or default_settings
        self._rng = rng
        self._accounts = AccountStore(session)
        self._ledger = PointsLedgerService(session, config=self._settings)
        self._observability = get_storefront_store()

    async def register(self, profile: RegistrationProfile) -> AuthenticatedSession:
        referral_outcome = "none"
        try:
            if await self._accounts.find_by_email(profile.email) is not None:
                raise EmailAlreadyRegisteredError(profile.email)

            referrer = await self._resolve_referrer(profile.referral_code_used)
            grant = None
            if referrer is not None:
                grant = referral_grants(
                    referrer.role,
                    welcome_points=self._settings.referral_welcome_bonus_points,
                    referrer_points=self._settings.referral_referrer_bonus_points,
                )
                if grant.referrer_points:
                    await self._ledger.credit(
                        referrer,
                        grant.referrer_points,
                        entry_type=PointsLedgerEntryType.REFERRAL_BONUS,
                        reference=f"referral:{profile.email}",
                        description="Referral bonus",
                    )
                    referral_outcome = "referrer_rewarded"
                else:
                    referral_outcome = "referrer_not_eligible"
            elif normalize_referral_code(profile.referral_code_used):
                referral_outcome = "unknown_code"

            account = User(
                email=profile.email,
                password_hash=hash_password(profile.password, iterations=self._settings.password_hash_iterations),
                display_name=profile.name,
                phone_number=profile.phone,
                tax_id=profile.tax_id,
                role=UserRoleEnum.CLIENT.value,
                account_type=account_type_for_email(profile.email, self._settings),
                points_balance=0,
                lifetime_points=0,
                tier=self._settings.default_tier,
                referred_by=referrer.referral_code if referrer is not None else None,
                addresses=[],
            )
            await insert_account(
                self._session,
                account,
                max_attempts=self._settings.referral_code_max_attempts,
                rng=self._rng,
            )

            if grant is not None and grant.welcome_points:
                await self._ledger.credit(
                    account,
                    grant.welcome_points,
                    entry_type=PointsLedgerEntryType.REFERRAL_WELCOME,
                    reference=f"referral:{referrer.referral_code}",
                    description="Welcome bonus",
                )

            auth_session = issue_session(self._session, account, config=self._settings)
            await self._session.commit()
        except StorefrontError as exc:
            await self._session.rollback()
            logger.warning("Rejected registration", reason=exc.code, error=str(exc))
            raise
        except Exception:
            await self._session.rollback()
            raise

        self._observability.record_referral_event(referral_outcome)
        logger.info(
            "Registered account",
            account_id=str(account.id),
            referral_code=account.referral_code,
            referred_by=account.referred_by,
            referral_outcome=referral_outcome,
        )
        return AuthenticatedSession(
            token=auth_session.session_token,
            expires_at=auth_session.expires,
            account=AccountSummary.model_validate(account),
        )

    async def _resolve_referrer(self, raw_code: str | None) -> User | None:
        code = normalize_referral_code(raw_code)
        if code is None:
            return None
        referrer = await self._accounts.find_by_referral_code(code)
        if referrer is None:
            logger.info("Ignoring unknown referral code", referral_code=code)
            return None
        return await self._accounts.lock(referrer.id)


__all__ = ["RegistrationService", "normalize_referral_code"]
