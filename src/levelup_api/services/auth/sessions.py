"""Opaque session token issuance."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from levelup_api.core.settings import Settings, settings as default_settings
from levelup_api.models.auth_identity import AuthSession
from levelup_api.models.user import User

TOKEN_BYTES = 32


def issue_session(
    db_session: AsyncSession,
    account: User,
    *,
    config: Settings | None = None,
    now: datetime | None = None,
) -> AuthSession:
    """Stage a ``sessions`` row for ``account``; the caller commits."""

    ttl_days = (config or default_settings).session_ttl_days
    issued_at = now or datetime.now(timezone.utc)
    auth_session = AuthSession(
        session_token=secrets.token_urlsafe(TOKEN_BYTES),
        user_id=account.id,
        expires=issued_at + timedelta(days=ttl_days),
        role_snapshot=account.role,
    )
    db_session.add(auth_session)
    return auth_session


__all__ = ["issue_session"]
