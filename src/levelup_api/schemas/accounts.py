"""Account registration and summary models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from levelup_api.domain.patch import UNSET, PatchField


class RegistrationProfile(BaseModel):
    """Signup payload."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    phone: Optional[str] = None
    tax_id: Optional[str] = None
    referral_code_used: Optional[str] = Field(None, description="Referral code presented at signup")

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
            raise ValueError("Invalid email address")
        return normalized

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Name is required")
        return stripped


class AccountSummary(BaseModel):
    """Public-safe projection of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    display_name: str
    role: str
    account_type: str
    points_balance: int
    tier: str
    referral_code: str
    referred_by: Optional[str] = None
    phone_number: Optional[str] = None
    tax_id: Optional[str] = None
    addresses: list[dict[str, Any]] = Field(default_factory=list)
    is_active: bool = True


class AuthenticatedSession(BaseModel):
    token: str
    expires_at: datetime
    account: AccountSummary


@dataclass(frozen=True)
class AccountPatch:
    """Profile fields editable after signup."""

    display_name: PatchField[str] = UNSET
    phone_number: PatchField[str] = UNSET
    addresses: PatchField[list[dict[str, Any]]] = UNSET


__all__ = ["AccountPatch", "AccountSummary", "AuthenticatedSession", "RegistrationProfile"]
