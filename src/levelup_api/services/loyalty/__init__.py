"""Loyalty points exports."""

from .ledger_service import PointsLedgerService  # noqa: F401
from .points import (  # noqa: F401
    ReferralGrant,
    apply_points_delta,
    derive_tier,
    net_points_delta,
    referral_grants,
)
from .referral_codes import allocate_referral_code, generate_referral_code  # noqa: F401
