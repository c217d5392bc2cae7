"""Redemption services."""

from .redemption_service import RedemptionService

__all__ = ["RedemptionService"]
