"""LevelUp storefront core: order fulfillment, points ledger, redemptions and referrals."""

__version__ = "0.1.0"
