from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class StorefrontSnapshot:
    orders: Dict[str, int]
    redemptions: Dict[str, int]
    referrals: Dict[str, int]
    uniqueness_retries: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "orders": dict(self.orders),
            "redemptions": dict(self.redemptions),
            "referrals": dict(self.referrals),
            "uniqueness_retries": dict(self.uniqueness_retries),
        }


class StorefrontObservabilityStore:
    """Collect order, redemption, and referral telemetry for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._orders: Dict[str, int] = defaultdict(int)
        self._redemptions: Dict[str, int] = defaultdict(int)
        self._referrals: Dict[str, int] = defaultdict(int)
        self._retries: Dict[str, int] = defaultdict(int)

    def record_order_created(self) -> None:
        with self._lock:
            self._orders["created"] += 1

    def record_order_rejected(self, reason: str) -> None:
        with self._lock:
            self._orders["rejected"] += 1
            self._orders[f"rejected:{reason}"] += 1

    def record_redemption_created(self) -> None:
        with self._lock:
            self._redemptions["created"] += 1

    def record_redemption_rejected(self, reason: str) -> None:
        with self._lock:
            self._redemptions["rejected"] += 1
            self._redemptions[f"rejected:{reason}"] += 1

    def record_referral_event(self, event: str) -> None:
        with self._lock:
            self._referrals[event] += 1

    def record_uniqueness_retry(self, resource: str) -> None:
        with self._lock:
            self._retries[resource] += 1

    def snapshot(self) -> StorefrontSnapshot:
        with self._lock:
            return StorefrontSnapshot(
                orders=dict(self._orders),
                redemptions=dict(self._redemptions),
                referrals=dict(self._referrals),
                uniqueness_retries=dict(self._retries),
            )

    def reset(self) -> None:
        with self._lock:
            self._orders.clear()
            self._redemptions.clear()
            self._referrals.clear()
            self._retries.clear()


_STORE = StorefrontObservabilityStore()


def get_storefront_store() -> StorefrontObservabilityStore:
    return _STORE


__all__ = ["get_storefront_store", "StorefrontObservabilityStore", "StorefrontSnapshot"]
