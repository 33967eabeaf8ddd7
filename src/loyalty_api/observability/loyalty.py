from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


REDEMPTION_OUTCOMES = (
    "succeeded",
    "not_found",
    "reward_unavailable",
    "insufficient_points",
    "busy",
)


@dataclass
class LoyaltySnapshot:
    redemptions: Dict[str, int]
    points_redeemed: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "redemptions": dict(self.redemptions),
            "points_redeemed": self.points_redeemed,
        }


class LoyaltyObservabilityStore:
    """Collect redemption outcome counters for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._redemptions: Dict[str, int] = defaultdict(int)
        self._points_redeemed = 0

    def record_redemption(self, outcome: str, *, points: int = 0) -> None:
        with self._lock:
            self._redemptions[outcome] += 1
            if outcome == "succeeded":
                self._points_redeemed += points

    def snapshot(self) -> LoyaltySnapshot:
        with self._lock:
            redemptions = {outcome: self._redemptions.get(outcome, 0) for outcome in REDEMPTION_OUTCOMES}
            return LoyaltySnapshot(redemptions=redemptions, points_redeemed=self._points_redeemed)

    def reset(self) -> None:
        with self._lock:
            self._redemptions.clear()
            self._points_redeemed = 0


_STORE = LoyaltyObservabilityStore()


def get_loyalty_store() -> LoyaltyObservabilityStore:
    return _STORE


__all__ = ["get_loyalty_store", "LoyaltyObservabilityStore", "LoyaltySnapshot", "REDEMPTION_OUTCOMES"]
