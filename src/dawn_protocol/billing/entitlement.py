"""Subscription entitlement and free-tier paywall rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from dawn_protocol.core.config import BillingConfig, TrialConfig

logger = logging.getLogger(__name__)


class Plan(str, Enum):
    """Subscription plan."""

    FREE = "free"
    PLUS = "plus"
    PRO = "pro"

    @classmethod
    def parse(cls, value: Any) -> Plan:
        """Coerce a stored plan value; anything unknown is free."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.FREE


ACTIVE_STATUSES = {"active", "trialing"}


@dataclass
class Subscription:
    """Subscription state as last reported by the billing provider."""

    plan: Plan = Plan.FREE
    status: str | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Subscription:
        """Create from database row."""
        period_end = row.get("current_period_end")
        if isinstance(period_end, str):
            period_end = datetime.fromisoformat(period_end)
        return cls(
            plan=Plan.parse(row.get("plan")),
            status=row.get("status"),
            current_period_end=period_end,
            cancel_at_period_end=bool(row.get("cancel_at_period_end", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.value,
            "status": self.status,
            "current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "cancel_at_period_end": self.cancel_at_period_end,
        }


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_subscription_active(subscription: Subscription, now: datetime | None = None) -> bool:
    """Active or trialing, or canceled but still inside the paid period."""
    if subscription.status in ACTIVE_STATUSES:
        return True
    if subscription.status == "canceled" and subscription.current_period_end is not None:
        now = now or datetime.now(timezone.utc)
        return _as_aware(subscription.current_period_end) > _as_aware(now)
    return False


def resolve_entitlement(
    subscription: Subscription | None, now: datetime | None = None
) -> Plan:
    """Plan the user is entitled to right now."""
    if subscription is None:
        return Plan.FREE
    if is_subscription_active(subscription, now):
        return subscription.plan
    logger.debug(f"Subscription status {subscription.status!r} is not active, using free plan")
    return Plan.FREE


def plan_for_price_id(price_id: str | None, billing: BillingConfig) -> Plan:
    """Map a purchased price to a plan; anything but the Pro price is Plus."""
    if price_id is not None and price_id == billing.pro_price_id:
        return Plan.PRO
    return Plan.PLUS


def requires_paywall(plan: Plan, day_index: int, trial: TrialConfig) -> bool:
    """Free users past their trial sessions only get the maintenance protocol."""
    return plan is Plan.FREE and day_index >= trial.free_full_sessions
