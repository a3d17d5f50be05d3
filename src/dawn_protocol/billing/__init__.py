"""Subscription entitlement."""

from dawn_protocol.billing.entitlement import (
    Plan,
    Subscription,
    is_subscription_active,
    plan_for_price_id,
    requires_paywall,
    resolve_entitlement,
)

__all__ = [
    "Plan",
    "Subscription",
    "is_subscription_active",
    "plan_for_price_id",
    "requires_paywall",
    "resolve_entitlement",
]
