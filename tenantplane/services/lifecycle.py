"""
Subscription lifecycle state derivation

The state is computed by applying an ordered list of override rules to a seed
value. Rules run in sequence and a later match overwrites an earlier one, so
the order of RULES is the precedence; it is not a lookup table.
"""

from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Tuple

from tenantplane.core.timeutils import as_naive_utc, utcnow


class SubscriptionState(str, Enum):
    ACTIVE = "active"
    TRIAL = "trial"
    EXPIRED = "expired"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


# States that must never be scheduled or purged
PROTECTED_STATES = frozenset({SubscriptionState.ACTIVE, SubscriptionState.TRIAL})

PAST_DUE_STATUSES = frozenset({"past_due", "unpaid"})
CANCELLED_STATUSES = frozenset({"canceled", "cancelled"})


def _is_future(value: Optional[datetime], now: datetime) -> bool:
    value = as_naive_utc(value)
    return value is not None and value > now


def _is_past(value: Optional[datetime], now: datetime) -> bool:
    value = as_naive_utc(value)
    return value is not None and value < now


def _status(subscription) -> str:
    status = getattr(subscription, "status", None)
    return str(getattr(status, "value", status) or "").lower()


Rule = Callable[[SubscriptionState, object, object, datetime], SubscriptionState]


def trial_rule(state, subscription, tenant, now):
    if subscription is not None and subscription.is_trial:
        if _is_future(subscription.trial_ends_at, now):
            return SubscriptionState.TRIAL
        return SubscriptionState.EXPIRED
    return state


def billing_period_rule(state, subscription, tenant, now):
    if subscription is not None and _is_past(subscription.billing_period_ends_at, now):
        return SubscriptionState.EXPIRED
    return state


def past_due_rule(state, subscription, tenant, now):
    if subscription is not None and _status(subscription) in PAST_DUE_STATUSES:
        return SubscriptionState.PAST_DUE
    return state


def cancelled_rule(state, subscription, tenant, now):
    if subscription is not None and _status(subscription) in CANCELLED_STATUSES:
        return SubscriptionState.CANCELLED
    return state


def paid_active_rule(state, subscription, tenant, now):
    """A current paid subscription is active even when billing_period_rule said expired"""
    if subscription is None or _status(subscription) != "active" or subscription.is_trial:
        return state
    period_ok = subscription.billing_period_ends_at is None or _is_future(subscription.billing_period_ends_at, now)
    renewal_ok = _is_future(subscription.next_renewal_at, now)
    if period_ok or renewal_ok:
        return SubscriptionState.ACTIVE
    return state


def tenant_trial_rule(state, subscription, tenant, now):
    """Without any subscription the tenant's own trial end decides"""
    if subscription is None and tenant is not None and _is_past(getattr(tenant, "trial_ends_at", None), now):
        return SubscriptionState.EXPIRED
    return state


RULES: Tuple[Rule, ...] = (
    trial_rule,
    billing_period_rule,
    past_due_rule,
    cancelled_rule,
    paid_active_rule,
    tenant_trial_rule,
)


def seed_state(tenant) -> SubscriptionState:
    """Previously persisted state, or active when absent or unrecognised"""
    persisted = getattr(tenant, "subscription_state", None) if tenant is not None else None
    try:
        return SubscriptionState(persisted) if persisted else SubscriptionState.ACTIVE
    except ValueError:
        return SubscriptionState.ACTIVE


def derive_subscription_state(subscription, tenant=None, now: Optional[datetime] = None) -> SubscriptionState:
    """Derive the lifecycle state from raw subscription facts at `now`"""
    now = as_naive_utc(now) if now is not None else utcnow()
    state = seed_state(tenant)
    for rule in RULES:
        state = rule(state, subscription, tenant, now)
    return state


def is_protected(state: SubscriptionState) -> bool:
    return state in PROTECTED_STATES
