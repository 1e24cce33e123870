"""Entitlement engine — derive plan, status and upgrade eligibility from a
subscription snapshot and a plan catalog.

Every function here is pure: inputs are a subscription (or ``None`` when the
subject has no record), a ``PlanCatalog`` and, where time matters, an explicit
``now``. Nothing reads the clock, the database or global configuration.

Status semantics:
    Only ``active`` and ``trialing`` are entitled. ``is_in_trial`` reads the
    status field alone; a record whose ``trial_end`` has passed keeps
    reporting a trial until the billing provider's webhook updates the status.
"""

import logging
from datetime import datetime, timedelta
from typing import Protocol

from microsaas.billing.plans import FREE_PLAN, PlanCatalog, PlanRef
from microsaas.constants import ENTITLED_STATUSES
from microsaas.schemas.billing import (
    EntitlementSummary,
    HasSubscription,
    NoSubscription,
    SubscriptionOut,
)
from microsaas.utils import ensure_utc

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


class SubscriptionLike(Protocol):
    status: str
    plan_name: str
    cancel_at_period_end: bool
    current_period_end: datetime | None


def is_active(subscription: SubscriptionLike | None) -> bool:
    return subscription is not None and subscription.status in ENTITLED_STATUSES


def is_in_trial(subscription: SubscriptionLike | None) -> bool:
    return subscription is not None and subscription.status == "trialing"


def will_cancel_at_period_end(subscription: SubscriptionLike | None) -> bool:
    return subscription is not None and bool(subscription.cancel_at_period_end)


def current_plan(subscription: SubscriptionLike | None, catalog: PlanCatalog) -> str:
    """Plan the subject is entitled to right now.

    Missing or non-entitled subscriptions map to free. A stored plan name the
    catalog does not know is a data-integrity fault and also maps to free.
    """
    if not is_active(subscription):
        return FREE_PLAN

    plan = catalog.get(subscription.plan_name)
    if plan is None:
        logger.warning(
            "Subscription %s references unknown plan %r; treating as %s",
            getattr(subscription, "id", "?"),
            subscription.plan_name,
            FREE_PLAN,
        )
        return FREE_PLAN
    return plan.id


def has_access_to_plan(
    subscription: SubscriptionLike | None,
    catalog: PlanCatalog,
    required_plan: PlanRef,
) -> bool:
    required_rank = catalog.rank(required_plan)
    return catalog.rank(current_plan(subscription, catalog)) >= required_rank


def can_upgrade_to(
    subscription: SubscriptionLike | None,
    catalog: PlanCatalog,
    target_plan: PlanRef,
) -> bool:
    target_rank = catalog.rank(target_plan)
    return target_rank > catalog.rank(current_plan(subscription, catalog))


def can_downgrade_to(
    subscription: SubscriptionLike | None,
    catalog: PlanCatalog,
    target_plan: PlanRef,
) -> bool:
    """Only an active subscription has something to downgrade from."""
    target_rank = catalog.rank(target_plan)
    return target_rank < catalog.rank(current_plan(subscription, catalog)) and is_active(subscription)


def days_remaining(subscription: SubscriptionLike | None, now: datetime) -> int:
    """Whole days left in the current period, rounded up, never negative."""
    if subscription is None or subscription.current_period_end is None:
        return 0

    delta = ensure_utc(subscription.current_period_end) - ensure_utc(now)
    if delta <= timedelta(0):
        return 0
    return -(-delta // _ONE_DAY)


def summarize(subscription: SubscriptionLike | None, catalog: PlanCatalog) -> EntitlementSummary:
    """Build the tagged entitlement summary returned by the API."""
    if subscription is None:
        return NoSubscription()

    return HasSubscription(
        has_subscription=is_active(subscription),
        plan=current_plan(subscription, catalog),
        status=subscription.status,
        subscription=SubscriptionOut.model_validate(subscription),
    )


class EntitlementEngine:
    """Entitlement checks bound to one plan catalog."""

    def __init__(self, catalog: PlanCatalog):
        self.catalog = catalog

    def tier_rank(self, plan_id: PlanRef) -> int:
        return self.catalog.rank(plan_id)

    def current_plan(self, subscription: SubscriptionLike | None) -> str:
        return current_plan(subscription, self.catalog)

    def has_access_to_plan(self, subscription: SubscriptionLike | None, required_plan: PlanRef) -> bool:
        return has_access_to_plan(subscription, self.catalog, required_plan)

    def can_upgrade_to(self, subscription: SubscriptionLike | None, target_plan: PlanRef) -> bool:
        return can_upgrade_to(subscription, self.catalog, target_plan)

    def can_downgrade_to(self, subscription: SubscriptionLike | None, target_plan: PlanRef) -> bool:
        return can_downgrade_to(subscription, self.catalog, target_plan)

    def upgrade_options(self, subscription: SubscriptionLike | None) -> list[str]:
        return [p.id for p in self.catalog if self.can_upgrade_to(subscription, p.id)]

    def downgrade_options(self, subscription: SubscriptionLike | None) -> list[str]:
        return [p.id for p in self.catalog if self.can_downgrade_to(subscription, p.id)]

    def summarize(self, subscription: SubscriptionLike | None) -> EntitlementSummary:
        return summarize(subscription, self.catalog)
