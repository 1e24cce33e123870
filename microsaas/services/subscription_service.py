"""Stripe subscription management — storage reads, checkout, portal, webhooks."""

import asyncio
import json
import logging

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.billing.entitlements import summarize
from microsaas.billing.plans import FREE_PLAN, BillingInterval, PlanCatalog, build_default_catalog
from microsaas.config import get_settings
from microsaas.models.subscription import Subscription
from microsaas.models.subscription_plan import SubscriptionPlan
from microsaas.models.user import User
from microsaas.schemas.billing import EntitlementSummary
from microsaas.utils import from_unix, now_utc

logger = logging.getLogger(__name__)


def init_stripe() -> None:
    """Set the Stripe API key from settings. Call once at startup."""
    settings = get_settings()
    stripe.api_key = settings.stripe_secret_key


# --- Storage reads ---


async def fetch_subscription(db: AsyncSession, reference_id: str) -> Subscription | None:
    """Return the current subscription for a subject, or None."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.reference_id == reference_id)
        .order_by(Subscription.updated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def fetch_plan_catalog(db: AsyncSession) -> PlanCatalog:
    """Settings-derived catalog with active ``subscription_plans`` rows applied."""
    result = await db.execute(select(SubscriptionPlan).where(SubscriptionPlan.is_active == True))
    return build_default_catalog().with_overrides(result.scalars().all())


async def get_entitlement_summary(db: AsyncSession, reference_id: str) -> EntitlementSummary:
    subscription = await fetch_subscription(db, reference_id)
    catalog = await fetch_plan_catalog(db)
    return summarize(subscription, catalog)


# --- Stripe payload helpers ---


def _field(obj, key: str, default=None):
    """Read a key from a dict or StripeObject without assuming ``.get``."""
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return default
    return default if value is None else value


def _get_period_timestamps(stripe_sub) -> tuple[int | None, int | None]:
    """Extract current_period_start/end, handling Stripe API version differences.

    Newer API versions (2024-06-20+) moved these fields to items.data[0].
    """
    start, end = _field(stripe_sub, "current_period_start"), _field(stripe_sub, "current_period_end")
    if start and end:
        return start, end
    try:
        item = stripe_sub["items"]["data"][0]
        return item["current_period_start"], item["current_period_end"]
    except (KeyError, TypeError, IndexError):
        pass
    return None, None


def _get_price_id(stripe_sub) -> str:
    try:
        return stripe_sub["items"]["data"][0]["price"]["id"]
    except (KeyError, TypeError, IndexError):
        return ""


def _resolve_plan_name(stripe_sub, catalog: PlanCatalog) -> str:
    """Map a Stripe subscription to a catalog plan id via its price."""
    price_id = _get_price_id(stripe_sub)
    plan = catalog.find_by_price_id(price_id)
    if plan:
        return plan.id

    metadata_plan = _field(_field(stripe_sub, "metadata", {}), "plan")
    if metadata_plan and metadata_plan in catalog:
        return metadata_plan

    logger.warning(
        "Stripe subscription %s has unmapped price %r; storing plan as %s",
        _field(stripe_sub, "id"),
        price_id,
        FREE_PLAN,
    )
    return FREE_PLAN


def _apply_stripe_data(sub: Subscription, stripe_sub, catalog: PlanCatalog) -> None:
    """Copy Stripe subscription fields onto a Subscription row."""
    period_start, period_end = _get_period_timestamps(stripe_sub)
    sub.stripe_subscription_id = _field(stripe_sub, "id")
    sub.stripe_price_id = _get_price_id(stripe_sub)
    sub.plan_name = _resolve_plan_name(stripe_sub, catalog)
    sub.status = _field(stripe_sub, "status", sub.status)
    if period_start:
        sub.current_period_start = from_unix(period_start)
    if period_end:
        sub.current_period_end = from_unix(period_end)
    if sub.current_period_start is None:
        sub.current_period_start = now_utc()
    if sub.current_period_end is None:
        sub.current_period_end = sub.current_period_start
    sub.cancel_at_period_end = bool(_field(stripe_sub, "cancel_at_period_end", False))
    sub.canceled_at = from_unix(_field(stripe_sub, "canceled_at"))
    sub.trial_start = from_unix(_field(stripe_sub, "trial_start"))
    sub.trial_end = from_unix(_field(stripe_sub, "trial_end"))

    metadata = _field(stripe_sub, "metadata")
    if metadata:
        raw = metadata.to_dict() if hasattr(metadata, "to_dict") else dict(metadata)
        sub.metadata_json = json.dumps(raw)


async def _find_by_stripe_id(db: AsyncSession, stripe_subscription_id: str) -> Subscription | None:
    result = await db.execute(
        select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
    )
    return result.scalar_one_or_none()


async def _resolve_reference_id(db: AsyncSession, stripe_sub) -> str | None:
    """Find the owning subject from metadata, falling back to the Stripe customer."""
    reference_id = _field(_field(stripe_sub, "metadata", {}), "reference_id")
    if reference_id:
        return reference_id

    customer_id = _field(stripe_sub, "customer")
    if not customer_id:
        return None
    result = await db.execute(select(User.id).where(User.stripe_customer_id == customer_id))
    return result.scalar_one_or_none()


async def _upsert_subscription(
    db: AsyncSession,
    stripe_sub,
    catalog: PlanCatalog,
    reference_id: str | None = None,
) -> Subscription | None:
    """Insert or update the row for a Stripe subscription (idempotent)."""
    sub = await _find_by_stripe_id(db, _field(stripe_sub, "id"))
    if sub is None:
        reference_id = reference_id or await _resolve_reference_id(db, stripe_sub)
        if not reference_id:
            logger.warning("Cannot attribute Stripe subscription %s to a user", _field(stripe_sub, "id"))
            return None
        # Replace, not duplicate, when the subject already has a record
        sub = await fetch_subscription(db, reference_id)
        if sub is None:
            sub = Subscription(reference_id=reference_id)
            db.add(sub)

    _apply_stripe_data(sub, stripe_sub, catalog)
    await db.commit()
    return sub


# --- Checkout / portal ---


async def create_checkout_session(
    user: User,
    plan_id: str,
    interval: BillingInterval,
    catalog: PlanCatalog,
    db: AsyncSession,
) -> str:
    """Create a Stripe Checkout session for a paid plan and return the URL."""
    settings = get_settings()

    plan = catalog.require(plan_id)
    if plan.id == FREE_PLAN:
        raise ValueError("The free plan does not require checkout")
    price_id = plan.price_id_for(interval)
    if not price_id:
        raise ValueError(f"No Stripe price configured for {plan.id} ({interval})")

    # Ensure user has a Stripe customer
    if not user.stripe_customer_id:
        customer = await asyncio.to_thread(
            stripe.Customer.create,
            metadata={"user_id": user.id},
            email=user.email,
        )
        user.stripe_customer_id = customer.id
        await db.commit()

    subscription_data = {"metadata": {"reference_id": user.id, "plan": plan.id}}
    # Trials are only offered to users who never subscribed before
    if plan.trial_days and await fetch_subscription(db, user.id) is None:
        subscription_data["trial_period_days"] = plan.trial_days

    session = await asyncio.to_thread(
        stripe.checkout.Session.create,
        customer=user.stripe_customer_id,
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=f"{settings.app_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{settings.app_url}/pricing?canceled=true",
        metadata={"reference_id": user.id, "plan": plan.id},
        subscription_data=subscription_data,
    )
    return session.url


async def create_portal_session(user: User) -> str:
    """Create a Stripe Customer Portal session and return the URL."""
    settings = get_settings()

    if not user.stripe_customer_id:
        raise ValueError("User has no Stripe customer ID")

    session = await asyncio.to_thread(
        stripe.billing_portal.Session.create,
        customer=user.stripe_customer_id,
        return_url=f"{settings.app_url}/dashboard/subscription",
    )
    return session.url


# --- Webhook handlers ---


async def handle_checkout_completed(session_data, db: AsyncSession, catalog: PlanCatalog) -> None:
    """Handle checkout.session.completed (idempotent)."""
    subscription_id = _field(session_data, "subscription")
    if not subscription_id:
        return

    reference_id = _field(_field(session_data, "metadata", {}), "reference_id")
    stripe_sub = await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
    await _upsert_subscription(db, stripe_sub, catalog, reference_id=reference_id)


async def handle_subscription_updated(sub_data, db: AsyncSession, catalog: PlanCatalog) -> None:
    """Handle customer.subscription.created / customer.subscription.updated."""
    await _upsert_subscription(db, sub_data, catalog)


async def handle_subscription_deleted(sub_data, db: AsyncSession) -> None:
    sub = await _find_by_stripe_id(db, _field(sub_data, "id"))
    if sub:
        sub.status = "canceled"
        sub.cancel_at_period_end = False
        sub.canceled_at = from_unix(_field(sub_data, "canceled_at")) or now_utc()
        await db.commit()


async def handle_invoice_paid(invoice_data, db: AsyncSession) -> None:
    """Handle invoice.paid — refresh the period and take the status Stripe reports."""
    subscription_id = _field(invoice_data, "subscription")
    if not subscription_id:
        return

    sub = await _find_by_stripe_id(db, subscription_id)
    if not sub:
        return

    stripe_sub = await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
    period_start, period_end = _get_period_timestamps(stripe_sub)
    sub.status = _field(stripe_sub, "status", sub.status)
    if period_start:
        sub.current_period_start = from_unix(period_start)
    if period_end:
        sub.current_period_end = from_unix(period_end)
    await db.commit()


async def handle_invoice_payment_failed(invoice_data, db: AsyncSession) -> None:
    subscription_id = _field(invoice_data, "subscription")
    if not subscription_id:
        return

    sub = await _find_by_stripe_id(db, subscription_id)
    if sub:
        sub.status = "past_due"
        await db.commit()
