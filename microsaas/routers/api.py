"""API routes — billing actions for the signed-in user and plan-gated features."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.billing import entitlements
from microsaas.billing.entitlements import EntitlementEngine
from microsaas.billing.formatting import status_color, status_label
from microsaas.billing.guard import get_entitlement_engine, require_plan
from microsaas.billing.plans import PlanId
from microsaas.db.session import get_db
from microsaas.models.user import User
from microsaas.schemas.billing import BillingOverview, CheckoutRequest
from microsaas.services.auth_service import get_current_user
from microsaas.services.subscription_service import (
    create_checkout_session,
    create_portal_session,
    fetch_subscription,
)
from microsaas.utils import now_utc

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["api"])


# --- Billing endpoints ---


@router.get("/billing/me", response_model=BillingOverview)
async def billing_overview(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: EntitlementEngine = Depends(get_entitlement_engine),
):
    subscription = await fetch_subscription(db, user.id)
    return BillingOverview(
        summary=engine.summarize(subscription),
        is_active=entitlements.is_active(subscription),
        is_in_trial=entitlements.is_in_trial(subscription),
        will_cancel_at_period_end=entitlements.will_cancel_at_period_end(subscription),
        days_remaining=entitlements.days_remaining(subscription, now_utc()),
        status_label=status_label(subscription.status) if subscription else None,
        status_color=status_color(subscription.status) if subscription else None,
        upgrade_options=engine.upgrade_options(subscription),
        downgrade_options=engine.downgrade_options(subscription),
    )


@router.post("/billing/checkout")
async def billing_checkout(
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: EntitlementEngine = Depends(get_entitlement_engine),
):
    subscription = await fetch_subscription(db, user.id)
    # Existing subscribers change plans through the billing portal
    if entitlements.is_active(subscription):
        raise HTTPException(status_code=409, detail="Manage plan changes from the billing portal")
    try:
        url = await create_checkout_session(user, body.plan, body.interval, engine.catalog, db)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RedirectResponse(url, status_code=303)


@router.post("/billing/portal")
async def billing_portal(
    user: User = Depends(get_current_user),
):
    try:
        url = await create_portal_session(user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RedirectResponse(url, status_code=303)


# --- Plan-gated features ---


@router.get("/features/analytics")
async def advanced_analytics(user: User = Depends(require_plan(PlanId.STARTER))):
    return {"feature": "advanced_analytics", "user_id": user.id}


@router.get("/features/api-access")
async def api_access(user: User = Depends(require_plan(PlanId.PRO))):
    return {"feature": "api_access", "user_id": user.id}
