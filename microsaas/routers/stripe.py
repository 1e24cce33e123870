"""Stripe procedures — subscription lookups and plan listing by user id."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.billing.entitlements import EntitlementEngine
from microsaas.billing.formatting import format_price
from microsaas.billing.guard import get_entitlement_engine, get_plan_catalog
from microsaas.billing.plans import Plan, PlanCatalog, UnknownPlanError
from microsaas.config import get_settings
from microsaas.db.session import get_db
from microsaas.schemas.billing import AccessCheck, EntitlementSummary, PlanOut, SubscriptionOut
from microsaas.services.subscription_service import fetch_subscription

router = APIRouter(prefix="/api/stripe", tags=["stripe"])


def _plan_out(plan: Plan, currency: str) -> PlanOut:
    return PlanOut.model_validate(plan).model_copy(
        update={
            "display_price_monthly": format_price(plan.price_monthly, currency, "month"),
            "display_price_yearly": format_price(plan.price_yearly, currency, "year"),
        }
    )


@router.get("/get-subscription", response_model=SubscriptionOut | None)
async def get_subscription(
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await fetch_subscription(db, user_id)


@router.get("/get-plans", response_model=list[PlanOut])
async def get_plans(catalog: PlanCatalog = Depends(get_plan_catalog)):
    currency = get_settings().billing_currency
    return [_plan_out(plan, currency) for plan in catalog]


@router.get("/has-active-subscription", response_model=EntitlementSummary)
async def has_active_subscription(
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
    engine: EntitlementEngine = Depends(get_entitlement_engine),
):
    subscription = await fetch_subscription(db, user_id)
    return engine.summarize(subscription)


@router.get("/get-subscription-details", response_model=SubscriptionOut)
async def get_subscription_details(
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    subscription = await fetch_subscription(db, user_id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="No subscription found")
    return subscription


@router.get("/access", response_model=AccessCheck)
async def check_access(
    user_id: str = Query(...),
    required_plan: str = Query(...),
    db: AsyncSession = Depends(get_db),
    engine: EntitlementEngine = Depends(get_entitlement_engine),
):
    subscription = await fetch_subscription(db, user_id)
    try:
        has_access = engine.has_access_to_plan(subscription, required_plan)
    except UnknownPlanError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AccessCheck(
        plan=engine.current_plan(subscription),
        required_plan=required_plan,
        has_access=has_access,
    )
