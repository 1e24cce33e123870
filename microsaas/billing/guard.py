"""FastAPI dependencies for plan-gated routes."""

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.billing.entitlements import EntitlementEngine
from microsaas.billing.plans import PlanCatalog, PlanRef
from microsaas.db.session import get_db
from microsaas.models.user import User
from microsaas.services.auth_service import get_current_user
from microsaas.services.subscription_service import fetch_plan_catalog, fetch_subscription


async def get_plan_catalog(db: AsyncSession = Depends(get_db)) -> PlanCatalog:
    return await fetch_plan_catalog(db)


async def get_entitlement_engine(catalog: PlanCatalog = Depends(get_plan_catalog)) -> EntitlementEngine:
    return EntitlementEngine(catalog)


def require_plan(required_plan: PlanRef):
    """Dependency that lets the request through only for subjects entitled
    to ``required_plan`` or a higher tier; otherwise 402."""

    async def dependency(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        engine: EntitlementEngine = Depends(get_entitlement_engine),
    ) -> User:
        subscription = await fetch_subscription(db, user.id)
        if engine.has_access_to_plan(subscription, required_plan):
            return user
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Upgrade required",
        )

    return dependency
