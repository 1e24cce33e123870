"""Seed script — populates subscription_plans and a local demo account.

Bypasses Stripe so gated features can be exercised locally.

Usage:
    python -m microsaas.admin_seed
"""

import asyncio
import json
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.billing.plans import PlanCatalog, PlanId
from microsaas.models.subscription import Subscription
from microsaas.models.subscription_plan import SubscriptionPlan
from microsaas.models.user import User
from microsaas.services.auth_service import hash_password
from microsaas.utils import now_utc

DEMO_EMAIL = "demo@localhost"
DEMO_PASSWORD = "demo-password"


async def seed_plans(db: AsyncSession, catalog: PlanCatalog) -> int:
    """Upsert one subscription_plans row per paid plan. Returns rows written."""
    written = 0
    for plan in catalog.paid_plans():
        row = await db.get(SubscriptionPlan, plan.id)
        if row is None:
            row = SubscriptionPlan(id=plan.id)
            db.add(row)
        row.name = plan.name
        row.price_id = plan.price_id_monthly
        row.annual_price_id = plan.price_id_yearly or None
        row.features = json.dumps(list(plan.features))
        row.is_active = True
        written += 1
    await db.commit()
    return written


async def seed_demo_user(db: AsyncSession, plan_id: str = PlanId.PRO.value) -> User:
    """Create the demo user with a fake active subscription, if missing."""
    result = await db.execute(select(User).where(User.email == DEMO_EMAIL))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        email=DEMO_EMAIL,
        name="Local Demo",
        password_hash=hash_password(DEMO_PASSWORD),
        email_verified=True,
    )
    db.add(user)
    await db.flush()

    now = now_utc()
    db.add(
        Subscription(
            reference_id=user.id,
            plan_name=plan_id,
            status="active",
            stripe_subscription_id="sub_demo_local",
            stripe_price_id="price_demo_local",
            current_period_start=now,
            current_period_end=now + timedelta(days=365),
            cancel_at_period_end=False,
        )
    )
    await db.commit()
    await db.refresh(user)
    return user


async def main():
    # Ensure .env is loaded before importing settings
    from dotenv import load_dotenv
    load_dotenv()

    from microsaas.billing.plans import build_default_catalog
    from microsaas.db.session import async_session_factory, engine
    from microsaas.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        count = await seed_plans(db, build_default_catalog())
        user = await seed_demo_user(db)

    print(f"Seeded {count} subscription plans")
    print(f"Demo user ready (id={user.id})")
    print(f"  email:        {DEMO_EMAIL}")
    print(f"  password:     {DEMO_PASSWORD}")
    print(f"  subscription: active {PlanId.PRO.value} (fake, 1 year)")
    print()
    print("Next steps:")
    print("  1. Start the web app:  uvicorn microsaas.app:app --reload")
    print("  2. POST /api/auth/sign-in with the credentials above")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
