from datetime import datetime, timedelta, UTC

import pytest

from microsaas.billing.plans import Plan, PlanCatalog, build_default_catalog
from microsaas.models import Subscription

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def catalog() -> PlanCatalog:
    return build_default_catalog()


@pytest.fixture
def synthetic_catalog() -> PlanCatalog:
    return PlanCatalog(
        [
            Plan(id="free", name="Free", rank=0),
            Plan(id="basic", name="Basic", rank=10, price_monthly=5, price_yearly=50),
            Plan(id="team", name="Team", rank=20, price_monthly=99, price_yearly=990),
        ]
    )


@pytest.fixture
def make_subscription():
    def _make(
        status: str = "active",
        plan_name: str = "starter",
        period_end: datetime | None = None,
        **overrides,
    ) -> Subscription:
        period_end = period_end or NOW + timedelta(days=30)
        fields = dict(
            id="sub-row-1",
            reference_id="user-1",
            plan_name=plan_name,
            status=status,
            stripe_subscription_id="sub_123",
            stripe_price_id="price_starter_month",
            current_period_start=period_end - timedelta(days=30),
            current_period_end=period_end,
            cancel_at_period_end=False,
        )
        fields.update(overrides)
        return Subscription(**fields)

    return _make
