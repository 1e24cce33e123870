"""Plan catalog — tier ordering, price lookup, and the default plan set.

The catalog is an explicit value: the entitlement engine receives it at
construction time, so tests and alternative deployments can pass their own.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Iterator, Literal

from microsaas.config import Settings, get_settings
from microsaas.constants import DEFAULT_TRIAL_DAYS

logger = logging.getLogger(__name__)

BillingInterval = Literal["month", "year"]


class PlanId(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"


FREE_PLAN = PlanId.FREE.value

PlanRef = PlanId | str


class UnknownPlanError(ValueError):
    """Raised when a caller names a plan the catalog does not contain."""

    def __init__(self, plan_id: object):
        super().__init__(f"Unknown plan: {plan_id!r}")
        self.plan_id = plan_id


def plan_key(plan_id: PlanRef) -> str:
    """Normalize a plan reference to its catalog key."""
    if isinstance(plan_id, Enum):
        return str(plan_id.value)
    return str(plan_id)


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    rank: int
    price_monthly: int = 0
    price_yearly: int = 0
    features: tuple[str, ...] = field(default_factory=tuple)
    price_id_monthly: str = ""
    price_id_yearly: str = ""
    trial_days: int = 0

    def __post_init__(self) -> None:
        if self.price_monthly < 0 or self.price_yearly < 0:
            raise ValueError(f"Plan {self.id!r} has a negative price")

    @property
    def is_free(self) -> bool:
        return self.price_monthly == 0 and self.price_yearly == 0

    def price_for(self, interval: BillingInterval) -> int:
        return self.price_yearly if interval == "year" else self.price_monthly

    def price_id_for(self, interval: BillingInterval) -> str:
        return self.price_id_yearly if interval == "year" else self.price_id_monthly


class PlanCatalog:
    """Ordered, immutable collection of plans with a strict tier order.

    Raises ValueError on construction if two plans share an id or a rank, or
    if the free plan is missing or is not the lowest tier.
    """

    def __init__(self, plans: Iterable[Plan]):
        ordered = sorted(plans, key=lambda p: p.rank)
        by_id: dict[str, Plan] = {}
        ranks: set[int] = set()
        for plan in ordered:
            if plan.id in by_id:
                raise ValueError(f"Duplicate plan id in catalog: {plan.id!r}")
            if plan.rank in ranks:
                raise ValueError(f"Duplicate tier rank {plan.rank} in catalog (plan {plan.id!r})")
            by_id[plan.id] = plan
            ranks.add(plan.rank)

        if FREE_PLAN not in by_id:
            raise ValueError("Plan catalog must contain the free plan")
        if ordered[0].id != FREE_PLAN:
            raise ValueError("The free plan must be the lowest tier in the catalog")

        self._plans = tuple(ordered)
        self._by_id = by_id

    def __iter__(self) -> Iterator[Plan]:
        return iter(self._plans)

    def __len__(self) -> int:
        return len(self._plans)

    def __contains__(self, plan_id: object) -> bool:
        if not isinstance(plan_id, str):
            return False
        return plan_key(plan_id) in self._by_id

    def __repr__(self) -> str:
        return f"PlanCatalog({[p.id for p in self._plans]!r})"

    @property
    def plans(self) -> tuple[Plan, ...]:
        return self._plans

    def get(self, plan_id: PlanRef | None) -> Plan | None:
        if plan_id is None:
            return None
        return self._by_id.get(plan_key(plan_id))

    def require(self, plan_id: PlanRef) -> Plan:
        plan = self.get(plan_id)
        if plan is None:
            raise UnknownPlanError(plan_id)
        return plan

    def rank(self, plan_id: PlanRef) -> int:
        return self.require(plan_id).rank

    def find_by_price_id(self, price_id: str | None) -> Plan | None:
        """Map a Stripe price id (monthly or yearly) back to its plan."""
        if not price_id:
            return None
        for plan in self._plans:
            if price_id in (plan.price_id_monthly, plan.price_id_yearly):
                return plan
        return None

    def paid_plans(self) -> tuple[Plan, ...]:
        return tuple(p for p in self._plans if p.id != FREE_PLAN)

    def with_overrides(self, rows: Iterable) -> "PlanCatalog":
        """Return a new catalog with names, price ids and features taken from
        persisted ``SubscriptionPlan`` rows. Unknown ids are ignored."""
        overrides = {}
        for row in rows:
            if row.id not in self._by_id:
                logger.warning("Ignoring subscription_plan row for unknown plan %r", row.id)
                continue
            overrides[row.id] = row

        if not overrides:
            return self

        plans = []
        for plan in self._plans:
            row = overrides.get(plan.id)
            if row is None:
                plans.append(plan)
                continue
            plans.append(
                replace(
                    plan,
                    name=row.name or plan.name,
                    price_id_monthly=row.price_id or plan.price_id_monthly,
                    price_id_yearly=row.annual_price_id or plan.price_id_yearly,
                    features=_parse_features(row.features) or plan.features,
                )
            )
        return PlanCatalog(plans)


def _parse_features(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Invalid features JSON on subscription_plan row: %r", raw)
        return ()
    if not isinstance(data, list):
        return ()
    return tuple(str(item) for item in data)


def build_default_catalog(settings: Settings | None = None) -> PlanCatalog:
    """Build the free/starter/pro catalog, wiring Stripe price ids from settings."""
    settings = settings or get_settings()
    return PlanCatalog(
        [
            Plan(
                id=PlanId.FREE.value,
                name="Free",
                rank=0,
                features=(
                    "Up to 3 projects",
                    "Basic analytics",
                    "Community support",
                    "5GB storage",
                ),
            ),
            Plan(
                id=PlanId.STARTER.value,
                name="Starter",
                rank=1,
                price_monthly=19,
                price_yearly=190,
                features=(
                    "Unlimited projects",
                    "Advanced analytics",
                    "Priority email support",
                    "50GB storage",
                    "Custom domain",
                    f"{DEFAULT_TRIAL_DAYS}-day free trial",
                ),
                price_id_monthly=settings.stripe_starter_monthly_price_id,
                price_id_yearly=settings.stripe_starter_yearly_price_id,
                trial_days=DEFAULT_TRIAL_DAYS,
            ),
            Plan(
                id=PlanId.PRO.value,
                name="Pro",
                rank=2,
                price_monthly=49,
                price_yearly=490,
                features=(
                    "Everything in Starter",
                    "Premium analytics & insights",
                    "24/7 priority support",
                    "Unlimited storage",
                    "Advanced integrations",
                    "API access",
                    "Team collaboration",
                    f"{DEFAULT_TRIAL_DAYS}-day free trial",
                ),
                price_id_monthly=settings.stripe_pro_monthly_price_id,
                price_id_yearly=settings.stripe_pro_yearly_price_id,
                trial_days=DEFAULT_TRIAL_DAYS,
            ),
        ]
    )
