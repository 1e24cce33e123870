"""Billing-related Pydantic schemas."""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference_id: str
    plan_name: str
    # Stored status is whatever the billing provider sent; not narrowed here.
    status: str
    stripe_subscription_id: str
    stripe_price_id: str
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False
    canceled_at: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price_monthly: int
    price_yearly: int
    features: list[str]
    price_id_monthly: str = ""
    price_id_yearly: str = ""
    trial_days: int = 0
    # Formatted in the billing currency, e.g. "$19/month"
    display_price_monthly: str = ""
    display_price_yearly: str = ""


class NoSubscription(BaseModel):
    """Subject has no subscription record: implicitly on the free plan."""

    kind: Literal["none"] = "none"
    has_subscription: Literal[False] = False
    plan: str = "free"
    status: None = None


class HasSubscription(BaseModel):
    """Subject has a subscription record; ``plan`` is the entitled plan."""

    kind: Literal["subscription"] = "subscription"
    has_subscription: bool
    plan: str
    status: str
    subscription: SubscriptionOut


EntitlementSummary = Annotated[NoSubscription | HasSubscription, Field(discriminator="kind")]


class AccessCheck(BaseModel):
    plan: str
    required_plan: str
    has_access: bool


class CheckoutRequest(BaseModel):
    plan: str
    interval: Literal["month", "year"] = "month"


class BillingOverview(BaseModel):
    """Caller's entitlement summary plus display-ready fields."""

    summary: EntitlementSummary
    is_active: bool
    is_in_trial: bool
    will_cancel_at_period_end: bool
    days_remaining: int
    status_label: str | None = None
    status_color: str | None = None
    upgrade_options: list[str] = Field(default_factory=list)
    downgrade_options: list[str] = Field(default_factory=list)
