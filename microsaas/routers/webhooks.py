"""Webhook routes — Stripe."""

import logging

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.billing.guard import get_plan_catalog
from microsaas.billing.plans import PlanCatalog
from microsaas.config import get_settings
from microsaas.db.session import get_db
from microsaas.services.subscription_service import (
    handle_checkout_completed,
    handle_invoice_paid,
    handle_invoice_payment_failed,
    handle_subscription_deleted,
    handle_subscription_updated,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
    catalog: PlanCatalog = Depends(get_plan_catalog),
):
    settings = get_settings()
    payload = await request.body()

    try:
        event = stripe.Webhook.construct_event(
            payload, stripe_signature, settings.stripe_webhook_secret
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")

    event_type = event["type"]
    data = event["data"]["object"]

    logger.info("Stripe webhook: %s", event_type)

    if event_type == "checkout.session.completed":
        await handle_checkout_completed(data, db, catalog)
    elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
        await handle_subscription_updated(data, db, catalog)
    elif event_type == "customer.subscription.deleted":
        await handle_subscription_deleted(data, db)
    elif event_type == "invoice.paid":
        await handle_invoice_paid(data, db)
    elif event_type == "invoice.payment_failed":
        await handle_invoice_payment_failed(data, db)
    else:
        logger.debug("Ignoring unhandled Stripe event %s", event_type)

    return {"status": "ok"}
