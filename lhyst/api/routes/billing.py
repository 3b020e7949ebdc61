"""
Stripe Checkout Session Routes
Creates subscription checkout sessions with a 14-day trial.
"""
import logging

import stripe
from fastapi import APIRouter

from lhyst.core import config
from lhyst.core.errors import ConfigurationError, UpstreamError, ValidationError
from lhyst.core.plans import BILLING_FREQUENCIES, PLANS, TRIAL_DAYS
from lhyst.schemas.billing import CheckoutSessionRequest, CheckoutSessionResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(request: CheckoutSessionRequest):
    """
    Create a Stripe Checkout Session for the selected plan and billing frequency.
    Returns the hosted checkout URL to redirect the user to.
    """
    plan = request.plan.strip().lower()
    frequency = request.frequency.strip().lower()
    if plan not in PLANS:
        raise ValidationError(f"Unknown plan '{request.plan}'")
    if frequency not in BILLING_FREQUENCIES:
        raise ValidationError(f"Unknown billing frequency '{request.frequency}'")

    price_id = config.stripe_price_id(plan, frequency)
    if not price_id:
        raise ConfigurationError("Stripe price configuration is missing")
    secret_key = config.stripe_secret_key()
    if not secret_key:
        raise ConfigurationError("Stripe secret key is not configured")

    stripe.api_key = secret_key
    site_url = config.site_url()
    try:
        checkout_session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            subscription_data={"trial_period_days": TRIAL_DAYS},
            success_url=f"{site_url}/#/success?session_id={{CHECKOUT_SESSION_ID}}&plan={plan}",
            cancel_url=f"{site_url}/#/cancel",
        )
    except stripe.StripeError as e:
        logger.error("[STRIPE] Error creating checkout session: %s", e)
        raise UpstreamError(
            f"Failed to create checkout session: {e.user_message or str(e)}",
            status_code=e.http_status or 500,
        )

    logger.info("[STRIPE] Created checkout session %s (%s/%s)", checkout_session.id, plan, frequency)
    return CheckoutSessionResponse(url=checkout_session.url, id=checkout_session.id)
