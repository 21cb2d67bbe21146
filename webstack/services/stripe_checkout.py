from __future__ import annotations

import logging
from typing import Any, Optional

import stripe

from webstack.config import settings
from webstack.errors import FunctionError

logger = logging.getLogger("checkout.stripe")

CHECKOUT_SUCCESS_PATH = "/checkout-success?session_id={CHECKOUT_SESSION_ID}"


def _configure_stripe() -> None:
    key = settings.STRIPE_SECRET_KEY
    if not key:
        logger.error("STRIPE_SECRET_KEY not configured")
        raise FunctionError(
            message="Payment system not configured",
            status_code=500,
            instructions="Please contact support to enable payments.",
        )
    if key.startswith("pk_"):
        logger.error("Publishable key configured where a secret key is required")
        raise FunctionError(
            message="Invalid payment configuration",
            status_code=500,
            detail="Server configuration error. Please contact support.",
        )
    stripe.api_key = key


def _find_customer_id(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    customers = stripe.Customer.list(email=email, limit=1)
    if customers.data:
        customer_id = customers.data[0].id
        logger.info("Found existing Stripe customer", extra={"customer_id": customer_id})
        return customer_id
    return None


def _create_session(*, customer_email: Optional[str], **params: Any) -> dict[str, str]:
    try:
        customer_id = _find_customer_id(customer_email)
        if customer_id:
            params["customer"] = customer_id
        elif customer_email:
            params["customer_email"] = customer_email
        session = stripe.checkout.Session.create(
            allow_promotion_codes=True,
            billing_address_collection="required",
            **params,
        )
    except stripe.StripeError as exc:
        logger.warning("Stripe checkout session creation failed", extra={"error": str(exc)})
        raise FunctionError(message=getattr(exc, "user_message", None) or str(exc), status_code=500) from exc
    logger.info("Checkout session created", extra={"session_id": session.id, "mode": params.get("mode")})
    return {"url": session.url, "sessionId": session.id}


def create_checkout_session(
    *,
    price_id: Optional[str],
    origin: str,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    metadata: Optional[dict[str, str]] = None,
    mode: str = "subscription",
    customer_email: Optional[str] = None,
) -> dict[str, str]:
    _configure_stripe()
    if not price_id:
        raise FunctionError(message="No price ID provided", status_code=500)
    return _create_session(
        customer_email=customer_email,
        line_items=[{"price": price_id, "quantity": 1}],
        mode=mode,
        success_url=success_url or f"{origin}{CHECKOUT_SUCCESS_PATH}",
        cancel_url=cancel_url or f"{origin}/pricing",
        metadata=metadata or {},
    )


def create_cart_checkout_session(
    *,
    line_items: list[dict[str, Any]],
    origin: str,
    customer_email: Optional[str] = None,
) -> dict[str, str]:
    if not settings.STRIPE_SECRET_KEY:
        raise FunctionError(message="STRIPE_SECRET_KEY is not set", status_code=500)
    if not line_items:
        raise FunctionError(message="No line items provided", status_code=500)
    _configure_stripe()
    return _create_session(
        customer_email=customer_email,
        line_items=[{"price": item["priceId"], "quantity": item["quantity"]} for item in line_items],
        mode="payment",
        success_url=f"{origin}{CHECKOUT_SUCCESS_PATH}",
        cancel_url=f"{origin}/#services",
        metadata={"source": "webstack-cart"},
    )
