from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from webstack.auth.dependencies import AuthContext, get_optional_user
from webstack.config import settings
from webstack.schemas.checkout import CartCheckoutRequest, CheckoutRequest, CheckoutResponse
from webstack.services import stripe_checkout

router = APIRouter(prefix="/functions", tags=["checkout"])


def _origin(request: Request) -> str:
    return (request.headers.get("origin") or settings.site_url).rstrip("/")


@router.post("/create-checkout", response_model=CheckoutResponse)
async def create_checkout(
    payload: CheckoutRequest,
    request: Request,
    auth: Optional[AuthContext] = Depends(get_optional_user),
):
    return await run_in_threadpool(
        stripe_checkout.create_checkout_session,
        price_id=payload.priceId,
        origin=_origin(request),
        success_url=payload.successUrl,
        cancel_url=payload.cancelUrl,
        metadata=payload.metadata,
        mode=payload.mode,
        customer_email=auth.email if auth else None,
    )


@router.post("/create-cart-checkout", response_model=CheckoutResponse)
async def create_cart_checkout(
    payload: CartCheckoutRequest,
    request: Request,
    auth: Optional[AuthContext] = Depends(get_optional_user),
):
    return await run_in_threadpool(
        stripe_checkout.create_cart_checkout_session,
        line_items=[item.model_dump() for item in payload.lineItems],
        origin=_origin(request),
        customer_email=auth.email if auth else None,
    )
