from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    priceId: Optional[str] = None
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    mode: Literal["subscription", "payment"] = "subscription"


class CartLineItem(BaseModel):
    priceId: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)


class CartCheckoutRequest(BaseModel):
    lineItems: list[CartLineItem] = Field(default_factory=list)


class CheckoutResponse(BaseModel):
    url: Optional[str] = None
    sessionId: str
