"""Request/response schemas for the relay endpoints and gateway payloads."""

import math
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateOrderRequest(BaseModel):
    """Payload accepted by `POST /api/create-order`."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(gt=0, allow_inf_nan=False)
    upi_id: str | None = Field(default=None, alias="upiId")
    customer_name: str | None = Field(default=None, alias="customerName")
    customer_phone: str | None = Field(default=None, alias="customerPhone")
    customer_email: str | None = Field(default=None, alias="customerEmail")

    @field_validator("amount")
    @classmethod
    def _amount_fits_float(cls, value: Decimal) -> Decimal:
        # The gateway body carries a JSON float.
        as_float = float(value)
        if not math.isfinite(as_float) or as_float <= 0:
            raise ValueError("amount must be a positive finite number")
        return value


class CreateOrderResponse(BaseModel):
    success: bool = True
    order_id: str
    payment_session_id: str
    order_token: str | None = None
    amount: float
    environment: str


class VerifyPaymentRequest(BaseModel):
    """Payload accepted by `POST /api/verify-payment`."""

    order_id: str = Field(min_length=1)


class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    order_id: str
    order_status: str
    order_amount: float | None = None
    payment_id: str | None = None
    settlement_time: str | None = None


class WebhookOrder(BaseModel):
    model_config = ConfigDict(extra="allow")

    order_id: str | None = None
    order_amount: float | None = None


class WebhookPayment(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment_status: str | None = None
    cf_payment_id: Any = None


class WebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    order: WebhookOrder = Field(default_factory=WebhookOrder)
    payment: WebhookPayment = Field(default_factory=WebhookPayment)


class WebhookEvent(BaseModel):
    """Authenticated settlement notification body (lenient on extra fields)."""

    model_config = ConfigDict(extra="allow")

    type: str | None = None
    event_time: str | None = None
    data: WebhookData = Field(default_factory=WebhookData)
