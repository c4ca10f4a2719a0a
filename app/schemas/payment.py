"""Payment gateway schemas"""

import enum
from typing import Optional, Any
from pydantic import BaseModel, Field

ORDER_ID_PATTERN = r"^[A-Za-z0-9_-]+$"


class PaymentState(str, enum.Enum):
    """Normalised gateway payment state"""
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


class PaymentRequest(BaseModel):
    """Structured payment request, rendered into the gateway payload"""
    merchant_id: str
    merchant_order_id: str
    merchant_user_id: str
    amount_minor_units: int
    redirect_url: str
    callback_url: str
    mobile_number: Optional[str] = None

    def to_gateway_payload(self) -> dict:
        """Gateway field names, in the order the gateway documents them"""
        payload = {
            "merchantId": self.merchant_id,
            "merchantTransactionId": self.merchant_order_id,
            "merchantUserId": self.merchant_user_id,
            "amount": self.amount_minor_units,
            "redirectUrl": self.redirect_url,
            "redirectMode": "POST",
            "callbackUrl": self.callback_url,
        }
        if self.mobile_number:
            payload["mobileNumber"] = self.mobile_number
        payload["paymentInstrument"] = {"type": "PAY_PAGE"}
        return payload


class PaymentStatusResult(BaseModel):
    """Result of a status check"""
    state: PaymentState
    code: Optional[str] = None
    transaction_id: Optional[str] = None
    amount_minor_units: Optional[int] = None
    payload: Optional[dict] = None


class InitiatePaymentRequest(BaseModel):
    """Raw payment initiation request"""
    amount: int = Field(ge=1)
    user_id: str = Field(alias="userId", min_length=1, max_length=100)
    order_id: str = Field(alias="orderId", min_length=1, max_length=64, pattern=ORDER_ID_PATTERN)

    class Config:
        populate_by_name = True


class InitiatePaymentResponse(BaseModel):
    redirect_url: str = Field(alias="redirectUrl")

    class Config:
        populate_by_name = True


class PaymentCallbackRequest(BaseModel):
    """Server-to-server callback body: base64 encoded status payload"""
    response: str = Field(min_length=1)


class CallbackAck(BaseModel):
    success: bool = True
    detail: Optional[Any] = None
