"""PhonePe payment gateway adapter"""

from typing import Optional

import httpx
import structlog

from app.config import settings
from app.exceptions import GatewayError
from app.payments.checksum import PAY_PATH, build_pay_request, build_status_checksum
from app.schemas.payment import PaymentRequest, PaymentState, PaymentStatusResult

logger = structlog.get_logger()

STATUS_CODES = {
    "PAYMENT_SUCCESS": PaymentState.SUCCESS,
    "PAYMENT_PENDING": PaymentState.PENDING,
    "PAYMENT_ERROR": PaymentState.FAILED,
    "PAYMENT_DECLINED": PaymentState.FAILED,
    "TIMED_OUT": PaymentState.FAILED,
    "AUTHORIZATION_FAILED": PaymentState.FAILED,
    "TRANSACTION_NOT_FOUND": PaymentState.FAILED,
    "BAD_REQUEST": PaymentState.FAILED,
}


class PhonePeGateway:
    """
    Hosted-checkout gateway client.
    Only performs outbound calls; never touches local state.
    """

    def __init__(
        self,
        merchant_id: Optional[str] = None,
        salt_key: Optional[str] = None,
        salt_index: Optional[int] = None,
        host_url: Optional[str] = None,
        callback_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.merchant_id = merchant_id or settings.phonepe_merchant_id
        self.salt_key = salt_key or settings.phonepe_salt_key
        self.salt_index = salt_index if salt_index is not None else settings.phonepe_salt_index
        self.host_url = (host_url or settings.phonepe_host_url).rstrip("/")
        self.callback_url = callback_url or f"{settings.app_backend_url.rstrip('/')}/orders/payment/callback"
        self.timeout = timeout if timeout is not None else settings.gateway_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def initiate(
        self,
        amount: int,
        user_id: str,
        order_id: str,
        return_origin: str,
        mobile_number: Optional[str] = None,
    ) -> str:
        """Start a hosted checkout and return the redirect URL"""
        request = PaymentRequest(
            merchant_id=self.merchant_id,
            merchant_order_id=order_id,
            merchant_user_id=user_id,
            amount_minor_units=amount * 100,
            redirect_url=f"{return_origin.rstrip('/')}/payment-success?id={order_id}",
            callback_url=self.callback_url,
            mobile_number=mobile_number,
        )
        encoded, x_verify = build_pay_request(request, self.salt_key, self.salt_index)

        logger.info("Initiating payment", order_id=order_id, amount=amount)

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.host_url}{PAY_PATH}",
                    json={"request": encoded},
                    headers={"Content-Type": "application/json", "X-VERIFY": x_verify},
                )
        except httpx.HTTPError as e:
            logger.error("Payment initiation request failed", order_id=order_id, error=str(e))
            raise GatewayError("Payment gateway unreachable", details=str(e))

        if not response.is_success:
            logger.error(
                "Payment initiation rejected",
                order_id=order_id,
                status_code=response.status_code,
            )
            raise GatewayError("Payment gateway rejected the request", details=_body(response))

        try:
            data = response.json()
            if data.get("success") is False:
                raise GatewayError("Payment gateway rejected the request", details=data)
            redirect_url = data["data"]["instrumentResponse"]["redirectInfo"]["url"]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Malformed payment initiation response", order_id=order_id, error=str(e))
            raise GatewayError("Malformed payment gateway response", details=_body(response))

        if not isinstance(redirect_url, str) or not redirect_url:
            raise GatewayError("Malformed payment gateway response", details=_body(response))

        return redirect_url

    async def fetch_status(self, order_id: str) -> dict:
        """Raw status payload from the gateway"""
        path, x_verify = build_status_checksum(
            self.merchant_id, order_id, self.salt_key, self.salt_index
        )

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.host_url}{path}",
                    headers={
                        "Content-Type": "application/json",
                        "X-VERIFY": x_verify,
                        "X-MERCHANT-ID": self.merchant_id,
                    },
                )
        except httpx.HTTPError as e:
            logger.warning("Payment status request failed", order_id=order_id, error=str(e))
            raise GatewayError("Payment gateway unreachable", details=str(e))

        if not response.is_success:
            raise GatewayError("Payment status check failed", details=_body(response))

        try:
            data = response.json()
        except ValueError:
            raise GatewayError("Malformed payment status response", details=_body(response))

        if not isinstance(data, dict):
            raise GatewayError("Malformed payment status response", details=data)

        return data

    async def check_status(self, order_id: str) -> PaymentStatusResult:
        """Normalised payment state; any failure to learn the state is UNKNOWN"""
        try:
            data = await self.fetch_status(order_id)
        except GatewayError as e:
            return PaymentStatusResult(state=PaymentState.UNKNOWN, code=None, payload={"error": e.message})

        code = data.get("code")
        state = STATUS_CODES.get(code, PaymentState.UNKNOWN)

        details = data.get("data") if isinstance(data.get("data"), dict) else {}
        amount = details.get("amount")

        result = PaymentStatusResult(
            state=state,
            code=code,
            transaction_id=details.get("transactionId") or details.get("merchantTransactionId"),
            amount_minor_units=amount if isinstance(amount, int) else None,
            payload=data,
        )

        logger.info("Payment status checked", order_id=order_id, code=code, state=state.value)
        return result


def _body(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text


def get_gateway() -> PhonePeGateway:
    """Dependency provider for the payment gateway"""
    return PhonePeGateway()
