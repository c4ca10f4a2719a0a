"""Push delivery transports"""

from abc import ABC, abstractmethod
import asyncio

from pywebpush import webpush, WebPushException
import structlog

from app.config import settings

logger = structlog.get_logger()

GONE_STATUS_CODES = (404, 410)


class PushDeliveryError(Exception):
    """Delivery failed for a reason other than the endpoint being gone"""


class EndpointGone(PushDeliveryError):
    """Push service reports the subscription no longer exists"""

    def __init__(self, endpoint: str, status_code: int):
        super().__init__(f"Endpoint gone ({status_code})")
        self.endpoint = endpoint
        self.status_code = status_code


class BasePushTransport(ABC):
    """Abstract base class for push transports"""

    @abstractmethod
    async def send(self, subscription_info: dict, payload: str) -> None:
        """Deliver payload to one subscription; raise EndpointGone or PushDeliveryError"""
        pass


class WebPushTransport(BasePushTransport):
    """VAPID web push via pywebpush"""

    def __init__(
        self,
        vapid_private_key: str = None,
        vapid_subject: str = None,
        ttl: int = None,
        timeout: float = None,
    ):
        self.vapid_private_key = vapid_private_key or settings.vapid_private_key
        self.vapid_subject = vapid_subject or settings.vapid_subject
        self.ttl = ttl or settings.push_ttl_seconds
        self.timeout = timeout or settings.push_timeout_seconds

    def _send_sync(self, subscription_info: dict, payload: str) -> None:
        webpush(
            subscription_info=subscription_info,
            data=payload,
            vapid_private_key=self.vapid_private_key,
            vapid_claims={"sub": self.vapid_subject},
            ttl=self.ttl,
            timeout=self.timeout,
        )

    async def send(self, subscription_info: dict, payload: str) -> None:
        endpoint = subscription_info.get("endpoint", "")
        try:
            # pywebpush is blocking; keep it off the event loop
            await asyncio.to_thread(self._send_sync, subscription_info, payload)
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code in GONE_STATUS_CODES:
                raise EndpointGone(endpoint, status_code) from e
            raise PushDeliveryError(str(e)) from e


def get_push_transport() -> BasePushTransport:
    """Dependency provider for the push transport"""
    return WebPushTransport()
