"""Domain errors raised by the ordering core

Every error carries the HTTP status and error code used when it reaches the
API boundary, where a single handler renders it as ``{"error", "details"}``.
"""

from typing import Any, Optional


class OrderingError(Exception):
    """Base class for ordering and payment errors"""
    status_code = 400
    error = "ordering_error"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else message


class InvalidRequest(OrderingError):
    status_code = 422
    error = "invalid_request"


class CodUnavailable(OrderingError):
    status_code = 409
    error = "cod_unavailable"


class NotFound(OrderingError):
    status_code = 404
    error = "not_found"


class OrderConflict(OrderingError):
    """Order id already used"""
    status_code = 409
    error = "order_conflict"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} already exists")
        self.order_id = order_id


class InsufficientStock(OrderingError):
    status_code = 409
    error = "insufficient_stock"

    def __init__(self, item_id: str, requested: int, available: int):
        super().__init__(
            f"Not enough stock for item {item_id}",
            details={"item_id": item_id, "requested": requested, "available": available},
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class InvalidTransition(OrderingError):
    status_code = 409
    error = "invalid_transition"


class ConfirmationRequired(OrderingError):
    status_code = 409
    error = "confirmation_required"


class InvalidDeliveryCode(OrderingError):
    status_code = 403
    error = "invalid_delivery_code"


class FeedbackRejected(OrderingError):
    status_code = 409
    error = "feedback_rejected"


class InvalidSignature(OrderingError):
    status_code = 401
    error = "invalid_signature"


class GatewayError(OrderingError):
    """Payment gateway call failed; nothing was started"""
    status_code = 502
    error = "Payment Failed"
