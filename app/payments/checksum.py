"""
Gateway payload encoding and X-VERIFY checksums.

The gateway authenticates every call with
``sha256(body + api_path + salt_key) + "###" + salt_index``, where ``body`` is
the base64 request for a payment and empty for a status check. The digest is
taken over the exact bytes sent, so the JSON rendering must stay compact and
keep insertion order.
"""

import base64
import hashlib
import hmac
import json
from typing import Tuple

from app.schemas.payment import PaymentRequest

PAY_PATH = "/pg/v1/pay"
STATUS_PATH_TEMPLATE = "/pg/v1/status/{merchant_id}/{order_id}"
SEPARATOR = "###"


def canonical_json(payload: dict) -> str:
    """Compact JSON matching JSON.stringify output"""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def encode_payload(request: PaymentRequest) -> str:
    """Base64 of the canonical JSON payload"""
    raw = canonical_json(request.to_gateway_payload()).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_payload(encoded: str) -> dict:
    """Inverse of encode_payload for gateway callback bodies"""
    return json.loads(base64.b64decode(encoded).decode("utf-8"))


def compute_checksum(body: str, api_path: str, salt_key: str, salt_index: int) -> str:
    digest = hashlib.sha256((body + api_path + salt_key).encode("utf-8")).hexdigest()
    return f"{digest}{SEPARATOR}{salt_index}"


def build_pay_request(request: PaymentRequest, salt_key: str, salt_index: int) -> Tuple[str, str]:
    """Return (encoded payload, X-VERIFY) for the payment initiation call"""
    encoded = encode_payload(request)
    return encoded, compute_checksum(encoded, PAY_PATH, salt_key, salt_index)


def status_path(merchant_id: str, order_id: str) -> str:
    return STATUS_PATH_TEMPLATE.format(merchant_id=merchant_id, order_id=order_id)


def build_status_checksum(
    merchant_id: str,
    order_id: str,
    salt_key: str,
    salt_index: int,
) -> Tuple[str, str]:
    """Return (status path, X-VERIFY) for the status check call"""
    path = status_path(merchant_id, order_id)
    return path, compute_checksum("", path, salt_key, salt_index)


def verify_checksum(
    body: str,
    x_verify: str,
    salt_key: str,
    salt_index: int,
    api_path: str = "",
) -> bool:
    """Constant-time check of a checksum received from the gateway"""
    if not x_verify:
        return False
    expected = compute_checksum(body, api_path, salt_key, salt_index)
    return hmac.compare_digest(expected.encode("utf-8"), x_verify.strip().encode("utf-8"))
