"""Tests for the payment gateway endpoints"""

import base64
import json

import pytest
from httpx import AsyncClient

from app.config import settings
from app.payments.checksum import compute_checksum


def signed_callback(gateway, order_id):
    body = {"success": True, "code": "PAYMENT_SUCCESS", "data": {"merchantTransactionId": order_id}}
    encoded = base64.b64encode(json.dumps(body).encode()).decode()
    return encoded, compute_checksum(encoded, "", gateway.salt_key, gateway.salt_index)


@pytest.mark.asyncio
async def test_initiate_payment(client: AsyncClient, fake_gateway):
    response = await client.post(
        "/orders/payment/initiate",
        json={"amount": 50, "userId": "9876543210", "orderId": "ORDER_123"},
    )

    assert response.status_code == 200
    assert response.json() == {"redirectUrl": "https://gateway.test/pay/ORDER_123"}
    assert fake_gateway.initiated[0]["amount"] == 50
    assert fake_gateway.initiated[0]["return_origin"] == settings.client_url


@pytest.mark.asyncio
async def test_initiate_uses_trusted_origin_only(client: AsyncClient, fake_gateway):
    trusted = settings.cors_origins_list[0]

    await client.post(
        "/orders/payment/initiate",
        json={"amount": 50, "userId": "u1", "orderId": "ORDER_1"},
        headers={"Origin": trusted},
    )
    await client.post(
        "/orders/payment/initiate",
        json={"amount": 50, "userId": "u1", "orderId": "ORDER_2"},
        headers={"Origin": "https://evil.test"},
    )

    assert fake_gateway.initiated[0]["return_origin"] == trusted
    assert fake_gateway.initiated[1]["return_origin"] == settings.client_url


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"amount": 0, "userId": "u1", "orderId": "ORDER_1"},
        {"amount": 50, "userId": "", "orderId": "ORDER_1"},
        {"amount": 50, "userId": "u1", "orderId": "ORDER 1"},
        {"amount": 50, "userId": "u1", "orderId": "ORDER_1;drop"},
        {"amount": 50, "orderId": "ORDER_1"},
    ],
)
async def test_initiate_validation(client: AsyncClient, fake_gateway, body):
    response = await client.post("/orders/payment/initiate", json=body)

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "validation_error"
    assert data["details"]
    assert fake_gateway.initiated == []


@pytest.mark.asyncio
async def test_initiate_gateway_failure(client: AsyncClient, fake_gateway):
    fake_gateway.fail_initiate = True

    response = await client.post(
        "/orders/payment/initiate",
        json={"amount": 50, "userId": "u1", "orderId": "ORDER_1"},
    )

    assert response.status_code == 502
    assert response.json() == {"error": "Payment Failed", "details": "connection refused"}


@pytest.mark.asyncio
async def test_payment_status_passthrough(client: AsyncClient):
    response = await client.get("/orders/payment/status/ORDER_1")

    assert response.status_code == 200
    assert response.json()["code"] == "PAYMENT_SUCCESS"
    assert response.json()["data"]["merchantTransactionId"] == "ORDER_1"


@pytest.mark.asyncio
async def test_callback_commits_staged_order(client: AsyncClient, fake_gateway, inventory_items, store_settings):
    response = await client.post(
        "/orders/checkout/online",
        json={
            "items": [{"item_id": str(inventory_items["tea"]), "quantity": 2}],
            "customer": {"name": "Asha", "phone": "9876543210"},
        },
    )
    order_id = response.json()["order_id"]

    encoded, x_verify = signed_callback(fake_gateway, order_id)
    response = await client.post(
        "/orders/payment/callback",
        json={"response": encoded},
        headers={"X-VERIFY": x_verify},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get(f"/orders/{order_id}")
    assert response.status_code == 200
    assert response.json()["payment_mode"] == "online"


@pytest.mark.asyncio
async def test_callback_rejects_bad_signature(client: AsyncClient, fake_gateway):
    encoded, _ = signed_callback(fake_gateway, "ORDER_1")

    response = await client.post(
        "/orders/payment/callback",
        json={"response": encoded},
        headers={"X-VERIFY": "forged###1"},
    )

    assert response.status_code == 401
    assert response.json()["error"] == "invalid_signature"
    assert fake_gateway.status_checks == []


@pytest.mark.asyncio
async def test_callback_for_unknown_order_is_acknowledged(client: AsyncClient, fake_gateway):
    encoded, x_verify = signed_callback(fake_gateway, "ORDER_unknown")

    response = await client.post(
        "/orders/payment/callback",
        json={"response": encoded},
        headers={"X-VERIFY": x_verify},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "detail": "not_found"}
