"""Tests for checkout commits and online payment reconciliation"""

import asyncio
import base64
import json
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import Base

from app.exceptions import (
    CodUnavailable,
    GatewayError,
    InsufficientStock,
    InvalidSignature,
    NotFound,
    OrderConflict,
)
from app.models.inventory import InventoryItem
from app.models.order import Order, OrderStatus, PendingCommit
from app.models.store import StoreSettings
from app.payments.checksum import compute_checksum
from app.schemas.order import CartItem, CustomerDetails
from app.schemas.payment import PaymentState
from app.schemas.store import StoreSettingsSnapshot
from app.services.inventory import InventoryLedger
from app.services.order_store import OrderStore
from app.services.reconciliation import (
    RECONCILED,
    REJECTED,
    ReconciliationCoordinator,
    generate_delivery_code,
    generate_order_id,
)

CUSTOMER = CustomerDetails(name="Asha", phone="9876543210", room="204", block="B")


def cart(*lines):
    return [CartItem(item_id=item_id, quantity=quantity) for item_id, quantity in lines]


async def stock_of(db, item_id):
    return await InventoryLedger(db).get_stock(item_id)


async def pending_count(db):
    return (await db.execute(select(func.count()).select_from(PendingCommit))).scalar()


async def order_count(db):
    return (await db.execute(select(func.count()).select_from(Order))).scalar()


def test_generated_identifiers():
    order_id = generate_order_id()
    prefix, millis, suffix = order_id.split("_")
    assert prefix == "ORDER"
    assert millis.isdigit()
    assert len(suffix) == 6

    code = generate_delivery_code()
    assert len(code) == 4 and code.isdigit()


# Cash on delivery

@pytest.mark.asyncio
async def test_cod_commit(test_db, inventory_items, store_settings):
    coordinator = ReconciliationCoordinator(test_db)

    order = await coordinator.commit_cod(cart((inventory_items["tea"], 2)), CUSTOMER, store_settings)

    assert order.total_amount == 40
    assert order.computed_total() == 40
    assert order.status == OrderStatus.PENDING.value
    assert order.payment_mode == "cod"
    assert len(order.delivery_code) == 4 and order.delivery_code.isdigit()
    assert order.items_json[0]["unit_price"] == 20
    assert order.settings_version == store_settings.version
    assert await stock_of(test_db, inventory_items["tea"]) == 3


@pytest.mark.asyncio
async def test_cod_merges_duplicate_lines(test_db, inventory_items, store_settings):
    coordinator = ReconciliationCoordinator(test_db)

    order = await coordinator.commit_cod(
        cart((inventory_items["tea"], 1), (inventory_items["tea"], 2)),
        CUSTOMER,
        store_settings,
    )

    assert len(order.items_json) == 1
    assert order.items_json[0]["quantity"] == 3
    assert await stock_of(test_db, inventory_items["tea"]) == 2


@pytest.mark.asyncio
async def test_cod_disabled(test_db, inventory_items):
    coordinator = ReconciliationCoordinator(test_db)
    closed = StoreSettingsSnapshot(delivery_mode="now", cod_enabled=False, version=3)

    with pytest.raises(CodUnavailable):
        await coordinator.commit_cod(cart((inventory_items["tea"], 1)), CUSTOMER, closed)

    assert await order_count(test_db) == 0
    assert await stock_of(test_db, inventory_items["tea"]) == 5


@pytest.mark.asyncio
async def test_cod_oversell_creates_nothing(test_db, inventory_items, store_settings):
    coordinator = ReconciliationCoordinator(test_db)
    tea_id, maggi_id = inventory_items["tea"], inventory_items["maggi"]

    # First line fits, second does not: the whole commit is undone
    with pytest.raises(InsufficientStock):
        await coordinator.commit_cod(
            cart((tea_id, 2), (maggi_id, 3)),
            CUSTOMER,
            store_settings,
            order_id="ORDER_oversell",
        )

    assert await OrderStore(test_db).get("ORDER_oversell") is None
    assert await stock_of(test_db, tea_id) == 5
    assert await stock_of(test_db, maggi_id) == 2


@pytest.mark.asyncio
async def test_cod_duplicate_order_id(test_db, inventory_items, store_settings):
    coordinator = ReconciliationCoordinator(test_db)
    tea_id = inventory_items["tea"]

    await coordinator.commit_cod(cart((tea_id, 1)), CUSTOMER, store_settings, order_id="ORDER_dup")

    with pytest.raises(OrderConflict):
        await coordinator.commit_cod(cart((tea_id, 1)), CUSTOMER, store_settings, order_id="ORDER_dup")

    assert await order_count(test_db) == 1
    assert await stock_of(test_db, tea_id) == 4


@pytest.mark.asyncio
async def test_cod_unknown_item(test_db, inventory_items, store_settings):
    from uuid import uuid4

    with pytest.raises(NotFound):
        await ReconciliationCoordinator(test_db).commit_cod(cart((uuid4(), 1)), CUSTOMER, store_settings)


# Online payment

@pytest.mark.asyncio
async def test_online_checkout_stages_pending_record(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)

    order_id, redirect_url = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 2)),
        CUSTOMER,
        store_settings,
        return_origin="https://shop.test",
    )

    assert redirect_url == f"https://gateway.test/pay/{order_id}"
    assert fake_gateway.initiated[0]["amount"] == 40
    assert fake_gateway.initiated[0]["user_id"] == CUSTOMER.phone

    pending = (await test_db.execute(
        select(PendingCommit).where(PendingCommit.order_id == order_id)
    )).scalar_one()
    assert pending.total_amount == 40
    assert pending.expires_at > pending.created_at

    # Nothing is committed or taken from stock before payment
    assert await OrderStore(test_db).get(order_id) is None
    assert await stock_of(test_db, inventory_items["tea"]) == 5


@pytest.mark.asyncio
async def test_online_failed_payment_is_rejected(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 2)), CUSTOMER, store_settings
    )

    fake_gateway.state = PaymentState.FAILED
    result = await coordinator.reconcile_online(order_id)

    assert result.outcome == REJECTED
    assert result.state == PaymentState.FAILED
    assert result.order is None
    assert await OrderStore(test_db).get(order_id) is None
    assert await stock_of(test_db, inventory_items["tea"]) == 5

    pending = (await test_db.execute(
        select(PendingCommit.attempts, PendingCommit.last_state).where(PendingCommit.order_id == order_id)
    )).one()
    assert pending.attempts == 1
    assert pending.last_state == "FAILED"


@pytest.mark.asyncio
@pytest.mark.parametrize("state", [PaymentState.UNKNOWN, PaymentState.PENDING])
async def test_online_unconfirmed_payment_is_not_committed(test_db, inventory_items, store_settings, fake_gateway, state):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 1)), CUSTOMER, store_settings
    )

    fake_gateway.state = state
    result = await coordinator.reconcile_online(order_id)

    assert result.outcome == REJECTED
    assert await OrderStore(test_db).get(order_id) is None
    assert await pending_count(test_db) == 1


@pytest.mark.asyncio
async def test_online_success_commits_once(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 2), (inventory_items["maggi"], 1)), CUSTOMER, store_settings
    )

    first = await coordinator.reconcile_online(order_id)
    second = await coordinator.reconcile_online(order_id)

    assert first.outcome == RECONCILED
    assert second.outcome == RECONCILED
    assert first.order.id == second.order.id == order_id
    assert first.order.payment_mode == "online"
    assert first.order.payment_reference == f"T{order_id}"
    assert first.order.delivery_code is None
    assert first.order.total_amount == 70

    assert await order_count(test_db) == 1
    assert await pending_count(test_db) == 0
    assert await stock_of(test_db, inventory_items["tea"]) == 3
    assert await stock_of(test_db, inventory_items["maggi"]) == 1

    # The replay is answered from the order store
    assert fake_gateway.status_checks == [order_id]


@pytest.mark.asyncio
async def test_online_amount_mismatch_is_rejected(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 2)), CUSTOMER, store_settings
    )

    fake_gateway.amount_minor_units = 100
    result = await coordinator.reconcile_online(order_id)

    assert result.outcome == REJECTED
    assert result.state == PaymentState.FAILED
    assert await OrderStore(test_db).get(order_id) is None
    assert await pending_count(test_db) == 1


@pytest.mark.asyncio
async def test_online_matching_amount_is_committed(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 2)), CUSTOMER, store_settings
    )

    fake_gateway.amount_minor_units = 4000
    result = await coordinator.reconcile_online(order_id)

    assert result.outcome == RECONCILED


@pytest.mark.asyncio
async def test_reconcile_unknown_order(test_db, fake_gateway):
    with pytest.raises(NotFound):
        await ReconciliationCoordinator(test_db, fake_gateway).reconcile_online("ORDER_missing")


@pytest.mark.asyncio
async def test_gateway_failure_leaves_nothing_behind(test_db, inventory_items, store_settings, fake_gateway):
    fake_gateway.fail_initiate = True
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)

    with pytest.raises(GatewayError):
        await coordinator.start_online_payment(cart((inventory_items["tea"], 1)), CUSTOMER, store_settings)

    assert await pending_count(test_db) == 0
    assert await order_count(test_db) == 0


@pytest.mark.asyncio
async def test_online_checkout_preflights_stock(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)

    with pytest.raises(InsufficientStock):
        await coordinator.start_online_payment(cart((inventory_items["maggi"], 3)), CUSTOMER, store_settings)

    assert fake_gateway.initiated == []
    assert await pending_count(test_db) == 0


@pytest.mark.asyncio
async def test_paid_checkout_without_stock_is_kept_for_review(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    maggi_id = inventory_items["maggi"]
    order_id, _ = await coordinator.start_online_payment(cart((maggi_id, 2)), CUSTOMER, store_settings)

    # Someone else buys the last packets while the customer is paying
    await InventoryLedger(test_db).adjust_stock(maggi_id, -1)
    await test_db.commit()

    with pytest.raises(InsufficientStock):
        await coordinator.reconcile_online(order_id)

    assert await OrderStore(test_db).get(order_id) is None
    assert await stock_of(test_db, maggi_id) == 1

    pending = (await test_db.execute(
        select(PendingCommit.last_state).where(PendingCommit.order_id == order_id)
    )).scalar_one()
    assert pending == "SUCCESS"


@pytest.mark.asyncio
async def test_reconcile_refuses_cash_order_id(test_db, inventory_items, store_settings, fake_gateway):
    order = await ReconciliationCoordinator(test_db).commit_cod(
        cart((inventory_items["tea"], 1)), CUSTOMER, store_settings
    )

    with pytest.raises(OrderConflict):
        await ReconciliationCoordinator(test_db, fake_gateway).reconcile_online(order.id)

    assert fake_gateway.status_checks == []


# Gateway callback

def signed_callback(gateway, order_id, code="PAYMENT_SUCCESS"):
    body = {"success": True, "code": code, "data": {"merchantTransactionId": order_id}}
    encoded = base64.b64encode(json.dumps(body).encode()).decode()
    return encoded, compute_checksum(encoded, "", gateway.salt_key, gateway.salt_index)


@pytest.mark.asyncio
async def test_callback_triggers_reconciliation(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 1)), CUSTOMER, store_settings
    )

    encoded, x_verify = signed_callback(fake_gateway, order_id)
    result = await coordinator.handle_callback(encoded, x_verify)

    assert result.outcome == RECONCILED
    assert fake_gateway.status_checks == [order_id]


@pytest.mark.asyncio
async def test_callback_body_is_not_trusted(test_db, inventory_items, store_settings, fake_gateway):
    """A callback claiming success still needs the status API to agree"""
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 1)), CUSTOMER, store_settings
    )

    fake_gateway.state = PaymentState.FAILED
    encoded, x_verify = signed_callback(fake_gateway, order_id)
    result = await coordinator.handle_callback(encoded, x_verify)

    assert result.outcome == REJECTED
    assert await OrderStore(test_db).get(order_id) is None


@pytest.mark.asyncio
async def test_callback_with_bad_signature(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 1)), CUSTOMER, store_settings
    )

    encoded, _ = signed_callback(fake_gateway, order_id)
    with pytest.raises(InvalidSignature):
        await coordinator.handle_callback(encoded, "0" * 64 + "###1")

    assert fake_gateway.status_checks == []
    assert await OrderStore(test_db).get(order_id) is None


# Sweep

@pytest.mark.asyncio
async def test_sweep_reconciles_paid_checkouts(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 1)), CUSTOMER, store_settings
    )

    stats = await coordinator.sweep_pending(now=datetime.utcnow() + timedelta(minutes=2))

    assert stats == {"checked": 1, "reconciled": 1, "expired": 0, "errors": 0}
    assert await OrderStore(test_db).get(order_id) is not None
    assert await pending_count(test_db) == 0


@pytest.mark.asyncio
async def test_sweep_skips_recently_checked(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    await coordinator.start_online_payment(cart((inventory_items["tea"], 1)), CUSTOMER, store_settings)

    stats = await coordinator.sweep_pending()

    assert stats["checked"] == 0
    assert fake_gateway.status_checks == []


@pytest.mark.asyncio
async def test_sweep_drops_expired_unpaid(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    await coordinator.start_online_payment(cart((inventory_items["tea"], 1)), CUSTOMER, store_settings)
    await coordinator.start_online_payment(cart((inventory_items["maggi"], 1)), CUSTOMER, store_settings)

    fake_gateway.state = PaymentState.FAILED
    stats = await coordinator.sweep_pending(now=datetime.utcnow() + timedelta(hours=1))

    assert stats == {"checked": 2, "reconciled": 0, "expired": 2, "errors": 0}
    assert await pending_count(test_db) == 0
    assert await order_count(test_db) == 0


@pytest.mark.asyncio
async def test_sweep_keeps_expired_unsettled_checkouts(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 2)), CUSTOMER, store_settings
    )

    fake_gateway.state = PaymentState.UNKNOWN
    stats = await coordinator.sweep_pending(now=datetime.utcnow() + timedelta(hours=1))

    assert stats == {"checked": 1, "reconciled": 0, "expired": 0, "errors": 1}
    assert await pending_count(test_db) == 1

    # The gateway comes back and reports the payment
    fake_gateway.state = PaymentState.SUCCESS
    result = await coordinator.reconcile_online(order_id)

    assert result.outcome == RECONCILED
    assert await stock_of(test_db, inventory_items["tea"]) == 3


@pytest.mark.asyncio
async def test_sweep_does_not_poll_failed_checkouts(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 1)), CUSTOMER, store_settings
    )

    fake_gateway.state = PaymentState.FAILED
    await coordinator.reconcile_online(order_id)

    for minutes in (5, 10):
        stats = await coordinator.sweep_pending(now=datetime.utcnow() + timedelta(minutes=minutes))
        assert stats["checked"] == 0

    assert fake_gateway.status_checks == [order_id]
    assert await pending_count(test_db) == 1

    stats = await coordinator.sweep_pending(now=datetime.utcnow() + timedelta(hours=1))

    assert stats == {"checked": 0, "reconciled": 0, "expired": 1, "errors": 0}
    assert fake_gateway.status_checks == [order_id]
    assert await pending_count(test_db) == 0


@pytest.mark.asyncio
async def test_sweep_leaves_amount_mismatch_for_staff(test_db, inventory_items, store_settings, fake_gateway):
    coordinator = ReconciliationCoordinator(test_db, fake_gateway)
    order_id, _ = await coordinator.start_online_payment(
        cart((inventory_items["tea"], 2)), CUSTOMER, store_settings
    )

    fake_gateway.amount_minor_units = 100
    await coordinator.reconcile_online(order_id)

    stats = await coordinator.sweep_pending(now=datetime.utcnow() + timedelta(hours=1))

    assert stats == {"checked": 0, "reconciled": 0, "expired": 0, "errors": 0}
    assert fake_gateway.status_checks == [order_id]
    assert await pending_count(test_db) == 1


# Racing reconciliations

@pytest.fixture
async def shared_db(tmp_path):
    """File-backed database so several sessions see the same rows"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_reconciles_commit_once(shared_db, fake_gateway):
    async with shared_db() as db:
        tea = InventoryItem(id=uuid4(), name="Masala Tea", price=20, cost=12, stock=5, category="Drinks")
        row = StoreSettings(id=1, delivery_mode="now", cod_enabled=True, version=1)
        db.add_all([tea, row])
        await db.commit()
        tea_id = tea.id

        order_id, _ = await ReconciliationCoordinator(db, fake_gateway).start_online_payment(
            cart((tea_id, 2)), CUSTOMER, StoreSettingsSnapshot.model_validate(row)
        )

    sessions = [shared_db() for _ in range(3)]
    try:
        results = await asyncio.gather(*(
            ReconciliationCoordinator(session, fake_gateway).reconcile_online(order_id)
            for session in sessions
        ))
    finally:
        for session in sessions:
            await session.close()

    assert [result.outcome for result in results] == [RECONCILED] * 3
    assert {result.order.id for result in results} == {order_id}

    async with shared_db() as db:
        assert await order_count(db) == 1
        assert await pending_count(db) == 0
        assert await stock_of(db, tea_id) == 3
