"""
Reconciliation of checkouts into committed orders.

Both payment paths end in the same commit: insert the order and decrement
stock for every line inside one database transaction. The order id is the
idempotency key, so a repeated commit finds the existing order instead of
creating a second one.

Online checkouts are staged server-side as PendingCommit records. A
reconciliation attempt (client return, gateway callback or the periodic
sweep) checks the payment with the gateway, claims the staged record with a
DELETE, and commits. Only one attempt can claim a record; the others observe
the committed order.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import secrets
import time
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.config import settings
from app.exceptions import (
    CodUnavailable,
    InsufficientStock,
    InvalidRequest,
    InvalidSignature,
    NotFound,
    OrderConflict,
    OrderingError,
)
from app.models.inventory import InventoryItem
from app.models.order import Order, OrderStatus, PaymentMode, PendingCommit
from app.payments.checksum import decode_payload, verify_checksum
from app.payments.gateway import PhonePeGateway
from app.schemas.order import CartItem, CustomerDetails
from app.schemas.payment import PaymentState
from app.schemas.store import StoreSettingsSnapshot
from app.services.inventory import InventoryLedger
from app.services.order_store import OrderStore

logger = structlog.get_logger()

RECONCILED = "reconciled"
REJECTED = "rejected"

# last_state of a paid checkout whose amount disagrees with the staged total
AMOUNT_MISMATCH = "AMOUNT_MISMATCH"


def generate_order_id() -> str:
    return f"ORDER_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def generate_delivery_code() -> str:
    return f"{secrets.randbelow(10000):04d}"


@dataclass
class ReconcileResult:
    outcome: str
    state: PaymentState
    order: Optional[Order] = None


class ReconciliationCoordinator:
    """Turns carts and payment confirmations into committed orders exactly once"""

    def __init__(self, db: AsyncSession, gateway: Optional[PhonePeGateway] = None):
        self.db = db
        self.gateway = gateway
        self.store = OrderStore(db)
        self.ledger = InventoryLedger(db)

    async def build_snapshot(self, cart: List[CartItem]) -> Tuple[List[dict], int]:
        """Freeze current catalog prices for the cart; returns (lines, total)"""
        if not cart:
            raise InvalidRequest("Cart is empty")

        quantities: Dict[UUID, int] = {}
        for line in cart:
            quantities[line.item_id] = quantities.get(line.item_id, 0) + line.quantity

        result = await self.db.execute(
            select(InventoryItem).where(
                InventoryItem.id.in_(list(quantities)),
                InventoryItem.is_active == True,  # noqa: E712
            )
        )
        items = {item.id: item for item in result.scalars().all()}

        lines = []
        for item_id, quantity in quantities.items():
            item = items.get(item_id)
            if item is None:
                raise NotFound(f"Item {item_id} not found")
            lines.append({
                "item_id": str(item.id),
                "name": item.name,
                "unit_price": item.price,
                "unit_cost": item.cost,
                "quantity": quantity,
            })

        total = sum(line["unit_price"] * line["quantity"] for line in lines)
        return lines, total

    async def _commit(self, order: Order) -> Order:
        """Insert the order and take its stock, all or nothing"""
        try:
            await self.store.create(order)
            for line in order.items_json:
                await self.ledger.adjust_stock(line["item_id"], -line["quantity"])
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Order committed",
            order_id=order.id,
            payment_mode=order.payment_mode,
            total_amount=order.total_amount,
            line_count=len(order.items_json),
        )
        return order

    async def commit_cod(
        self,
        cart: List[CartItem],
        customer: CustomerDetails,
        store_settings: StoreSettingsSnapshot,
        order_id: Optional[str] = None,
    ) -> Order:
        """Place a cash-on-delivery order guarded by a fresh delivery code"""
        if not store_settings.cod_enabled:
            raise CodUnavailable("Cash on delivery is currently disabled")

        order_id = order_id or generate_order_id()
        lines, total = await self.build_snapshot(cart)

        order = Order(
            id=order_id,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_json=customer.model_dump(),
            items_json=lines,
            total_amount=total,
            payment_mode=PaymentMode.COD.value,
            payment_reference=None,
            delivery_code=generate_delivery_code(),
            status=OrderStatus.PENDING.value,
            archived=False,
            settings_version=store_settings.version,
            created_at=datetime.utcnow(),
        )
        return await self._commit(order)

    async def start_online_payment(
        self,
        cart: List[CartItem],
        customer: CustomerDetails,
        store_settings: StoreSettingsSnapshot,
        user_id: Optional[str] = None,
        return_origin: Optional[str] = None,
    ) -> Tuple[str, str]:
        """Stage the checkout and start the hosted payment; returns (order_id, redirect_url)"""
        order_id = generate_order_id()
        lines, total = await self.build_snapshot(cart)

        if total < 1:
            raise InvalidRequest("Online payment needs a positive amount")

        await self.ledger.check_available((line["item_id"], line["quantity"]) for line in lines)

        now = datetime.utcnow()
        owner = user_id or customer.phone
        self.db.add(PendingCommit(
            order_id=order_id,
            user_id=owner,
            customer_json=customer.model_dump(),
            items_json=lines,
            total_amount=total,
            settings_version=store_settings.version,
            attempts=0,
            created_at=now,
            expires_at=now + timedelta(minutes=settings.pending_commit_ttl_minutes),
        ))
        await self.db.commit()

        try:
            redirect_url = await self.gateway.initiate(
                amount=total,
                user_id=owner,
                order_id=order_id,
                return_origin=return_origin or settings.client_url,
                mobile_number=customer.phone,
            )
        except OrderingError:
            # Checkout never started; leave nothing behind
            await self._discard_pending(order_id)
            raise

        logger.info("Online checkout staged", order_id=order_id, total_amount=total)
        return order_id, redirect_url

    async def reconcile_online(self, order_id: str) -> ReconcileResult:
        """Commit a staged online checkout once the gateway confirms payment"""
        existing = await self.store.get(order_id)
        if existing is not None:
            return await self._already_reconciled(order_id)

        result = await self.db.execute(
            select(PendingCommit).where(PendingCommit.order_id == order_id)
        )
        pending = result.scalar_one_or_none()
        if pending is None:
            raise NotFound(f"No pending checkout for order {order_id}")

        # Build the order up front: the pending row is claimed (deleted) below
        order = Order(
            id=order_id,
            customer_name=pending.customer_json.get("name", ""),
            customer_phone=pending.customer_json.get("phone", ""),
            customer_json=pending.customer_json,
            items_json=pending.items_json,
            total_amount=pending.total_amount,
            payment_mode=PaymentMode.ONLINE.value,
            delivery_code=None,
            status=OrderStatus.PENDING.value,
            archived=False,
            settings_version=pending.settings_version,
        )

        status = await self.gateway.check_status(order_id)

        if status.state != PaymentState.SUCCESS:
            await self._record_attempt(order_id, status.state.value)
            logger.info("Payment not confirmed", order_id=order_id, state=status.state.value)
            return ReconcileResult(REJECTED, status.state)

        expected_minor_units = order.total_amount * 100
        if status.amount_minor_units is not None and status.amount_minor_units != expected_minor_units:
            logger.error(
                "Paid amount does not match staged total",
                order_id=order_id,
                paid=status.amount_minor_units,
                expected=expected_minor_units,
            )
            await self._record_attempt(order_id, AMOUNT_MISMATCH)
            return ReconcileResult(REJECTED, PaymentState.FAILED)

        order.payment_reference = status.transaction_id or order_id
        order.created_at = datetime.utcnow()

        try:
            claimed = await self.db.execute(
                delete(PendingCommit)
                .where(PendingCommit.order_id == order_id)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                # Another attempt claimed it first
                await self.db.rollback()
                return await self._already_reconciled(order_id)

            await self._commit(order)
        except OrderConflict:
            return await self._already_reconciled(order_id)
        except InsufficientStock as e:
            logger.error(
                "Paid checkout could not be committed",
                order_id=order_id,
                item_id=e.item_id,
                requested=e.requested,
                available=e.available,
            )
            await self._record_attempt(order_id, PaymentState.SUCCESS.value)
            raise

        return ReconcileResult(RECONCILED, PaymentState.SUCCESS, order)

    async def handle_callback(self, encoded_response: str, x_verify: str) -> ReconcileResult:
        """
        Gateway server-to-server callback. The checksum is verified before the
        body is read, and even then the body only names the order to
        reconcile; payment is confirmed through the status API.
        """
        if not verify_checksum(
            encoded_response,
            x_verify,
            self.gateway.salt_key,
            self.gateway.salt_index,
        ):
            logger.warning("Payment callback with invalid checksum")
            raise InvalidSignature("Callback checksum mismatch")

        try:
            payload = decode_payload(encoded_response)
            order_id = payload["data"]["merchantTransactionId"]
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidRequest("Malformed callback payload", details=str(e))

        logger.info("Payment callback received", order_id=order_id, code=payload.get("code"))
        return await self.reconcile_online(order_id)

    async def sweep_pending(self, now: Optional[datetime] = None) -> dict:
        """
        Re-check stale staged checkouts with the gateway.

        Records the gateway has already declared FAILED are not polled again;
        they are dropped once they expire. Amount mismatches are left alone
        for staff. Expired records in any other state may still be paid, so
        they are kept, re-checked and reported as errors for staff review.
        """
        now = now or datetime.utcnow()
        recheck_before = now - timedelta(seconds=settings.pending_recheck_interval_seconds)

        result = await self.db.execute(
            select(PendingCommit.order_id, PendingCommit.expires_at).where(
                or_(
                    PendingCommit.last_state.is_(None),
                    PendingCommit.last_state.notin_([PaymentState.FAILED.value, AMOUNT_MISMATCH]),
                ),
                or_(
                    func.coalesce(PendingCommit.last_checked_at, PendingCommit.created_at) <= recheck_before,
                    PendingCommit.expires_at <= now,
                ),
            )
        )
        rows = result.all()

        stats = {"checked": 0, "reconciled": 0, "expired": 0, "errors": 0}

        for order_id, expires_at in rows:
            stats["checked"] += 1
            try:
                outcome = await self.reconcile_online(order_id)
            except NotFound:
                continue
            except OrderingError as e:
                # Paid but not committable; kept for manual review
                stats["errors"] += 1
                logger.error("Sweep could not reconcile order", order_id=order_id, error=e.message)
                continue

            if outcome.outcome == RECONCILED:
                stats["reconciled"] += 1
            elif expires_at <= now and outcome.state != PaymentState.FAILED:
                stats["errors"] += 1
                logger.warning(
                    "Expired checkout still unsettled at gateway",
                    order_id=order_id,
                    state=outcome.state.value,
                )

        result = await self.db.execute(
            select(PendingCommit.order_id).where(
                PendingCommit.last_state == PaymentState.FAILED.value,
                PendingCommit.expires_at <= now,
            )
        )
        for order_id in result.scalars().all():
            await self._discard_pending(order_id)
            stats["expired"] += 1
            logger.info("Expired unpaid checkout discarded", order_id=order_id)

        return stats

    async def _already_reconciled(self, order_id: str) -> ReconcileResult:
        order = await self.store.get(order_id)
        if order is None:
            raise NotFound(f"No pending checkout for order {order_id}")
        if order.payment_mode != PaymentMode.ONLINE.value:
            # Id taken by a cash order; no payment to report
            raise OrderConflict(order_id)
        await self._discard_pending(order_id)
        return ReconcileResult(RECONCILED, PaymentState.SUCCESS, order)

    async def _discard_pending(self, order_id: str) -> None:
        result = await self.db.execute(
            delete(PendingCommit)
            .where(PendingCommit.order_id == order_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            await self.db.commit()

    async def _record_attempt(self, order_id: str, state: str) -> None:
        await self.db.execute(
            update(PendingCommit)
            .where(PendingCommit.order_id == order_id)
            .values(
                attempts=PendingCommit.attempts + 1,
                last_state=state,
                last_checked_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
