"""Test configuration and fixtures"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from uuid import uuid4

from app.main import app
from app.database import Base, get_db
from app.exceptions import GatewayError
from app.models.inventory import InventoryItem
from app.models.store import StoreSettings
from app.models.user import User, UserRole
from app.api.auth import create_access_token, get_password_hash
from app.notifications.transport import BasePushTransport, EndpointGone, get_push_transport
from app.payments.gateway import get_gateway
from app.schemas.payment import PaymentState, PaymentStatusResult
from app.schemas.store import StoreSettingsSnapshot


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_SALT_KEY = "test-salt-key"
TEST_SALT_INDEX = 1


class FakeGateway:
    """Stands in for PhonePeGateway; status is whatever the test sets"""

    def __init__(self):
        self.salt_key = TEST_SALT_KEY
        self.salt_index = TEST_SALT_INDEX
        self.state = PaymentState.SUCCESS
        self.amount_minor_units = None
        self.fail_initiate = False
        self.initiated = []
        self.status_checks = []

    async def initiate(self, amount, user_id, order_id, return_origin, mobile_number=None):
        if self.fail_initiate:
            raise GatewayError("Payment gateway unreachable", details="connection refused")
        self.initiated.append({
            "amount": amount,
            "user_id": user_id,
            "order_id": order_id,
            "return_origin": return_origin,
        })
        return f"https://gateway.test/pay/{order_id}"

    async def fetch_status(self, order_id):
        code = "PAYMENT_SUCCESS" if self.state == PaymentState.SUCCESS else "PAYMENT_ERROR"
        return {"success": True, "code": code, "data": {"merchantTransactionId": order_id}}

    async def check_status(self, order_id):
        self.status_checks.append(order_id)
        return PaymentStatusResult(
            state=self.state,
            code=self.state.value,
            transaction_id=f"T{order_id}",
            amount_minor_units=self.amount_minor_units,
        )


class FakePushTransport(BasePushTransport):
    """Records deliveries; endpoints listed in `gone` or `failing` misbehave"""

    def __init__(self):
        self.sent = []
        self.gone = set()
        self.failing = set()

    async def send(self, subscription_info, payload):
        endpoint = subscription_info["endpoint"]
        if endpoint in self.gone:
            raise EndpointGone(endpoint, 410)
        if endpoint in self.failing:
            raise RuntimeError("push service unavailable")
        self.sent.append((endpoint, payload))


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def store_settings(test_db):
    """Singleton settings row with COD enabled"""
    row = StoreSettings(id=1, delivery_mode="now", cod_enabled=True, version=1)
    test_db.add(row)
    await test_db.commit()
    return StoreSettingsSnapshot.model_validate(row)


@pytest.fixture
async def inventory_items(test_db):
    """Two stocked items; returns their ids keyed by name"""
    tea = InventoryItem(id=uuid4(), name="Masala Tea", price=20, cost=12, stock=5, category="Drinks")
    maggi = InventoryItem(id=uuid4(), name="Maggi", price=30, cost=None, stock=2, category="Noodles")
    test_db.add_all([tea, maggi])
    await test_db.commit()
    return {"tea": tea.id, "maggi": maggi.id}


@pytest.fixture
async def staff_user(test_db):
    """Create a staff user"""
    user = User(
        id=uuid4(),
        email="staff@example.com",
        hashed_password=get_password_hash("staffpass123"),
        full_name="Staff User",
        role=UserRole.STAFF,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()

    return user


@pytest.fixture
async def admin_user(test_db):
    """Create an admin user"""
    user = User(
        id=uuid4(),
        email="admin@example.com",
        hashed_password=get_password_hash("adminpass123"),
        full_name="Admin User",
        role=UserRole.ADMIN,
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()

    return user


@pytest.fixture
async def staff_headers(staff_user):
    return {"Authorization": f"Bearer {create_access_token(staff_user)}"}


@pytest.fixture
async def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user)}"}


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def fake_push():
    return FakePushTransport()


@pytest.fixture
async def client(test_db, fake_gateway, fake_push):
    """Create test client with overridden database, gateway and push transport"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_push_transport] = lambda: fake_push

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
