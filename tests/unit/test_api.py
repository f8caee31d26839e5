"""API tests that run without a database: auth gating, error envelopes and routing."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, patch
from httpx import AsyncClient

from utility_billing.core.exceptions import HasDependentPayments, IdentifierCollision
from utility_billing.core.security import create_access_token, create_refresh_token
from utility_billing.models.billing import Bill
from utility_billing.models.customer import Customer
from utility_billing.models.enums import BillStatus, BillType, CustomerStatus, UserRole
from utility_billing.models.user import User

BILLS = "utility_billing.api.v1.endpoints.bills.BillService"
CUSTOMERS = "utility_billing.api.v1.endpoints.customers.CustomerService"
AUTH = "utility_billing.api.v1.endpoints.auth.UserService"
DEPS = "utility_billing.api.deps.UserService"


def _bill() -> Bill:
    return Bill(
        id=10,
        bill_number="WTR25060001",
        customer_id=1,
        bill_type=BillType.WATER,
        previous_reading=Decimal("100.00"),
        current_reading=Decimal("150.00"),
        consumption=Decimal("50.00"),
        rate=Decimal("2.5000"),
        tax_rate=Decimal("10.00"),
        amount=Decimal("125.00"),
        tax_amount=Decimal("12.50"),
        total_amount=Decimal("137.50"),
        due_date=date(2025, 7, 1),
        payment_status=BillStatus.PENDING,
        created_at=datetime(2025, 6, 1, 9, 0),
    )


BILL_BODY = {
    "customer_id": 1,
    "bill_type": "water",
    "previous_reading": "100",
    "current_reading": "150",
    "rate": "2.5",
    "tax_rate": "10",
    "due_date": "2025-07-01",
}


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("http://test/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_missing_token_is_unauthenticated(async_client: AsyncClient, mock_db):
    resp = await async_client.get("/bills")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "UNAUTHENTICATED"
    assert resp.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_garbage_token_is_unauthenticated(async_client: AsyncClient, mock_db):
    resp = await async_client.get("/bills", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_cannot_be_used_as_access_token(async_client: AsyncClient, mock_db):
    token = create_refresh_token({"sub": "1", "role": "admin"})
    resp = await async_client.get("/bills", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_is_unauthenticated(async_client: AsyncClient, mock_db):
    token = create_access_token({"sub": "1", "role": "staff"})
    with patch(f"{DEPS}.get_user_by_id", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = User(id=1, role=UserRole.STAFF, is_active=False)
        resp = await async_client.get("/bills", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_login_and_me(async_client: AsyncClient, mock_db):
    user = User(
        id=3,
        name="Sam Staff",
        email="sam@example.com",
        role=UserRole.STAFF,
        is_active=True,
        created_at=datetime(2025, 1, 1),
    )
    with patch(f"{AUTH}.authenticate_user", new_callable=AsyncMock) as mock_auth:
        mock_auth.return_value = user
        resp = await async_client.post(
            "/auth/login", json={"email": "sam@example.com", "password": "secret123"}
        )
    assert resp.status_code == 200
    token = resp.json()["data"]
    assert token["role"] == "staff"
    assert token["user_id"] == 3

    with patch(f"{DEPS}.get_user_by_id", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = user
        resp = await async_client.get(
            "/auth/me", headers={"Authorization": f"Bearer {token['access_token']}"}
        )
    assert resp.status_code == 200
    assert resp.json()["data"]["email"] == "sam@example.com"


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, mock_db):
    with patch(f"{AUTH}.authenticate_user", new_callable=AsyncMock) as mock_auth:
        mock_auth.return_value = None
        resp = await async_client.post(
            "/auth/login", json={"email": "sam@example.com", "password": "wrong"}
        )
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Incorrect email or password"


@pytest.mark.asyncio
async def test_plain_user_cannot_create_bills(async_client: AsyncClient, override_auth):
    override_auth(UserRole.USER)
    with patch(f"{BILLS}.create_bill", new_callable=AsyncMock) as mock_create:
        resp = await async_client.post("/bills", json=BILL_BODY)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"
    assert not mock_create.called


@pytest.mark.asyncio
async def test_staff_creates_bill(async_client: AsyncClient, override_auth):
    staff = override_auth(UserRole.STAFF, user_id=2)
    with patch(f"{BILLS}.create_bill", new_callable=AsyncMock) as mock_create:
        mock_create.return_value = _bill()
        resp = await async_client.post("/bills", json=BILL_BODY)
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["bill_number"] == "WTR25060001"
    assert Decimal(data["total_amount"]) == Decimal("137.50")
    assert mock_create.await_args.kwargs["created_by"] == staff.id


@pytest.mark.asyncio
async def test_staff_cannot_manage_users(async_client: AsyncClient, override_auth):
    override_auth(UserRole.STAFF)
    resp = await async_client.get("/users")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_plain_user_cannot_view_reports(async_client: AsyncClient, override_auth):
    override_auth(UserRole.USER)
    resp = await async_client.get("/reports/financial")
    assert resp.status_code == 403
    resp = await async_client.get("/dashboard")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_bill_with_payments_is_conflict(async_client: AsyncClient, override_auth):
    override_auth(UserRole.STAFF)
    with patch(f"{BILLS}.delete_bill", new_callable=AsyncMock) as mock_delete:
        mock_delete.side_effect = HasDependentPayments("Cannot delete bill with associated payments")
        resp = await async_client.delete("/bills/10")
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "HAS_DEPENDENT_PAYMENTS"


@pytest.mark.asyncio
async def test_identifier_exhaustion_is_generic_500(async_client: AsyncClient, override_auth):
    override_auth(UserRole.STAFF)
    with patch(f"{BILLS}.create_bill", new_callable=AsyncMock) as mock_create:
        mock_create.side_effect = IdentifierCollision("Could not allocate a unique bill_number")
        resp = await async_client.post("/bills", json=BILL_BODY)
    assert resp.status_code == 500
    assert resp.json()["error"]["message"] == "Internal server error"


@pytest.mark.asyncio
async def test_request_validation_uses_error_envelope(async_client: AsyncClient, override_auth):
    override_auth(UserRole.STAFF)
    resp = await async_client.post(
        "/payments",
        json={"bill_id": 10, "amount": "0", "payment_date": "2025-06-20", "payment_method": "cash"},
    )
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "amount" in error["fields"]


@pytest.mark.asyncio
async def test_missing_bill_is_not_found_for_staff(async_client: AsyncClient, override_auth):
    override_auth(UserRole.STAFF)
    with patch(f"{BILLS}.get_bill_by_id", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = None
        resp = await async_client.get("/bills/404")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "BILL_NOT_FOUND"


@pytest.mark.asyncio
async def test_missing_and_foreign_bills_are_forbidden_for_users(async_client: AsyncClient, override_auth):
    override_auth(UserRole.USER, user_id=5)
    foreign = _bill()
    foreign.customer = Customer(id=1, customer_id="CUST1", first_name="A", last_name="B", user_id=6)
    foreign.payments = []

    with patch(f"{BILLS}.get_bill_by_id", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = None
        missing = await async_client.get("/bills/404")
        mock_get.return_value = foreign
        other = await async_client.get("/bills/10")

    assert missing.status_code == other.status_code == 403
    assert missing.json() == other.json()


@pytest.mark.asyncio
async def test_owner_reads_own_bill(async_client: AsyncClient, override_auth):
    override_auth(UserRole.USER, user_id=5)
    bill = _bill()
    bill.customer = Customer(id=1, customer_id="CUST1", first_name="A", last_name="B", user_id=5)
    bill.payments = []

    with patch(f"{BILLS}.get_bill_by_id", new_callable=AsyncMock) as mock_get:
        mock_get.return_value = bill
        resp = await async_client.get("/bills/10")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert Decimal(data["amount_paid"]) == Decimal("0")
    assert Decimal(data["balance"]) == Decimal("137.50")


@pytest.mark.asyncio
async def test_customer_csv_export(async_client: AsyncClient, override_auth):
    override_auth(UserRole.STAFF)
    customer = Customer(
        customer_id="CUST12345612345",
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="555",
        address="1 Road",
        city="Springfield",
        country="US",
        postal_code="12345",
        status=CustomerStatus.ACTIVE,
    )
    with patch(f"{CUSTOMERS}.list_customers", new_callable=AsyncMock) as mock_list:
        mock_list.return_value = ([customer], 1)
        resp = await async_client.get("/customers/export/csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]
    assert '"CUST12345612345"' in resp.text


@pytest.mark.asyncio
async def test_sub_cent_payment_is_validation_error(async_client: AsyncClient, override_auth, mock_db):
    override_auth(UserRole.STAFF)
    resp = await async_client.post(
        "/payments",
        json={"bill_id": 10, "amount": "0.004", "payment_date": "2025-06-20", "payment_method": "cash"},
    )
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "amount" in error["fields"]
    assert not mock_db.commit.called
