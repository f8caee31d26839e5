"""Integration tests: bill and payment lifecycle against PostgreSQL."""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from tests.conftest import requires_db
from utility_billing.models.enums import BillStatus, PaymentMethod, UserRole

pytestmark = requires_db

TODAY = date.today()


async def _create_customer(client: AsyncClient, headers: dict, payload: dict) -> dict:
    resp = await client.post("/customers", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _create_bill(client: AsyncClient, headers: dict, customer_pk: int, **overrides) -> dict:
    body = {
        "customer_id": customer_pk,
        "bill_type": "water",
        "previous_reading": "100",
        "current_reading": "150",
        "rate": "2.5",
        "tax_rate": "10",
        "due_date": (TODAY + timedelta(days=30)).isoformat(),
    }
    body.update(overrides)
    resp = await client.post("/bills", headers=headers, json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _pay(client: AsyncClient, headers: dict, bill_id: int, amount: str) -> dict:
    resp = await client.post(
        "/payments",
        headers=headers,
        json={
            "bill_id": bill_id,
            "amount": amount,
            "payment_date": TODAY.isoformat(),
            "payment_method": "cash",
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _bill_detail(client: AsyncClient, headers: dict, bill_id: int) -> dict:
    resp = await client.get(f"/bills/{bill_id}", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


@pytest.mark.asyncio
async def test_register_and_login(async_client: AsyncClient, db_ready, unique_suffix: str):
    email = f"portal_{unique_suffix}@test.example.com"
    resp = await async_client.post(
        "/auth/register",
        json={"name": "Portal User", "email": email, "password": "Secret123", "password_confirm": "Secret123"},
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["role"] == "user"

    dup = await async_client.post(
        "/auth/register",
        json={"name": "Portal User", "email": email, "password": "Secret123", "password_confirm": "Secret123"},
    )
    assert dup.status_code == 409
    assert dup.json()["error"]["code"] == "DUPLICATE_EMAIL"

    login = await async_client.post("/auth/login", json={"email": email, "password": "Secret123"})
    assert login.status_code == 200
    tokens = login.json()["data"]

    refreshed = await async_client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["data"]["access_token"]


@pytest.mark.asyncio
async def test_reference_scenario(async_client: AsyncClient, staff_headers: dict, customer_payload):
    customer = await _create_customer(async_client, staff_headers, customer_payload())
    assert customer["customer_id"].startswith("CUST")
    assert customer["status"] == "active"

    bill = await _create_bill(async_client, staff_headers, customer["id"])
    assert bill["bill_number"].startswith("WTR")
    assert Decimal(bill["consumption"]) == Decimal("50.00")
    assert Decimal(bill["amount"]) == Decimal("125.00")
    assert Decimal(bill["tax_amount"]) == Decimal("12.50")
    assert Decimal(bill["total_amount"]) == Decimal("137.50")
    assert bill["payment_status"] == "pending"

    full = await _pay(async_client, staff_headers, bill["id"], "137.50")
    assert full["status"] == "completed"
    assert full["payment_number"].startswith("PAY")
    detail = await _bill_detail(async_client, staff_headers, bill["id"])
    assert detail["bill"]["payment_status"] == "paid"
    assert detail["bill"]["paid_at"] is not None

    voided = await async_client.post(f"/payments/{full['id']}/void", headers=staff_headers)
    assert voided.status_code == 200
    assert voided.json()["data"]["status"] == "void"
    detail = await _bill_detail(async_client, staff_headers, bill["id"])
    assert detail["bill"]["payment_status"] == "pending"
    assert detail["bill"]["paid_at"] is None
    assert Decimal(detail["amount_paid"]) == Decimal("0")

    again = await async_client.post(f"/payments/{full['id']}/void", headers=staff_headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "ALREADY_VOIDED"

    await _pay(async_client, staff_headers, bill["id"], "70.00")
    detail = await _bill_detail(async_client, staff_headers, bill["id"])
    assert detail["bill"]["payment_status"] == "partially_paid"
    assert Decimal(detail["balance"]) == Decimal("67.50")

    last = await _pay(async_client, staff_headers, bill["id"], "67.50")
    detail = await _bill_detail(async_client, staff_headers, bill["id"])
    assert detail["bill"]["payment_status"] == "paid"
    assert len(detail["payments"]) == 3

    refunded = await async_client.post(f"/payments/{last['id']}/refund", headers=staff_headers)
    assert refunded.status_code == 200
    detail = await _bill_detail(async_client, staff_headers, bill["id"])
    assert detail["bill"]["payment_status"] == "partially_paid"

    blocked = await async_client.delete(f"/bills/{bill['id']}", headers=staff_headers)
    assert blocked.status_code == 409

    blocked = await async_client.delete(f"/customers/{customer['id']}", headers=staff_headers)
    assert blocked.status_code == 409
    assert blocked.json()["error"]["code"] == "HAS_DEPENDENT_RECORDS"


@pytest.mark.asyncio
async def test_cancel_rules(async_client: AsyncClient, staff_headers: dict, customer_payload):
    customer = await _create_customer(async_client, staff_headers, customer_payload())
    bill = await _create_bill(async_client, staff_headers, customer["id"])

    cancelled = await async_client.post(
        f"/bills/{bill['id']}/status", headers=staff_headers, json={"status": "cancelled"}
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["payment_status"] == "cancelled"

    resp = await async_client.post(
        "/payments",
        headers=staff_headers,
        json={"bill_id": bill["id"], "amount": "10", "payment_date": TODAY.isoformat(), "payment_method": "card"},
    )
    assert resp.status_code == 409

    paid_bill = await _create_bill(async_client, staff_headers, customer["id"])
    await _pay(async_client, staff_headers, paid_bill["id"], "10.00")
    resp = await async_client.post(
        f"/bills/{paid_bill['id']}/status", headers=staff_headers, json={"status": "cancelled"}
    )
    assert resp.status_code == 409

    # Bill without payments can be deleted
    deletable = await _create_bill(async_client, staff_headers, customer["id"])
    resp = await async_client.delete(f"/bills/{deletable['id']}", headers=staff_headers)
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_bill_validation(async_client: AsyncClient, staff_headers: dict, customer_payload):
    customer = await _create_customer(async_client, staff_headers, customer_payload())

    resp = await async_client.post(
        "/bills",
        headers=staff_headers,
        json={
            "customer_id": customer["id"],
            "bill_type": "electricity",
            "previous_reading": "200",
            "current_reading": "150",
            "rate": "0.2",
            "due_date": TODAY.isoformat(),
        },
    )
    assert resp.status_code == 422
    assert "current_reading" in resp.json()["error"]["fields"]

    resp = await async_client.post(
        "/bills",
        headers=staff_headers,
        json={"customer_id": 999999999, "bill_type": "water", "current_reading": "1", "rate": "1",
              "due_date": TODAY.isoformat()},
    )
    assert resp.status_code == 404

    suspended = await async_client.patch(
        f"/customers/{customer['id']}", headers=staff_headers, json={"status": "suspended"}
    )
    assert suspended.status_code == 200
    resp = await async_client.post(
        "/bills",
        headers=staff_headers,
        json={"customer_id": customer["id"], "bill_type": "water", "current_reading": "1", "rate": "1",
              "due_date": TODAY.isoformat()},
    )
    assert resp.status_code == 422
    assert "customer_id" in resp.json()["error"]["fields"]


@pytest.mark.asyncio
async def test_portal_user_sees_only_own_records(
    async_client: AsyncClient, make_user, staff_headers: dict, customer_payload
):
    owner, owner_headers = await make_user(UserRole.USER)
    _, other_headers = await make_user(UserRole.USER)

    mine = await _create_customer(async_client, staff_headers, customer_payload(user_id=owner.id))
    theirs = await _create_customer(async_client, staff_headers, customer_payload())
    my_bill = await _create_bill(async_client, staff_headers, mine["id"])
    their_bill = await _create_bill(async_client, staff_headers, theirs["id"])

    listed = await async_client.get("/bills", headers=owner_headers)
    assert listed.status_code == 200
    assert [b["id"] for b in listed.json()["data"]] == [my_bill["id"]]

    assert (await async_client.get(f"/bills/{my_bill['id']}", headers=owner_headers)).status_code == 200
    assert (await async_client.get(f"/bills/{their_bill['id']}", headers=owner_headers)).status_code == 403
    assert (await async_client.get("/bills/999999999", headers=owner_headers)).status_code == 403
    assert (await async_client.get(f"/customers/{mine['id']}", headers=other_headers)).status_code == 403

    resp = await async_client.post(
        "/payments",
        headers=owner_headers,
        json={"bill_id": my_bill["id"], "amount": "1", "payment_date": TODAY.isoformat(), "payment_method": "online"},
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_concurrent_payments_serialize_on_bill(
    async_client: AsyncClient, staff_headers: dict, customer_payload
):
    from utility_billing.database import AsyncSessionLocal
    from utility_billing.schemas.billing import PaymentCreate
    from utility_billing.services.bill_service import BillService
    from utility_billing.services.payment_service import PaymentService

    customer = await _create_customer(async_client, staff_headers, customer_payload())
    bill = await _create_bill(async_client, staff_headers, customer["id"])

    async def post(amount: str):
        async with AsyncSessionLocal() as session:
            return await PaymentService.record_payment(
                session,
                PaymentCreate(
                    bill_id=bill["id"],
                    amount=Decimal(amount),
                    payment_date=TODAY,
                    payment_method=PaymentMethod.CASH,
                ),
            )

    await asyncio.gather(post("70.00"), post("67.50"))

    async with AsyncSessionLocal() as session:
        stored = await BillService.get_bill_by_id(session, bill["id"], with_relations=True)
        assert BillService.amount_paid(stored) == Decimal("137.50")
        assert stored.payment_status == BillStatus.PAID


@pytest.mark.asyncio
async def test_reports(async_client: AsyncClient, staff_headers: dict, customer_payload):
    customer = await _create_customer(async_client, staff_headers, customer_payload())
    bill = await _create_bill(async_client, staff_headers, customer["id"], due_date=TODAY.isoformat())
    await _pay(async_client, staff_headers, bill["id"], "70.00")

    dashboard = await async_client.get("/dashboard", headers=staff_headers)
    assert dashboard.status_code == 200
    assert dashboard.json()["data"]["metrics"]["total_customers"] >= 1

    financial = await async_client.get("/reports/financial", headers=staff_headers)
    assert financial.status_code == 200
    report = financial.json()["data"]
    assert report["total_payments"] >= 1
    assert "cash" in report["by_method"]

    statement = await async_client.get(
        f"/reports/customer-statement/{customer['id']}", headers=staff_headers
    )
    assert statement.status_code == 200
    data = statement.json()["data"]
    assert Decimal(data["total_billed"]) == Decimal("137.50")
    assert Decimal(data["total_paid"]) == Decimal("70.00")
    assert Decimal(data["balance"]) == Decimal("67.50")

    efficiency = await async_client.get(
        "/reports/collection-efficiency",
        headers=staff_headers,
        params={"year": TODAY.year, "month": TODAY.month},
    )
    assert efficiency.status_code == 200
    assert Decimal(efficiency.json()["data"]["total_billed"]) >= Decimal("137.50")

    overdue = await async_client.get("/reports/overdue-bills", headers=staff_headers)
    assert overdue.status_code == 200


@pytest.mark.asyncio
async def test_deleting_user_keeps_bills(
    async_client: AsyncClient, make_user, admin_headers: dict, customer_payload
):
    staff, headers = await make_user(UserRole.STAFF)
    customer = await _create_customer(async_client, headers, customer_payload())
    bill = await _create_bill(async_client, headers, customer["id"])
    assert bill["created_by"] == staff.id

    resp = await async_client.delete(f"/users/{staff.id}", headers=admin_headers)
    assert resp.status_code == 204

    detail = await _bill_detail(async_client, admin_headers, bill["id"])
    assert detail["bill"]["created_by"] is None


@pytest.mark.asyncio
async def test_past_due_pending_bill_counts_only_as_overdue(
    async_client: AsyncClient, staff_headers: dict, customer_payload
):
    before = (await async_client.get("/dashboard", headers=staff_headers)).json()["data"]["metrics"]

    customer = await _create_customer(async_client, staff_headers, customer_payload())
    await _create_bill(
        async_client, staff_headers, customer["id"], due_date=(TODAY - timedelta(days=3)).isoformat()
    )

    after = (await async_client.get("/dashboard", headers=staff_headers)).json()["data"]["metrics"]
    assert after["pending_bills"]["count"] == before["pending_bills"]["count"]
    assert after["overdue_bills"]["count"] == before["overdue_bills"]["count"] + 1
    assert Decimal(after["overdue_bills"]["amount"]) - Decimal(before["overdue_bills"]["amount"]) == Decimal("137.50")


@pytest.mark.asyncio
async def test_duplicate_meter_number_is_conflict(
    async_client: AsyncClient, staff_headers: dict, customer_payload, unique_suffix: str
):
    meter = f"WM-{unique_suffix}"
    await _create_customer(async_client, staff_headers, customer_payload(water_meter_number=meter))

    resp = await async_client.post(
        "/customers", headers=staff_headers, json=customer_payload(water_meter_number=meter)
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DUPLICATE_METER_NUMBER"
