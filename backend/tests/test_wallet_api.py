"""
Wallet, Admin Wallet, Account and Catalog API Tests.
"""

import pytest
from decimal import Decimal

from backend.tests.factories import ENROLLMENT, make_headers, seed_account


def verified_request(payment_id="MOJO-77", amount="750.00"):
    return {
        "payment_request": {
            "id": "PR-77",
            "purpose": f"Add Balance {ENROLLMENT}",
            "amount": amount,
            "payments": [{"payment_id": payment_id, "status": "Credit"}],
        }
    }


@pytest.mark.asyncio
async def test_add_balance_returns_payment_url(client, db_session, payment_gateway, user_headers):
    await seed_account(db_session)
    payment_gateway.on("POST", "/payment-requests/", 201, {"payment_request": {"id": "PR-77", "longurl": "https://pay.test/PR-77"}})

    response = await client.post("/v1/wallet/add-balance", json={"amount": 750}, headers=user_headers)

    assert response.status_code == 200
    assert response.json() == {"payment_url": "https://pay.test/PR-77"}


@pytest.mark.asyncio
async def test_wallet_routes_need_enrollment_token(client, db_session, payment_gateway, admin_headers):
    await seed_account(db_session)

    staff = await client.post("/v1/wallet/add-balance", json={"amount": 750}, headers=admin_headers)
    unlinked = await client.post("/v1/wallet/add-balance", json={"amount": 750}, headers=make_headers("USER"))

    assert staff.status_code == 403
    assert unlinked.status_code == 403


@pytest.mark.asyncio
async def test_verify_payment_is_idempotent(client, db_session, payment_gateway, user_headers):
    await seed_account(db_session)
    payment_gateway.on("GET", "/payment-requests/PR-77/", 200, verified_request())
    body = {"paymentRequestId": "PR-77", "paymentId": "MOJO-77"}

    first = await client.post("/v1/wallet/verify-payment", json=body, headers=user_headers)
    second = await client.post("/v1/wallet/verify-payment", json=body, headers=user_headers)

    assert first.status_code == 200
    assert first.json()["message"] == "Balance added and transaction saved"
    assert Decimal(first.json()["balance"]) == Decimal("750")
    assert second.json()["already_applied"] is True
    assert second.json()["message"] == "Already verified"
    assert Decimal(second.json()["balance"]) == Decimal("750")

    history = await client.get("/v1/wallet/transactions", headers=user_headers)
    assert history.json()["total"] == 1
    assert history.json()["transactions"][0]["external_payment_id"] == "MOJO-77"
    assert Decimal(history.json()["balance"]) == Decimal("750")


@pytest.mark.asyncio
async def test_verify_payment_not_credited(client, db_session, payment_gateway, user_headers):
    await seed_account(db_session)
    pending = verified_request()
    pending["payment_request"]["payments"][0]["status"] = "Failed"
    payment_gateway.on("GET", "/payment-requests/PR-77/", 200, pending)

    response = await client.post(
        "/v1/wallet/verify-payment", json={"paymentRequestId": "PR-77", "paymentId": "MOJO-77"}, headers=user_headers
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Payment not credited"
    assert response.json()["details"]["gateway_status"] == "Failed"


@pytest.mark.asyncio
async def test_admin_adjustments(client, db_session, accountant_headers):
    await seed_account(db_session, balance="200")

    added = await client.post(
        "/v1/admin/add-money", json={"enrollment": ENROLLMENT, "amount": 100}, headers=accountant_headers
    )
    overdraw = await client.post(
        "/v1/admin/deduct-money", json={"enrollment": ENROLLMENT, "amount": 350}, headers=accountant_headers
    )
    deducted = await client.post(
        "/v1/admin/deduct-money",
        json={"enrollment": ENROLLMENT, "amount": 250, "description": "RTO charges"},
        headers=accountant_headers,
    )

    assert Decimal(added.json()["balance"]) == Decimal("300")
    assert added.json()["transaction"]["description"] == "Added by admin"
    assert overdraw.status_code == 400
    assert overdraw.json()["error_code"] == "ERR_LEDGER_001"
    assert Decimal(deducted.json()["balance"]) == Decimal("50")
    assert deducted.json()["transaction"]["entry_type"] == "DEBIT"


@pytest.mark.asyncio
async def test_admin_adjust_rejected_for_other_roles(client, db_session, dispatch_headers):
    await seed_account(db_session, balance="200")
    response = await client.post(
        "/v1/admin/add-money", json={"enrollment": ENROLLMENT, "amount": 100}, headers=dispatch_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_adjust_unknown_account(client, admin_headers):
    response = await client.post(
        "/v1/admin/add-money", json={"enrollment": "ENR-404", "amount": 100}, headers=admin_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_ledger_report_and_reconcile(client, db_session, admin_headers):
    await seed_account(db_session, balance="500")
    await seed_account(db_session, "ENR-2002", balance="80")
    await client.post("/v1/admin/deduct-money", json={"enrollment": ENROLLMENT, "amount": 120}, headers=admin_headers)

    everything = await client.get("/v1/admin/transactions", headers=admin_headers)
    scoped = await client.get("/v1/admin/transactions", params={"enrollment": ENROLLMENT}, headers=admin_headers)
    reconcile = await client.get(f"/v1/admin/accounts/{ENROLLMENT}/reconcile", headers=admin_headers)

    assert everything.json()["total"] == 3
    assert scoped.json()["total"] == 2
    assert scoped.json()["transactions"][0]["entry_type"] == "DEBIT"
    assert Decimal(scoped.json()["balance"]) == Decimal("380")
    assert reconcile.json()["consistent"] is True
    assert reconcile.json()["transaction_count"] == 2
    assert Decimal(reconcile.json()["ledger_total"]) == Decimal("380")


@pytest.mark.asyncio
async def test_account_onboarding_and_profile_update(client, admin_headers):
    created = await client.post(
        "/v1/admin/accounts",
        json={"enrollment": "ENR-3003", "brandName": "Loom House", "email": "loom@example.com"},
        headers=admin_headers,
    )
    duplicate = await client.post("/v1/admin/accounts", json={"enrollment": "ENR-3003"}, headers=admin_headers)
    updated = await client.put(
        "/v1/admin/accounts/ENR-3003",
        json={"address": "4 Weaver Lane", "pincode": "110001", "state": "Delhi"},
        headers=admin_headers,
    )
    listed = await client.get("/v1/admin/accounts", params={"search": "Loom"}, headers=admin_headers)

    assert created.status_code == 201
    assert Decimal(created.json()["balance"]) == Decimal("0")
    assert duplicate.status_code == 409
    assert updated.json()["pincode"] == "110001"
    assert updated.json()["brand_name"] == "Loom House"
    assert listed.json()["total"] == 1


@pytest.mark.asyncio
async def test_catalog_upload_upserts_by_sku(client, admin_headers, dispatch_headers):
    first = await client.post(
        "/v1/products/upload",
        json={"products": [
            {"sku": "SKU-A", "name": "Brass Lamp", "unitPrice": 250, "taxRatePercent": 20},
            {"sku": "SKU-B", "name": "Jute Bag", "unitPrice": 100, "unitShipping": 50},
        ]},
        headers=dispatch_headers,
    )
    second = await client.post(
        "/v1/products/upload",
        json={"products": [{"sku": "SKU-A", "name": "Brass Lamp XL", "unitPrice": 275}]},
        headers=admin_headers,
    )
    invalid = await client.post(
        "/v1/products/upload",
        json={"products": [{"sku": "SKU-Z", "name": "Free", "unitPrice": 0}]},
        headers=admin_headers,
    )
    listed = await client.get("/v1/products", headers=admin_headers)

    assert first.json() == {"created": 2, "updated": 0}
    assert second.json() == {"created": 0, "updated": 1}
    assert invalid.status_code == 422
    by_sku = {item["sku"]: item for item in listed.json()}
    assert by_sku["SKU-A"]["name"] == "Brass Lamp XL"
    assert Decimal(by_sku["SKU-A"]["unit_price"]) == Decimal("275")


@pytest.mark.asyncio
async def test_admin_adjustments_appear_in_audit_trail(client, db_session, admin_headers, accountant_headers):
    await seed_account(db_session, balance="200")
    await client.post("/v1/admin/add-money", json={"enrollment": ENROLLMENT, "amount": 100}, headers=accountant_headers)
    await client.post("/v1/admin/deduct-money", json={"enrollment": ENROLLMENT, "amount": 40}, headers=accountant_headers)

    trail = await client.get("/v1/admin/ops/audit-logs", params={"enrollment": ENROLLMENT}, headers=admin_headers)
    debits = await client.get("/v1/admin/ops/audit-logs", params={"action": "WALLET_DEBITED"}, headers=admin_headers)
    forbidden = await client.get("/v1/admin/ops/audit-logs", headers=accountant_headers)

    assert trail.json()["total"] == 2
    assert {log["action"] for log in trail.json()["logs"]} == {"WALLET_CREDITED", "WALLET_DEBITED"}
    assert all(log["actor_role"] == "ACCOUNTANT" for log in trail.json()["logs"])
    assert debits.json()["logs"][0]["meta_data"]["amount"] == "40.00"
    assert forbidden.status_code == 403
