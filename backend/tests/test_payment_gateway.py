"""
Payment Gateway Tests.

Hosted top-up requests and verification-driven, idempotent credits.
"""

import pytest
from decimal import Decimal
from urllib.parse import parse_qs

from backend.app.core.exceptions import GatewayError, PaymentNotCredited, ValidationError
from backend.app.domain.billing.ledger_service import LedgerService
from backend.app.services.payment_service import PaymentService
from backend.tests.factories import ENROLLMENT, seed_account


def payment_request(payment_id="MOJO5a06", status="Credit", purpose=f"Add Balance {ENROLLMENT}", amount="500.00"):
    return {
        "success": True,
        "payment_request": {
            "id": "PR-1",
            "purpose": purpose,
            "amount": amount,
            "status": "Completed",
            "payments": [{"payment_id": payment_id, "status": status, "amount": amount}],
        },
    }


@pytest.mark.asyncio
async def test_start_top_up_returns_hosted_url(db_session, payment_gateway):
    account = await seed_account(db_session, phone="9999999999")
    payment_gateway.on("POST", "/payment-requests/", 201, {
        "success": True,
        "payment_request": {"id": "PR-1", "longurl": "https://pay.test/PR-1"},
    })

    url = await PaymentService.start_top_up(payment_gateway.client(), account, "500")

    assert url == "https://pay.test/PR-1"
    sent = payment_gateway.requests[0]
    form = parse_qs(sent.content.decode())
    assert form["purpose"] == [f"Add Balance {ENROLLMENT}"]
    assert form["amount"] == ["500.00"]
    assert form["email"] == ["brand@example.com"]
    assert sent.headers["X-Api-Key"] == "key"
    assert sent.headers["X-Auth-Token"] == "token"
    # no balance change until verification
    assert Decimal((await LedgerService.reload(db_session, account.id)).balance) == Decimal("0")


@pytest.mark.asyncio
async def test_start_top_up_rejects_non_positive_amount(db_session, payment_gateway):
    account = await seed_account(db_session)
    with pytest.raises(ValidationError):
        await PaymentService.start_top_up(payment_gateway.client(), account, "0")
    assert payment_gateway.requests == []


@pytest.mark.asyncio
async def test_verify_credits_gateway_amount_once(db_session, payment_gateway):
    account = await seed_account(db_session)
    payment_gateway.on("GET", "/payment-requests/PR-1/", 200, payment_request())
    client = payment_gateway.client()

    first = await PaymentService.verify_payment(db_session, client, account, "PR-1", "MOJO5a06")
    second = await PaymentService.verify_payment(db_session, client, account, "PR-1", "MOJO5a06")

    assert not first.already_applied
    assert first.balance == Decimal("500.00")
    assert first.transaction.description == "Added Balance"
    assert second.already_applied
    assert second.balance == Decimal("500.00")
    # the repeat is answered from the ledger
    assert payment_gateway.calls("GET", "/payment-requests/PR-1/") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"status": "Failed"},
    {"payment_id": "MOJO-OTHER"},
    {"purpose": "Add Balance ENR-9999"},
    {"amount": "0"},
])
async def test_verify_rejects_uncredited_payments(db_session, payment_gateway, kwargs):
    account = await seed_account(db_session)
    payment_gateway.on("GET", "/payment-requests/PR-1/", 200, payment_request(**kwargs))

    with pytest.raises(PaymentNotCredited):
        await PaymentService.verify_payment(db_session, payment_gateway.client(), account, "PR-1", "MOJO5a06")

    assert Decimal((await LedgerService.reload(db_session, account.id)).balance) == Decimal("0")


@pytest.mark.asyncio
async def test_verify_refuses_payment_applied_to_another_account(db_session, payment_gateway):
    owner = await seed_account(db_session, "ENR-1001")
    other = await seed_account(db_session, "ENR-2002")
    payment_gateway.on("GET", "/payment-requests/PR-1/", 200, payment_request())
    await PaymentService.verify_payment(db_session, payment_gateway.client(), owner, "PR-1", "MOJO5a06")

    with pytest.raises(PaymentNotCredited):
        await PaymentService.verify_payment(db_session, payment_gateway.client(), other, "PR-1", "MOJO5a06")


@pytest.mark.asyncio
async def test_gateway_outage_is_retryable(db_session, payment_gateway):
    account = await seed_account(db_session)
    payment_gateway.on("GET", "/payment-requests/PR-1/", 500, {"message": "Internal error"})

    with pytest.raises(GatewayError) as exc_info:
        await PaymentService.verify_payment(db_session, payment_gateway.client(), account, "PR-1", "MOJO5a06")

    assert exc_info.value.retryable
    assert exc_info.value.upstream_status == 500
