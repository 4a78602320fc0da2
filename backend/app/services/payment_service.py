"""
Payment gateway adapter: wallet top-ups.

A top-up is credited only after the gateway itself reports the payment
as credited; the amount always comes from the gateway, never the client.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import PaymentNotCredited, ValidationError
from backend.app.core.money import D, round_money
from backend.app.domain.billing.coordinator import CreditOutcome, LedgerOrderCoordinator
from backend.app.domain.billing.ledger_service import LedgerService
from backend.app.models.account import Account
from backend.app.services.payment_client import PaymentClient

logger = logging.getLogger("order_ledger")

CREDIT_STATUS = "Credit"
TOP_UP_DESCRIPTION = "Added Balance"


def top_up_purpose(enrollment: str) -> str:
    return f"Add Balance {enrollment}"


class PaymentService:

    @staticmethod
    async def start_top_up(client: PaymentClient, account: Account, amount) -> str:
        """Create a hosted payment request for `amount`; returns the payment URL."""
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero", details={"amount": str(amount)})

        payment_request = await client.create_payment_request(
            amount,
            purpose=top_up_purpose(account.enrollment),
            buyer_name=account.brand_name,
            email=account.email,
            phone=account.phone,
        )
        logger.info("Payment request %s created for %s", payment_request.get("id"), account.enrollment)
        return payment_request["longurl"]

    @staticmethod
    async def verify_payment(
        db: AsyncSession,
        client: PaymentClient,
        account: Account,
        payment_request_id: str,
        payment_id: str,
        actor: Optional[dict] = None,
    ) -> CreditOutcome:
        """
        Re-check a payment with the gateway and credit it once.

        A payment that is already in the ledger returns immediately
        without a gateway call.

        Raises:
            PaymentNotCredited: gateway does not report the payment as
                credited for this account
        """
        if not payment_request_id or not payment_id:
            raise ValidationError("paymentRequestId and paymentId are required")

        existing = await LedgerService.find_by_payment_id(db, payment_id)
        if existing is not None:
            if existing.account_id != account.id:
                raise PaymentNotCredited(payment_id, gateway_status="applied to another account")
            account = await LedgerService.reload(db, account.id)
            return CreditOutcome(already_applied=True, balance=round_money(account.balance), transaction=existing)

        payment_request = await client.get_payment_request(payment_request_id)
        payment = next(
            (p for p in payment_request.get("payments") or [] if p.get("payment_id") == payment_id),
            None,
        )
        gateway_status = payment.get("status") if payment else None
        if gateway_status != CREDIT_STATUS:
            raise PaymentNotCredited(payment_id, gateway_status)
        if payment_request.get("purpose") != top_up_purpose(account.enrollment):
            raise PaymentNotCredited(payment_id, gateway_status="payment request belongs to another account")

        try:
            amount = D(payment_request.get("amount"))
        except ValueError:
            raise PaymentNotCredited(payment_id, gateway_status="invalid amount")
        if amount <= Decimal("0"):
            raise PaymentNotCredited(payment_id, gateway_status="invalid amount")

        outcome = await LedgerOrderCoordinator.credit_account(
            db, account, amount, payment_id, description=TOP_UP_DESCRIPTION, actor=actor
        )
        logger.info(
            "Payment %s for %s: %s",
            payment_id, account.enrollment, "already applied" if outcome.already_applied else "credited",
        )
        return outcome
