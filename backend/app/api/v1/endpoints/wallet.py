"""
Wallet API Endpoints (account holder).

Top-up through the hosted payment page, payment verification and
own ledger history.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_enrollment
from backend.app.core.dependencies import get_current_user
from backend.app.schemas.wallet import (
    AddBalanceRequest, AddBalanceResponse, VerifyPaymentRequest, VerifyPaymentResponse,
    TransactionListResponse,
)
from backend.app.domain.billing.ledger_service import LedgerService
from backend.app.services.payment_client import PaymentClient, get_payment_client
from backend.app.services.payment_service import PaymentService

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.post("/add-balance", response_model=AddBalanceResponse)
async def add_balance(
    request: AddBalanceRequest,
    enrollment: str = Depends(require_enrollment),
    db: AsyncSession = Depends(get_db),
    client: PaymentClient = Depends(get_payment_client),
):
    """Create a hosted payment request; the balance changes only after verification."""
    account = await LedgerService.get_account(db, enrollment)
    payment_url = await PaymentService.start_top_up(client, account, request.amount)
    return AddBalanceResponse(payment_url=payment_url)


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment(
    request: VerifyPaymentRequest,
    enrollment: str = Depends(require_enrollment),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    client: PaymentClient = Depends(get_payment_client),
):
    """
    Confirm a payment with the gateway and credit it.

    Safe to call repeatedly; only the first success changes the balance.
    """
    account = await LedgerService.get_account(db, enrollment)
    outcome = await PaymentService.verify_payment(
        db, client, account, request.payment_request_id, request.payment_id, actor=current_user
    )
    return VerifyPaymentResponse(
        success=True,
        already_applied=outcome.already_applied,
        message="Already verified" if outcome.already_applied else "Balance added and transaction saved",
        balance=outcome.balance,
    )


@router.get("/transactions", response_model=TransactionListResponse)
async def my_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    enrollment: str = Depends(require_enrollment),
    db: AsyncSession = Depends(get_db),
):
    account = await LedgerService.get_account(db, enrollment)
    transactions, total = await LedgerService.list_transactions(
        db, account_id=account.id, page=page, page_size=page_size
    )
    return TransactionListResponse(
        transactions=transactions,
        total=total,
        page=page,
        page_size=page_size,
        balance=account.balance,
    )
