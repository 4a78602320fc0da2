"""
Admin Wallet API Endpoints.

Manual balance adjustments, ledger reports and reconciliation.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional

from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.models.ledger_enums import AdjustmentDirection
from backend.app.schemas.wallet import (
    ManualAdjustRequest, ManualAdjustResponse, TransactionListResponse, ReconcileResponse,
)
from backend.app.core.guards import require_role
from backend.app.domain.billing.coordinator import LedgerOrderCoordinator
from backend.app.domain.billing.ledger_service import LedgerService

router = APIRouter(prefix="/admin", tags=["Admin - Wallet"])

WALLET_ADMIN_ROLES = [UserRole.ADMIN, UserRole.ACCOUNTANT]


async def _adjust(db: AsyncSession, request: ManualAdjustRequest, direction: AdjustmentDirection, actor: dict):
    account = await LedgerService.get_account(db, request.enrollment)
    transaction = await LedgerOrderCoordinator.manual_adjust(
        db, account, request.amount, direction, request.description, actor=actor
    )
    verb = "added to" if direction == AdjustmentDirection.CREDIT else "deducted from"
    return ManualAdjustResponse(
        message=f"{transaction.amount} {verb} {request.enrollment}",
        balance=transaction.balance_after,
        transaction=transaction,
    )


@router.post("/add-money", response_model=ManualAdjustResponse)
async def add_money(
    request: ManualAdjustRequest,
    current_user: dict = Depends(require_role(WALLET_ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Credit an account manually."""
    return await _adjust(db, request, AdjustmentDirection.CREDIT, current_user)


@router.post("/deduct-money", response_model=ManualAdjustResponse)
async def deduct_money(
    request: ManualAdjustRequest,
    current_user: dict = Depends(require_role(WALLET_ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Debit an account manually.

    Rejected with ERR_LEDGER_001 if the balance does not cover the amount.
    """
    return await _adjust(db, request, AdjustmentDirection.DEBIT, current_user)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    enrollment: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None, description="Created at or after"),
    end: Optional[datetime] = Query(None, description="Created at or before"),
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role(WALLET_ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Ledger report, newest first."""
    account_id = None
    balance = None
    if enrollment:
        account = await LedgerService.get_account(db, enrollment)
        account_id = account.id
        balance = account.balance

    transactions, total = await LedgerService.list_transactions(
        db, account_id=account_id, start=start, end=end, page=page, page_size=page_size
    )
    return TransactionListResponse(
        transactions=transactions, total=total, page=page, page_size=page_size, balance=balance
    )


@router.get("/accounts/{enrollment}/reconcile", response_model=ReconcileResponse)
async def reconcile_account(
    enrollment: str = Path(..., description="Account enrollment"),
    current_user: dict = Depends(require_role(WALLET_ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Compare the stored balance with the signed sum of the account's transactions."""
    account = await LedgerService.get_account(db, enrollment)
    result = await LedgerOrderCoordinator.reconcile(db, account)
    return ReconcileResponse(
        enrollment=result.enrollment,
        balance=result.balance,
        ledger_total=result.ledger_total,
        drift=result.drift,
        transaction_count=result.transaction_count,
        consistent=result.consistent,
    )
