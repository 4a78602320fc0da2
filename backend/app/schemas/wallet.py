"""
Wallet and ledger schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.ledger_enums import LedgerEntryType


class AddBalanceRequest(BaseModel):
    amount: Decimal


class AddBalanceResponse(BaseModel):
    payment_url: str


class VerifyPaymentRequest(BaseModel):
    payment_request_id: str = Field(..., alias="paymentRequestId", min_length=1)
    payment_id: str = Field(..., alias="paymentId", min_length=1)

    class Config:
        populate_by_name = True


class VerifyPaymentResponse(BaseModel):
    success: bool
    already_applied: bool
    message: str
    balance: Decimal


class ManualAdjustRequest(BaseModel):
    """Admin credit or debit."""
    enrollment: str = Field(..., min_length=1)
    amount: Decimal
    description: Optional[str] = Field(None, max_length=255)


class TransactionResponse(BaseModel):
    id: int
    account_id: int
    order_id: Optional[int]
    entry_type: LedgerEntryType
    amount: Decimal
    description: str
    external_payment_id: Optional[str]
    balance_after: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    total: int
    page: int
    page_size: int
    balance: Optional[Decimal] = None


class ManualAdjustResponse(BaseModel):
    message: str
    balance: Decimal
    transaction: TransactionResponse


class ReconcileResponse(BaseModel):
    enrollment: str
    balance: Decimal
    ledger_total: Decimal
    drift: Decimal
    transaction_count: int
    consistent: bool
