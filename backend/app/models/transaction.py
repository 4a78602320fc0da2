"""
Ledger Transaction database model.

Immutable wallet ledger records.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ledger_enums import LedgerEntryType


class Transaction(Base):
    """
    Transaction model.

    One row per balance change, same amount and direction as the change.
    NO updates or deletions allowed.
    `external_payment_id` is unique and makes gateway credits idempotent.
    """
    __tablename__ = "ledger_transactions"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_transactions_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete="SET NULL"), nullable=True, index=True)

    # Entry details
    entry_type = Column(Enum(LedgerEntryType), nullable=False)  # DEBIT or CREDIT
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(255), nullable=False)
    external_payment_id = Column(String(100), unique=True, nullable=True)

    # Balance right after this entry was applied
    balance_after = Column(Numeric(12, 2), nullable=False)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    @property
    def is_credit(self) -> bool:
        return self.entry_type == LedgerEntryType.CREDIT

    @property
    def is_debit(self) -> bool:
        return self.entry_type == LedgerEntryType.DEBIT

    @property
    def signed_amount(self):
        return self.amount if self.is_credit else -self.amount

    def __repr__(self):
        return f"<Transaction(id={self.id}, type='{self.entry_type.value}', amount={self.amount})>"
