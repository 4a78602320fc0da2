"""
Ledger Store (Domain Logic).

The only code path that writes `Account.balance`. Each write is a single
conditional UPDATE paired with an appended Transaction in the caller's
unit of work; nothing here commits.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationError, ResourceNotFoundError
from backend.app.core.money import D, round_money
from backend.app.models.account import Account
from backend.app.models.transaction import Transaction
from backend.app.models.ledger_enums import LedgerEntryType


@dataclass
class ReconcileResult:
    enrollment: str
    balance: Decimal
    ledger_total: Decimal
    transaction_count: int

    @property
    def drift(self) -> Decimal:
        return self.balance - self.ledger_total

    @property
    def consistent(self) -> bool:
        return self.drift == 0


def _positive_amount(amount) -> Decimal:
    try:
        value = round_money(amount)
    except ValueError:
        raise ValidationError("Amount must be a number", details={"amount": str(amount)})
    if value <= 0:
        raise ValidationError("Amount must be greater than zero", details={"amount": str(amount)})
    return value


class LedgerService:

    @staticmethod
    async def get_account(db: AsyncSession, enrollment: str, fresh: bool = False) -> Account:
        """
        Load an account by enrollment.

        `fresh` bypasses the identity map so the balance is re-read from the row.
        """
        stmt = select(Account).where(Account.enrollment == enrollment)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        account = (await db.execute(stmt)).scalar_one_or_none()
        if account is None:
            raise ResourceNotFoundError("Account", enrollment)
        return account

    @staticmethod
    async def reload(db: AsyncSession, account_id: int) -> Account:
        result = await db.execute(
            select(Account).where(Account.id == account_id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    @staticmethod
    async def debit(
        db: AsyncSession,
        account: Account,
        amount,
        description: str,
        order_id: Optional[int] = None,
    ) -> Optional[Transaction]:
        """
        Conditionally debit the account and append the paired Transaction.

        Returns:
            The debit Transaction, or None when the row no longer holds
            enough balance (nothing is written in that case).
        """
        amount = _positive_amount(amount)

        result = await db.execute(
            update(Account)
            .where(Account.id == account.id, Account.balance >= amount)
            .values(
                balance=Account.balance - amount,
                balance_version=Account.balance_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None

        await db.refresh(account, attribute_names=["balance", "balance_version"])

        transaction = Transaction(
            account_id=account.id,
            order_id=order_id,
            entry_type=LedgerEntryType.DEBIT,
            amount=amount,
            description=description,
            balance_after=account.balance,
        )
        db.add(transaction)
        await db.flush()
        return transaction

    @staticmethod
    async def credit(
        db: AsyncSession,
        account: Account,
        amount,
        description: str,
        external_payment_id: Optional[str] = None,
    ) -> Transaction:
        """
        Increment the balance and append the paired credit Transaction.

        A duplicate `external_payment_id` surfaces as IntegrityError on flush.
        """
        amount = _positive_amount(amount)

        await db.execute(
            update(Account)
            .where(Account.id == account.id)
            .values(
                balance=Account.balance + amount,
                balance_version=Account.balance_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(account, attribute_names=["balance", "balance_version"])

        transaction = Transaction(
            account_id=account.id,
            entry_type=LedgerEntryType.CREDIT,
            amount=amount,
            description=description,
            external_payment_id=external_payment_id,
            balance_after=account.balance,
        )
        db.add(transaction)
        await db.flush()
        return transaction

    @staticmethod
    async def find_by_payment_id(db: AsyncSession, external_payment_id: str) -> Optional[Transaction]:
        result = await db.execute(
            select(Transaction).where(Transaction.external_payment_id == external_payment_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        account_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[Transaction], int]:
        """Newest first, optionally scoped to an account and a created_at window."""
        filters = []
        if account_id is not None:
            filters.append(Transaction.account_id == account_id)
        if start is not None:
            filters.append(Transaction.created_at >= start)
        if end is not None:
            filters.append(Transaction.created_at <= end)

        total = (await db.execute(select(func.count(Transaction.id)).where(*filters))).scalar_one()
        result = await db.execute(
            select(Transaction)
            .where(*filters)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def reconcile(db: AsyncSession, account: Account) -> ReconcileResult:
        """Compare the stored balance with the signed sum of the account's ledger."""
        account = await LedgerService.reload(db, account.id)
        result = await db.execute(
            select(Transaction.entry_type, Transaction.amount).where(Transaction.account_id == account.id)
        )
        total = Decimal("0")
        count = 0
        for entry_type, amount in result.all():
            count += 1
            total += D(amount) if entry_type == LedgerEntryType.CREDIT else -D(amount)

        return ReconcileResult(
            enrollment=account.enrollment,
            balance=round_money(account.balance),
            ledger_total=round_money(total),
            transaction_count=count,
        )
