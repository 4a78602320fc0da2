"""
Ledger-Order Coordinator (Domain Logic).

The only component that changes an account balance and an order status
in the same operation. Each public operation:

1. Validates inputs and prices outside the account lock
2. Takes the per-account lock and re-reads the balance from the row
3. Writes balance, Transaction, order status and audit entry
4. Commits once; any failure rolls the whole unit back

An HMI hold is a normal outcome, not an error.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    IllegalTransitionError,
    IncompleteProfileError,
    InsufficientBalanceError,
    ValidationError,
)
from backend.app.core.money import D, round_money
from backend.app.domain.billing.catalog import lookup_skus, to_pricing_line
from backend.app.domain.billing.ledger_service import LedgerService, ReconcileResult
from backend.app.domain.billing.pricing import PricingEngine, parse_sku_list
from backend.app.domain.orders.state_machine import apply_event
from backend.app.models.account import Account
from backend.app.models.ledger_enums import AdjustmentDirection
from backend.app.models.order import Order, OrderItem
from backend.app.models.order_enums import FulfillmentMode, OrderEvent, OrderStatus
from backend.app.models.transaction import Transaction
from backend.app.services.account_locks import account_locks
from backend.app.services.audit import AuditAction, log_event

logger = logging.getLogger("order_ledger")

PURCHASE_DESCRIPTION = "Deduct while purchasing product"
CHARGEABLE_STATUSES = (OrderStatus.NEW, OrderStatus.IN_PROGRESS)
SNAPSHOT_FIELDS = ("brand_name", "manager", "address", "state", "pincode", "country", "gst")


@dataclass
class ChargeOutcome:
    order: Order
    status: OrderStatus
    charged: bool
    balance: Decimal
    transaction: Optional[Transaction] = None

    @property
    def held(self) -> bool:
        return self.status == OrderStatus.HMI


@dataclass
class CreditOutcome:
    already_applied: bool
    balance: Decimal
    transaction: Optional[Transaction] = None


def _ensure_same_account(order: Order, account: Account) -> None:
    if order.account_id is not None and order.account_id != account.id:
        raise ValidationError(
            "Order belongs to another account",
            details={"order_id": order.order_id, "enrollment": account.enrollment},
        )


def _ensure_chargeable(order: Order) -> None:
    if order.is_priced:
        raise IllegalTransitionError(order.status, OrderEvent.FUND, reason="order is already priced")
    if order.status not in CHARGEABLE_STATUSES:
        raise IllegalTransitionError(order.status, OrderEvent.FUND, reason="order is not awaiting a charge")


def _ensure_payable(order: Order) -> None:
    if order.status != OrderStatus.HMI or not order.is_priced or order.is_billed:
        raise IllegalTransitionError(order.status, OrderEvent.FUND, reason="only held, priced orders can be paid")


async def _reload_order(db: AsyncSession, order_pk: int) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_pk).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _claim_order(db: AsyncSession, order: Order, *criteria, **values) -> None:
    """
    Conditionally write `values` to the order row.

    Another session that got to the order first makes `criteria` false,
    the update touches no row and the caller's unit is refused.
    """
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, *criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise IllegalTransitionError(order.status, OrderEvent.FUND, reason="order was charged concurrently")


class LedgerOrderCoordinator:

    @staticmethod
    async def charge_and_advance(
        db: AsyncSession,
        order: Order,
        account: Account,
        skus: Union[str, List[str], None] = None,
        actor: Optional[dict] = None,
    ) -> ChargeOutcome:
        """
        Price an unpriced order and either fund it or hold it.

        CARRIER orders are priced per SKU from `skus` (comma separated
        string or list); EASY_SHIP orders from their flat amounts.

        Raises:
            IllegalTransitionError: order already priced or not awaiting a charge
            IncompleteProfileError: account lacks address, pincode or state
            CatalogLookupFailed / InvalidPricingInput: pricing failed
        """
        _ensure_chargeable(order)
        _ensure_same_account(order, account)

        missing = account.missing_profile_fields()
        if missing:
            raise IncompleteProfileError(account.enrollment, missing)

        new_items = []
        asku = None
        if order.fulfillment_mode == FulfillmentMode.EASY_SHIP:
            final_amount = PricingEngine.price_flat(order.order_amount, order.shipping_amount)
        else:
            if isinstance(skus, (list, tuple)):
                skus = ",".join(skus)
            sku_counts = parse_sku_list(skus)
            resolved = await lookup_skus(db, sku_counts)
            final_amount = PricingEngine.price_per_sku(
                [to_pricing_line(item, quantity) for item, quantity in resolved]
            )
            new_items = [
                OrderItem(
                    sku=item.sku,
                    name=item.name,
                    unit_price=item.unit_price,
                    unit_shipping=item.unit_shipping,
                    tax_rate_percent=item.tax_rate_percent,
                    quantity=quantity,
                    hsn=item.hsn,
                    weight_kg=item.weight_kg,
                    dimension=item.dimension,
                )
                for item, quantity in resolved
            ]
            asku = ",".join(sku for sku, _ in sku_counts)

        account_id = account.id
        async with account_locks.lock_for(account_id):
            try:
                # The caller's copy may predate a charge committed by another session
                order = await _reload_order(db, order.id)
                _ensure_chargeable(order)
                await _claim_order(
                    db,
                    order,
                    Order.status.in_(CHARGEABLE_STATUSES),
                    Order.final_amount.is_(None),
                    final_amount=final_amount,
                )
                account = await LedgerService.reload(db, account_id)

                if asku and not order.asku:
                    order.asku = asku
                order.items.extend(new_items)
                order.final_amount = final_amount
                order.account_id = account.id
                order.enrollment = account.enrollment
                for name in SNAPSHOT_FIELDS:
                    setattr(order, name, getattr(account, name))

                transaction = None
                if D(account.balance) >= final_amount:
                    transaction = await LedgerService.debit(
                        db, account, final_amount, PURCHASE_DESCRIPTION, order_id=order.id
                    )

                if transaction is not None:
                    apply_event(order, OrderEvent.FUND)
                    order.billed_at = datetime.now(timezone.utc)
                    action = AuditAction.ORDER_CHARGED
                else:
                    apply_event(order, OrderEvent.HOLD)
                    action = AuditAction.ORDER_HELD

                await log_event(
                    db,
                    action,
                    actor=actor,
                    target_enrollment=account.enrollment,
                    target_order_id=order.order_id,
                    metadata={"final_amount": str(final_amount), "balance": str(account.balance)},
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Charge for order %s: %s (amount=%s, balance=%s)",
            order.order_id, order.status.value, final_amount, account.balance,
        )
        return ChargeOutcome(
            order=order,
            status=order.status,
            charged=transaction is not None,
            balance=round_money(account.balance),
            transaction=transaction,
        )

    @staticmethod
    async def retry_charge(
        db: AsyncSession,
        order: Order,
        account: Account,
        expected_amount=None,
        actor: Optional[dict] = None,
    ) -> ChargeOutcome:
        """
        Pay a held order at its stored final amount. Never re-prices.

        Insufficient balance leaves the order in HMI and is not an error.
        """
        _ensure_payable(order)
        _ensure_same_account(order, account)

        final_amount = round_money(order.final_amount)
        if expected_amount is not None and round_money(expected_amount) != final_amount:
            raise ValidationError(
                "Amount does not match the order's final amount",
                details={"final_amount": str(final_amount), "received": str(expected_amount)},
            )

        account_id = account.id
        async with account_locks.lock_for(account_id):
            try:
                order = await _reload_order(db, order.id)
                _ensure_payable(order)
                account = await LedgerService.reload(db, account_id)
                transaction = None
                if D(account.balance) >= final_amount:
                    transaction = await LedgerService.debit(
                        db, account, final_amount, PURCHASE_DESCRIPTION, order_id=order.id
                    )

                if transaction is None:
                    return ChargeOutcome(
                        order=order,
                        status=OrderStatus.HMI,
                        charged=False,
                        balance=round_money(account.balance),
                    )

                # Refused claim rolls the debit back with the rest of the unit
                billed_at = datetime.now(timezone.utc)
                await _claim_order(
                    db,
                    order,
                    Order.status == OrderStatus.HMI,
                    Order.billed_at.is_(None),
                    billed_at=billed_at,
                )
                apply_event(order, OrderEvent.FUND)
                order.billed_at = billed_at
                await log_event(
                    db,
                    AuditAction.ORDER_CHARGED,
                    actor=actor,
                    target_enrollment=account.enrollment,
                    target_order_id=order.order_id,
                    metadata={"final_amount": str(final_amount), "balance": str(account.balance), "retry": True},
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return ChargeOutcome(
            order=order,
            status=order.status,
            charged=True,
            balance=round_money(account.balance),
            transaction=transaction,
        )

    @staticmethod
    async def credit_account(
        db: AsyncSession,
        account: Account,
        amount,
        external_payment_id: str,
        description: str = "Wallet top-up",
        actor: Optional[dict] = None,
    ) -> CreditOutcome:
        """
        Idempotent credit keyed by `external_payment_id`.

        A unique-index collision from a concurrent writer is reported as
        already applied.
        """
        if not external_payment_id:
            raise ValidationError("Payment ID is required")

        account_id = account.id
        async with account_locks.lock_for(account_id):
            existing = await LedgerService.find_by_payment_id(db, external_payment_id)
            if existing is not None:
                account = await LedgerService.reload(db, account_id)
                return CreditOutcome(already_applied=True, balance=round_money(account.balance), transaction=existing)

            try:
                account = await LedgerService.reload(db, account_id)
                transaction = await LedgerService.credit(
                    db, account, amount, description, external_payment_id=external_payment_id
                )
                await log_event(
                    db,
                    AuditAction.PAYMENT_CREDITED,
                    actor=actor,
                    target_enrollment=account.enrollment,
                    metadata={"payment_id": external_payment_id, "amount": str(transaction.amount)},
                )
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info("Payment %s already applied by a concurrent writer", external_payment_id)
                account = await LedgerService.reload(db, account_id)
                existing = await LedgerService.find_by_payment_id(db, external_payment_id)
                return CreditOutcome(already_applied=True, balance=round_money(account.balance), transaction=existing)
            except Exception:
                await db.rollback()
                raise

        return CreditOutcome(already_applied=False, balance=round_money(account.balance), transaction=transaction)

    @staticmethod
    async def manual_adjust(
        db: AsyncSession,
        account: Account,
        amount,
        direction: AdjustmentDirection,
        description: Optional[str] = None,
        actor: Optional[dict] = None,
    ) -> Transaction:
        """
        Administrative credit or debit. No idempotency key.

        Raises:
            InsufficientBalanceError: debit exceeds the current balance
        """
        account_id = account.id
        async with account_locks.lock_for(account_id):
            try:
                account = await LedgerService.reload(db, account_id)
                if direction == AdjustmentDirection.CREDIT:
                    transaction = await LedgerService.credit(
                        db, account, amount, description or "Added by admin"
                    )
                    action = AuditAction.WALLET_CREDITED
                else:
                    if D(account.balance) < D(amount):
                        raise InsufficientBalanceError(account.balance, amount)
                    transaction = await LedgerService.debit(
                        db, account, amount, description or "Deducted by admin"
                    )
                    if transaction is None:
                        raise InsufficientBalanceError(account.balance, amount)
                    action = AuditAction.WALLET_DEBITED

                await log_event(
                    db,
                    action,
                    actor=actor,
                    target_enrollment=account.enrollment,
                    metadata={
                        "amount": str(transaction.amount),
                        "balance_after": str(transaction.balance_after),
                        "description": transaction.description,
                    },
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return transaction

    @staticmethod
    async def reconcile(db: AsyncSession, account: Account) -> ReconcileResult:
        return await LedgerService.reconcile(db, account)
