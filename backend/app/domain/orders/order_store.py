"""
Order Store.

Creation, lookup, listing and hard delete of orders. Status is never
written here; see the state machine.
"""

from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import DuplicateResourceError, ResourceNotFoundError, ValidationError
from backend.app.core.money import D
from backend.app.models.account import Account
from backend.app.models.order import Order
from backend.app.models.order_enums import FulfillmentMode, OrderStatus

EASY_SHIP_ONLY_FIELDS = ("order_type", "lastmile_partner", "lastmile_tracking_id", "lastmile_id_permanent")


async def create_order(
    db: AsyncSession,
    order_id: str,
    fulfillment_mode: FulfillmentMode,
    account: Optional[Account] = None,
    enrollment: Optional[str] = None,
    **fields,
) -> Order:
    """
    Create a NEW order. Mode-gated fields are validated here.

    CARRIER orders need a shipment id and accept no last-mile data;
    EASY_SHIP orders need flat order and shipping amounts.

    Raises:
        ValidationError: missing or mode-foreign fields
        DuplicateResourceError: `order_id` already exists
    """
    order_id = (order_id or "").strip()
    if not order_id:
        raise ValidationError("Order ID is required")

    if fulfillment_mode == FulfillmentMode.CARRIER:
        if not fields.get("shipment_id"):
            raise ValidationError("Shipment ID is required for carrier orders")
        foreign = [name for name in EASY_SHIP_ONLY_FIELDS if fields.get(name) is not None]
        if foreign:
            raise ValidationError("Fields not allowed for carrier orders", details={"fields": foreign})
    else:
        missing = [name for name in ("order_amount", "shipping_amount") if fields.get(name) is None]
        if missing:
            raise ValidationError("Order amount and shipping amount are required", details={"missing": missing})
        fields["order_amount"] = D(fields["order_amount"])
        fields["shipping_amount"] = D(fields["shipping_amount"])

    existing = await db.execute(select(Order.id).where(Order.order_id == order_id))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateResourceError("Order", order_id)

    order = Order(
        order_id=order_id,
        fulfillment_mode=fulfillment_mode,
        status=OrderStatus.NEW,
        account_id=account.id if account else None,
        enrollment=account.enrollment if account else enrollment,
        items=[],
        **fields,
    )
    db.add(order)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise DuplicateResourceError("Order", order_id)
    return order


async def find_order(
    db: AsyncSession,
    order_id: Optional[str] = None,
    shipment_id: Optional[str] = None,
    fresh: bool = False,
) -> Optional[Order]:
    if order_id:
        stmt = select(Order).where(Order.order_id == str(order_id))
    elif shipment_id:
        stmt = select(Order).where(Order.shipment_id == str(shipment_id))
    else:
        raise ValidationError("Order ID or Shipment ID is required")
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt.order_by(Order.id).limit(1))
    return result.scalar_one_or_none()


async def get_order(
    db: AsyncSession,
    order_id: Optional[str] = None,
    shipment_id: Optional[str] = None,
    fresh: bool = False,
) -> Order:
    """Like find_order but raises ResourceNotFoundError."""
    order = await find_order(db, order_id=order_id, shipment_id=shipment_id, fresh=fresh)
    if order is None:
        raise ResourceNotFoundError("Order", order_id or shipment_id)
    return order


async def existing_order_ids(db: AsyncSession, order_ids: List[str]) -> set:
    if not order_ids:
        return set()
    result = await db.execute(select(Order.order_id).where(Order.order_id.in_(order_ids)))
    return set(result.scalars().all())


async def list_orders(
    db: AsyncSession,
    enrollment: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    fulfillment_mode: Optional[FulfillmentMode] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Order], int]:
    """
    Paginated order listing, newest first.

    `search` matches order id, shipment id or tracking id exactly.
    """
    filters = []
    if enrollment is not None:
        filters.append(Order.enrollment == enrollment)
    if status is not None:
        filters.append(Order.status == status)
    if fulfillment_mode is not None:
        filters.append(Order.fulfillment_mode == fulfillment_mode)
    if search:
        filters.append(or_(
            Order.order_id == search,
            Order.shipment_id == search,
            Order.tracking_id == search,
        ))

    total = (await db.execute(select(func.count(Order.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Order)
        .where(*filters)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def delete_order(db: AsyncSession, order: Order) -> None:
    """
    Hard delete. Ledger rows keep their history with the order link nulled;
    no balance reversal happens.
    """
    await db.delete(order)
    await db.flush()
