"""
Manual order status actions (archive, PNA, direct marks).

Pure status writes: no ledger side effects. Each one goes through the
state machine and leaves an audit entry in the same commit.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.orders.state_machine import apply_event, event_for_target
from backend.app.models.order import Order
from backend.app.models.order_enums import OrderEvent, OrderStatus
from backend.app.services.audit import AuditAction, log_event


async def transition_order(
    db: AsyncSession,
    order: Order,
    event: OrderEvent,
    actor: Optional[dict] = None,
) -> Order:
    previous = apply_event(order, event)
    await log_event(
        db,
        AuditAction.ORDER_STATUS_CHANGED,
        actor=actor,
        target_enrollment=order.enrollment,
        target_order_id=order.order_id,
        metadata={"from": previous.value, "to": order.status.value, "event": event.value},
    )
    await db.commit()
    return order


async def set_status(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    actor: Optional[dict] = None,
) -> Order:
    """Direct status request, resolved to the matching event first."""
    event = event_for_target(order.status, target)
    return await transition_order(db, order, event, actor)
