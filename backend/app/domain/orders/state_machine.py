"""
Order Status Transition Engine.

Single validated writer of `Order.status`. Callers name an explicit
event; the engine never infers one from the order's data.
"""

import logging
from typing import Dict, FrozenSet, Tuple

from backend.app.core.exceptions import IllegalTransitionError
from backend.app.models.order import Order
from backend.app.models.order_enums import FulfillmentMode, OrderEvent, OrderStatus

logger = logging.getLogger("order_ledger")

S = OrderStatus
E = OrderEvent

# event -> (allowed source statuses, target status)
# FUND has no fixed target; see funded_status().
TRANSITIONS: Dict[OrderEvent, Tuple[FrozenSet[OrderStatus], OrderStatus]] = {
    E.ASSIGN_AWB: (frozenset({S.NEW}), S.IN_PROGRESS),
    E.HOLD: (frozenset({S.NEW, S.IN_PROGRESS}), S.HMI),
    E.FUND: (frozenset({S.NEW, S.IN_PROGRESS, S.HMI}), None),
    E.ARCHIVE: (frozenset({S.HMI}), S.ARCHIVED),
    E.UNARCHIVE: (frozenset({S.ARCHIVED}), S.HMI),
    E.RETURN_ADJUST: (frozenset({S.HMI}), S.RA),
    E.MARK_UNAVAILABLE: (frozenset({S.RTD}), S.PNA),
    E.MARK_AVAILABLE: (frozenset({S.PNA}), S.RTD),
    E.PICKUP_SCHEDULED: (frozenset({S.RTD, S.SCHEDULE}), S.RECEIVED),
    E.LABEL_GENERATED: (frozenset({S.SCHEDULE, S.RECEIVED}), S.RTD),
    E.SHIP: (frozenset({S.RTD, S.SCHEDULE, S.RECEIVED}), S.SHIPPED),
    E.UNSHIP: (frozenset({S.SHIPPED}), S.RTD),
}

FUNDED_STATUSES = frozenset({S.RTD, S.SCHEDULE})

# Statuses a direct status request may target, and the event each maps to.
DIRECT_TARGETS: Dict[OrderStatus, OrderEvent] = {
    S.SHIPPED: E.SHIP,
    S.PNA: E.MARK_UNAVAILABLE,
    S.ARCHIVED: E.ARCHIVE,
    S.RA: E.RETURN_ADJUST,
}


def _build_allowed_pairs() -> FrozenSet[Tuple[OrderStatus, OrderStatus]]:
    pairs = set()
    for event, (sources, target) in TRANSITIONS.items():
        targets = FUNDED_STATUSES if event == E.FUND else {target}
        for source in sources:
            for t in targets:
                pairs.add((source, t))
    return frozenset(pairs)


ALLOWED_PAIRS = _build_allowed_pairs()


def funded_status(order: Order) -> OrderStatus:
    """
    Next status for an order whose charge just succeeded.

    A carrier order that already holds an AWB still needs its pickup
    scheduled; everything else is ready to dispatch.
    """
    if order.fulfillment_mode == FulfillmentMode.CARRIER and order.tracking_id:
        return S.SCHEDULE
    return S.RTD


def resolve_target(order: Order, event: OrderEvent) -> OrderStatus:
    """
    Validate `event` against the order's current status and return the target.

    Raises:
        IllegalTransitionError: current status is not a source for the event
    """
    sources, target = TRANSITIONS[event]
    if event == E.FUND:
        target = funded_status(order)
    if order.status not in sources:
        raise IllegalTransitionError(order.status, target or event)
    return target


def assert_transition_allowed(current: OrderStatus, target: OrderStatus) -> None:
    """Reject any (current, target) pair not derivable from the table."""
    if (current, target) not in ALLOWED_PAIRS:
        raise IllegalTransitionError(current, target)


def apply_event(order: Order, event: OrderEvent) -> OrderStatus:
    """
    Move the order by `event` and return the previous status.

    Only writes the attribute; persistence belongs to the caller's unit of work.
    """
    target = resolve_target(order, event)
    previous = order.status
    order.status = target
    logger.info(
        "Order %s: %s -> %s (%s)",
        order.order_id, previous.value, target.value, event.value,
    )
    return previous


def event_for_target(current: OrderStatus, target: OrderStatus) -> OrderEvent:
    """
    Map a direct status request to its event.

    Funding and holds carry ledger side effects and are never reachable
    this way; RTD is accepted only as unship or mark-available.
    """
    if target == S.RTD:
        if current == S.SHIPPED:
            return E.UNSHIP
        if current == S.PNA:
            return E.MARK_AVAILABLE
        raise IllegalTransitionError(current, target, reason="funding goes through the charge flow")
    if target == S.HMI and current == S.ARCHIVED:
        return E.UNARCHIVE

    event = DIRECT_TARGETS.get(target)
    if event is None:
        raise IllegalTransitionError(current, target, reason="status cannot be set directly")
    return event
