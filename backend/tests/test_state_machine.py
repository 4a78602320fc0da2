"""
Order State Machine Tests.

Exhaustive pair validation plus event resolution.
"""

import itertools
import pytest

from backend.app.core.exceptions import IllegalTransitionError
from backend.app.domain.orders.state_machine import (
    ALLOWED_PAIRS,
    apply_event,
    assert_transition_allowed,
    event_for_target,
    funded_status,
    resolve_target,
)
from backend.app.models.order import Order
from backend.app.models.order_enums import FulfillmentMode, OrderEvent, OrderStatus

S = OrderStatus
E = OrderEvent

EXPECTED_PAIRS = {
    (S.NEW, S.IN_PROGRESS),
    (S.NEW, S.HMI), (S.IN_PROGRESS, S.HMI),
    (S.NEW, S.RTD), (S.NEW, S.SCHEDULE),
    (S.IN_PROGRESS, S.RTD), (S.IN_PROGRESS, S.SCHEDULE),
    (S.HMI, S.RTD), (S.HMI, S.SCHEDULE),
    (S.HMI, S.ARCHIVED), (S.ARCHIVED, S.HMI),
    (S.HMI, S.RA),
    (S.RTD, S.PNA), (S.PNA, S.RTD),
    (S.RTD, S.RECEIVED), (S.SCHEDULE, S.RECEIVED),
    (S.SCHEDULE, S.RTD), (S.RECEIVED, S.RTD),
    (S.RTD, S.SHIPPED), (S.SCHEDULE, S.SHIPPED), (S.RECEIVED, S.SHIPPED),
    (S.SHIPPED, S.RTD),
}


def make_order(status=S.NEW, mode=FulfillmentMode.CARRIER, tracking_id=None):
    return Order(order_id="ORD-SM", fulfillment_mode=mode, status=status, tracking_id=tracking_id)


def test_allowed_pairs_match_table():
    assert ALLOWED_PAIRS == EXPECTED_PAIRS


@pytest.mark.parametrize("current,target", list(itertools.product(S, S)))
def test_every_status_pair_is_validated(current, target):
    """Each of the 100 pairs is either in the table or rejected."""
    if (current, target) in EXPECTED_PAIRS:
        assert_transition_allowed(current, target)
    else:
        with pytest.raises(IllegalTransitionError):
            assert_transition_allowed(current, target)


def test_new_to_shipped_is_rejected_with_both_statuses():
    with pytest.raises(IllegalTransitionError) as exc_info:
        assert_transition_allowed(S.NEW, S.SHIPPED)
    assert exc_info.value.details == {"current_status": "NEW", "requested": "SHIPPED"}
    assert exc_info.value.status_code == 409


def test_funded_status_depends_on_awb():
    assert funded_status(make_order()) == S.RTD
    assert funded_status(make_order(tracking_id="AWB1")) == S.SCHEDULE
    assert funded_status(make_order(mode=FulfillmentMode.EASY_SHIP, tracking_id="X")) == S.RTD


def test_apply_event_returns_previous_status():
    order = make_order(S.HMI)
    previous = apply_event(order, E.ARCHIVE)
    assert previous == S.HMI
    assert order.status == S.ARCHIVED


def test_apply_event_rejects_wrong_source_and_leaves_status():
    order = make_order(S.NEW)
    with pytest.raises(IllegalTransitionError):
        apply_event(order, E.SHIP)
    assert order.status == S.NEW


def test_resolve_fund_target_from_in_progress():
    order = make_order(S.IN_PROGRESS, tracking_id="AWB1")
    assert resolve_target(order, E.FUND) == S.SCHEDULE


def test_unarchive_and_unship_reversals():
    archived = make_order(S.ARCHIVED)
    apply_event(archived, E.UNARCHIVE)
    assert archived.status == S.HMI

    shipped = make_order(S.SHIPPED)
    apply_event(shipped, E.UNSHIP)
    assert shipped.status == S.RTD


@pytest.mark.parametrize("current,target,event", [
    (S.RTD, S.SHIPPED, E.SHIP),
    (S.RECEIVED, S.SHIPPED, E.SHIP),
    (S.RTD, S.PNA, E.MARK_UNAVAILABLE),
    (S.PNA, S.RTD, E.MARK_AVAILABLE),
    (S.SHIPPED, S.RTD, E.UNSHIP),
    (S.HMI, S.ARCHIVED, E.ARCHIVE),
    (S.ARCHIVED, S.HMI, E.UNARCHIVE),
    (S.HMI, S.RA, E.RETURN_ADJUST),
])
def test_event_for_direct_target(current, target, event):
    assert event_for_target(current, target) == event


@pytest.mark.parametrize("current,target", [
    (S.HMI, S.RTD),
    (S.NEW, S.RTD),
    (S.NEW, S.HMI),
    (S.NEW, S.SCHEDULE),
    (S.NEW, S.IN_PROGRESS),
    (S.RTD, S.RECEIVED),
])
def test_ledger_and_carrier_moves_are_not_direct(current, target):
    """Funding, holds and carrier-driven moves never go through a direct status set."""
    with pytest.raises(IllegalTransitionError):
        event_for_target(current, target)
