"""
Failure Injection Tests.

Validates resilience against carrier outages: the circuit breaker,
orders left untouched on gateway failure, and DLQ capture of failed
sync sweeps.
"""

import pytest
import httpx
from sqlalchemy import select

from backend.app.core.exceptions import GatewayError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.domain.orders.order_store import get_order
from backend.app.models.dlq import DeadLetterQueue, DLQStatus
from backend.app.models.order_enums import OrderStatus
from backend.app.services.order_sync import OrderSyncTask, SWEEP_TASK
from backend.app.services.shipping_service import ShippingService
from backend.tests.factories import seed_carrier_order


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovers():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=0)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    # reset_timeout elapsed: one trial call is let through
    cb.last_failure_time -= 1
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_failed_trial_call_reopens_circuit():
    cb = CircuitBreaker(failure_threshold=3, reset_timeout=0)
    cb.state = "OPEN"
    cb.last_failure_time -= 1

    async def failing_func():
        raise ValueError("Boom")

    with pytest.raises(ValueError):
        await cb.call(failing_func)

    assert cb.is_open
    assert cb.failures == 1


@pytest.mark.asyncio
async def test_gateway_timeout_leaves_order_untouched(db_session, carrier):
    """A carrier timeout surfaces as a retryable error; the order stays NEW with no AWB."""
    await seed_carrier_order(db_session)

    def timeout(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    carrier.on_call("POST", "/courier/assign/awb", timeout)

    with pytest.raises(GatewayError) as exc_info:
        await ShippingService.assign_awb(db_session, carrier.client(), "SHIP-1")

    assert exc_info.value.retryable
    assert exc_info.value.status_code == 503
    order = await get_order(db_session, order_id="ORD-1", fresh=True)
    assert order.status == OrderStatus.NEW
    assert order.tracking_id is None


@pytest.mark.asyncio
async def test_carrier_rejection_keeps_vendor_message(db_session, carrier):
    await seed_carrier_order(db_session)
    carrier.on("POST", "/courier/assign/awb", 400, {"message": "Pincode not serviceable"})

    with pytest.raises(GatewayError) as exc_info:
        await ShippingService.assign_awb(db_session, carrier.client(), "SHIP-1")

    assert not exc_info.value.retryable
    assert exc_info.value.status_code == 502
    assert "Pincode not serviceable" in exc_info.value.message
    # 4xx answers are not outages
    assert carrier.breaker.failures == 0


@pytest.mark.asyncio
async def test_repeated_server_errors_open_the_circuit(db_session, carrier):
    await seed_carrier_order(db_session)
    carrier.on("POST", "/courier/assign/awb", 502, {"message": "upstream down"})
    client = carrier.client()

    for _ in range(carrier.breaker.failure_threshold):
        with pytest.raises(GatewayError):
            await ShippingService.assign_awb(db_session, client, "SHIP-1")

    attempts = carrier.calls("POST", "/courier/assign/awb")
    with pytest.raises(GatewayError) as exc_info:
        await ShippingService.assign_awb(db_session, client, "SHIP-1")

    assert "circuit open" in exc_info.value.message
    assert exc_info.value.retryable
    assert carrier.calls("POST", "/courier/assign/awb") == attempts


@pytest.mark.asyncio
async def test_failed_sweep_is_captured_in_dlq(db_session, session_factory, carrier):
    """A sync sweep that cannot reach the carrier is queued, not raised."""
    carrier.on("GET", "/orders", 503, {"message": "maintenance"})
    task = OrderSyncTask(session_factory, client_factory=carrier.client, lookback_minutes=60)

    report = await task.run_once()

    assert report is None
    items = (await db_session.execute(select(DeadLetterQueue))).scalars().all()
    assert len(items) == 1
    assert items[0].task_name == SWEEP_TASK
    assert items[0].status == DLQStatus.FAILED
    assert items[0].payload == {"lookback_minutes": 60}
    assert "maintenance" in items[0].error_message
