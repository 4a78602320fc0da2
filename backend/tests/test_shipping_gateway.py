"""
Shipping Gateway Tests.

Carrier outcomes mapped onto order events: AWB assignment, pickup
scheduling and label bundles.
"""

import io
import json
import zipfile
import pytest
import httpx
from sqlalchemy import select

from backend.app.core.exceptions import IllegalTransitionError, NotReadyForPickupError, ValidationError
from backend.app.domain.orders.order_store import get_order
from backend.app.models.audit_log import AuditLog
from backend.app.models.order_enums import OrderStatus
from backend.app.services.carrier_client import TOKEN_CACHE_KEY
from backend.app.services.shipping_service import ShippingService
from backend.tests.factories import seed_carrier_order

AWB_OK = {"awb_assign_status": 1, "response": {"data": {"awb_code": "AWB1001", "courier_name": "Delhivery"}}}


async def seed_in_status(db, status, order_id="ORD-1", shipment_id="SHIP-1", **fields):
    order = await seed_carrier_order(db, order_id, shipment_id, **fields)
    order.status = status
    await db.commit()
    return order


@pytest.mark.asyncio
async def test_assign_awb_moves_order_in_progress(db_session, carrier):
    await seed_carrier_order(db_session)
    carrier.on("POST", "/courier/assign/awb", 200, AWB_OK)

    order = await ShippingService.assign_awb(db_session, carrier.client(), "SHIP-1", actor={"sub": "ops", "role": "DISPATCH"})

    assert order.status == OrderStatus.IN_PROGRESS
    assert order.tracking_id == "AWB1001"
    assert order.delivery_partner == "Delhivery"

    sent = [r for r in carrier.requests if r.url.path.endswith("/courier/assign/awb")][0]
    assert json.loads(sent.content) == {"shipment_id": "SHIP-1"}
    assert sent.headers["Authorization"] == "Bearer carrier-token"

    entry = (await db_session.execute(select(AuditLog))).scalars().one()
    assert entry.meta_data["from"] == "NEW"
    assert entry.meta_data["to"] == "In Progress"


@pytest.mark.asyncio
async def test_assign_awb_rejected_before_calling_carrier(db_session, carrier):
    await seed_in_status(db_session, OrderStatus.RTD)
    carrier.on("POST", "/courier/assign/awb", 200, AWB_OK)

    with pytest.raises(IllegalTransitionError):
        await ShippingService.assign_awb(db_session, carrier.client(), "SHIP-1")
    assert carrier.calls("POST", "/courier/assign/awb") == 0


@pytest.mark.asyncio
async def test_bulk_awb_reports_failures_per_shipment(db_session, carrier):
    await seed_carrier_order(db_session, "ORD-1", "SHIP-1")
    await seed_carrier_order(db_session, "ORD-2", "SHIP-2")
    await seed_carrier_order(db_session, "ORD-3", "SHIP-3", tracking_id="OLD-AWB")

    def reply(request):
        if json.loads(request.content)["shipment_id"] == "SHIP-2":
            return httpx.Response(400, json={"message": "Insufficient carrier wallet"})
        return httpx.Response(200, json=AWB_OK)

    carrier.on_call("POST", "/courier/assign/awb", reply)

    results = await ShippingService.assign_awb_bulk(db_session, carrier.client())

    assert [(r.shipment_id, r.success) for r in results] == [("SHIP-1", True), ("SHIP-2", False)]
    assert "Insufficient carrier wallet" in results[1].error
    assert (await get_order(db_session, order_id="ORD-2", fresh=True)).status == OrderStatus.NEW


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_once(db_session, redis_client_session, carrier):
    await seed_carrier_order(db_session)
    await redis_client_session.set(TOKEN_CACHE_KEY, "stale-token")

    def reply(request):
        if request.headers["Authorization"] == "Bearer stale-token":
            return httpx.Response(401, json={"message": "Token has expired"})
        return httpx.Response(200, json=AWB_OK)

    carrier.on_call("POST", "/courier/assign/awb", reply)

    order = await ShippingService.assign_awb(db_session, carrier.client(), "SHIP-1")

    assert order.tracking_id == "AWB1001"
    assert carrier.calls("POST", "/auth/login") == 1
    assert await redis_client_session.get(TOKEN_CACHE_KEY) == "carrier-token"


@pytest.mark.asyncio
async def test_schedule_pickup_tolerates_existing_queue_entry(db_session, carrier):
    await seed_in_status(db_session, OrderStatus.RTD, tracking_id="AWB1001")
    carrier.on("GET", "/shipments/SHIP-1", 200, {"data": {"id": "SHIP-1", "status": 1, "awb": "AWB1001"}})
    carrier.on("POST", "/manifests/generate", 400, {"message": "Manifest already generated"})
    carrier.on("POST", "/courier/generate/pickup", 400, {"message": "Already in Pickup Queue."})

    result = await ShippingService.schedule_pickup(db_session, carrier.client(), "SHIP-1")

    assert result.order.status == OrderStatus.RECEIVED
    assert not result.newly_scheduled
    assert result.carrier_status == 1


@pytest.mark.asyncio
async def test_schedule_pickup_for_already_queued_shipment(db_session, carrier):
    await seed_in_status(db_session, OrderStatus.SCHEDULE, tracking_id="AWB1001")
    carrier.on("GET", "/shipments/SHIP-1", 200, {"data": {"status": 2, "awb": "AWB1001"}})

    result = await ShippingService.schedule_pickup(db_session, carrier.client(), "SHIP-1")

    assert result.order.status == OrderStatus.RECEIVED
    assert carrier.calls("POST", "/courier/generate/pickup") == 0


@pytest.mark.asyncio
async def test_schedule_pickup_not_ready(db_session, carrier):
    await seed_in_status(db_session, OrderStatus.RTD, tracking_id="AWB1001")
    carrier.on("GET", "/shipments/SHIP-1", 200, {"data": {"status": 6, "awb": "AWB1001"}})

    with pytest.raises(NotReadyForPickupError):
        await ShippingService.schedule_pickup(db_session, carrier.client(), "SHIP-1")
    assert (await get_order(db_session, order_id="ORD-1", fresh=True)).status == OrderStatus.RTD


@pytest.mark.asyncio
async def test_schedule_pickup_requires_awb(db_session, carrier):
    await seed_in_status(db_session, OrderStatus.RTD)
    carrier.on("GET", "/shipments/SHIP-1", 200, {"data": {"status": 1, "awb": ""}})

    with pytest.raises(ValidationError):
        await ShippingService.schedule_pickup(db_session, carrier.client(), "SHIP-1")


@pytest.mark.asyncio
async def test_label_bundle_skips_failed_shipments(db_session, carrier):
    await seed_in_status(db_session, OrderStatus.SCHEDULE, "ORD-1", "SHIP-1")
    await seed_in_status(db_session, OrderStatus.RTD, "ORD-2", "SHIP-2")

    def label(request):
        shipment_id = json.loads(request.content)["shipment_id"][0]
        return httpx.Response(200, json={"label_created": 1, "label_url": f"https://cdn.test/labels/{shipment_id}.pdf"})

    carrier.on_call("POST", "/courier/generate/label", label)
    carrier.on_call("GET", ".pdf", lambda request: httpx.Response(200, content=b"%PDF " + request.url.path.encode()))

    bundle = await ShippingService.generate_labels(db_session, carrier.client(), ["SHIP-1", "SHIP-2", "SHIP-404"])

    assert bundle.succeeded == ["SHIP-1", "SHIP-2"]
    assert [f["shipment_id"] for f in bundle.failed] == ["SHIP-404"]
    with zipfile.ZipFile(io.BytesIO(bundle.archive)) as archive:
        assert sorted(archive.namelist()) == ["SHIP-1.pdf", "SHIP-2.pdf"]
        assert archive.read("SHIP-1.pdf").startswith(b"%PDF")

    assert (await get_order(db_session, order_id="ORD-1", fresh=True)).status == OrderStatus.RTD
    assert (await get_order(db_session, order_id="ORD-2", fresh=True)).status == OrderStatus.RTD


@pytest.mark.asyncio
async def test_label_bundle_with_no_labels_fails(db_session, carrier):
    await seed_in_status(db_session, OrderStatus.HMI)

    with pytest.raises(ValidationError):
        await ShippingService.generate_labels(db_session, carrier.client(), ["SHIP-1"])
    assert carrier.calls("POST", "/courier/generate/label") == 0
