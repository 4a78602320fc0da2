"""
Shipping gateway adapter.

Translates carrier API outcomes into order state machine events. The
order is checked against the state machine before the carrier is
called, and its status is written only after the carrier step succeeded.
"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import AppException, NotReadyForPickupError, ValidationError
from backend.app.domain.orders.order_store import get_order
from backend.app.domain.orders.state_machine import apply_event, resolve_target
from backend.app.models.order import Order
from backend.app.models.order_enums import FulfillmentMode, OrderEvent, OrderStatus
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.carrier_client import CarrierClient, STATUS_READY_TO_SHIP, STATUS_PICKUP_QUEUED

logger = logging.getLogger("order_ledger")


@dataclass
class AwbResult:
    shipment_id: str
    success: bool
    order_id: Optional[str] = None
    tracking_id: Optional[str] = None
    delivery_partner: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PickupResult:
    order: Order
    newly_scheduled: bool
    carrier_status: Optional[int] = None


@dataclass
class LabelBundle:
    archive: bytes
    succeeded: List[str] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)


async def _record_transition(db: AsyncSession, order: Order, previous: OrderStatus, event: OrderEvent, actor=None, **extra):
    await log_event(
        db,
        AuditAction.ORDER_STATUS_CHANGED,
        actor=actor,
        target_enrollment=order.enrollment,
        target_order_id=order.order_id,
        metadata={"from": previous.value, "to": order.status.value, "event": event.value, **extra},
    )


class ShippingService:

    @staticmethod
    async def assign_awb(db: AsyncSession, client: CarrierClient, shipment_id: str, actor: Optional[dict] = None) -> Order:
        """
        Request a tracking number and move the order NEW -> In Progress.

        Carrier errors propagate as GatewayError with the order untouched.
        """
        order = await get_order(db, shipment_id=shipment_id)
        if order.fulfillment_mode != FulfillmentMode.CARRIER:
            raise ValidationError("AWB assignment applies to carrier orders only", details={"order_id": order.order_id})
        resolve_target(order, OrderEvent.ASSIGN_AWB)

        awb = await client.assign_awb(shipment_id)

        order.tracking_id = awb["awb_code"]
        order.delivery_partner = awb.get("courier_name") or order.delivery_partner
        previous = apply_event(order, OrderEvent.ASSIGN_AWB)
        await _record_transition(db, order, previous, OrderEvent.ASSIGN_AWB, actor, tracking_id=order.tracking_id)
        await db.commit()
        return order

    @staticmethod
    async def assign_awb_bulk(
        db: AsyncSession,
        client: CarrierClient,
        shipment_ids: Optional[List[str]] = None,
        actor: Optional[dict] = None,
    ) -> List[AwbResult]:
        """
        Assign AWBs to the selected shipments, or to every NEW carrier order
        without one. Failures are reported per shipment.
        """
        if not shipment_ids:
            result = await db.execute(
                select(Order.shipment_id).where(
                    Order.fulfillment_mode == FulfillmentMode.CARRIER,
                    Order.status == OrderStatus.NEW,
                    Order.tracking_id.is_(None),
                    Order.shipment_id.is_not(None),
                ).order_by(Order.id)
            )
            shipment_ids = list(result.scalars().all())

        results = []
        for shipment_id in shipment_ids:
            try:
                order = await ShippingService.assign_awb(db, client, shipment_id, actor)
            except AppException as exc:
                await db.rollback()
                logger.warning("AWB assignment failed for shipment %s: %s", shipment_id, exc.message)
                results.append(AwbResult(shipment_id=shipment_id, success=False, error=exc.message))
                continue
            results.append(AwbResult(
                shipment_id=shipment_id,
                success=True,
                order_id=order.order_id,
                tracking_id=order.tracking_id,
                delivery_partner=order.delivery_partner,
            ))
        return results

    @staticmethod
    async def schedule_pickup(db: AsyncSession, client: CarrierClient, shipment_id: str, actor: Optional[dict] = None) -> PickupResult:
        """
        Manifest and queue a pickup, then move the order to Received.

        Carrier status 1 (ready to ship) runs manifest + pickup, tolerating
        "already generated" and "already in queue". Status 2 means the
        pickup is already queued. Anything else is NotReadyForPickup.
        """
        order = await get_order(db, shipment_id=shipment_id)
        resolve_target(order, OrderEvent.PICKUP_SCHEDULED)

        shipment = await client.get_shipment(shipment_id)
        carrier_status = shipment.get("status")
        if not shipment.get("awb"):
            raise ValidationError(
                "AWB not generated. Cannot schedule pickup without AWB.",
                details={"shipment_id": shipment_id},
            )

        if carrier_status == STATUS_READY_TO_SHIP:
            await client.generate_manifest(shipment_id)
            newly_scheduled = await client.generate_pickup(shipment_id)
        elif carrier_status == STATUS_PICKUP_QUEUED:
            newly_scheduled = False
        else:
            raise NotReadyForPickupError(shipment_id, carrier_status)

        previous = apply_event(order, OrderEvent.PICKUP_SCHEDULED)
        await _record_transition(db, order, previous, OrderEvent.PICKUP_SCHEDULED, actor, carrier_status=carrier_status)
        await db.commit()
        return PickupResult(order=order, newly_scheduled=newly_scheduled, carrier_status=carrier_status)

    @staticmethod
    async def generate_labels(
        db: AsyncSession,
        client: CarrierClient,
        shipment_ids: List[str],
        actor: Optional[dict] = None,
    ) -> LabelBundle:
        """
        Download one label PDF per shipment and bundle them into a ZIP.

        Each success moves its order to RTD (orders already in RTD keep
        their status). Failed shipments are skipped and reported; if none
        succeed the call fails.
        """
        if not shipment_ids:
            raise ValidationError("At least one shipment ID is required")

        labels = []
        failed = []
        for shipment_id in shipment_ids:
            try:
                order = await get_order(db, shipment_id=shipment_id)
                needs_transition = order.status != OrderStatus.RTD
                if needs_transition:
                    resolve_target(order, OrderEvent.LABEL_GENERATED)

                label_url = await client.generate_label(shipment_id)
                pdf = await client.download(label_url)

                if needs_transition:
                    previous = apply_event(order, OrderEvent.LABEL_GENERATED)
                    await _record_transition(db, order, previous, OrderEvent.LABEL_GENERATED, actor)
                    await db.commit()
            except AppException as exc:
                await db.rollback()
                logger.warning("Label generation failed for shipment %s: %s", shipment_id, exc.message)
                failed.append({"shipment_id": shipment_id, "error": exc.message})
                continue
            labels.append((shipment_id, pdf))

        if not labels:
            raise ValidationError("No labels were downloaded", details={"failed": failed})

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for shipment_id, pdf in labels:
                archive.writestr(f"{shipment_id}.pdf", pdf)

        return LabelBundle(
            archive=buffer.getvalue(),
            succeeded=[shipment_id for shipment_id, _ in labels],
            failed=failed,
        )
