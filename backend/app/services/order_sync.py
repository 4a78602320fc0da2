"""
Periodic carrier order sync.

Pulls recently created carrier orders and stores unknown ones as NEW
CARRIER orders. Runs as an explicit background task owned by the app
lifespan; failures land in the dead letter queue.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core.config import settings
from backend.app.core.exceptions import AppException
from backend.app.domain.orders.order_store import create_order, existing_order_ids
from backend.app.models.dlq import DeadLetterQueue, DLQStatus, OPEN_STATUSES
from backend.app.models.order_enums import FulfillmentMode
from backend.app.services.carrier_client import CarrierClient

logger = logging.getLogger("order_ledger")

SWEEP_TASK = "order_sync_sweep"
INGEST_TASK = "order_sync_ingest"

CARRIER_DATE_FORMATS = ("%d %b %Y, %I:%M %p", "%Y-%m-%d %H:%M:%S")


@dataclass
class SyncReport:
    fetched: int = 0
    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def parse_carrier_datetime(value) -> Optional[datetime]:
    """
    Parse a carrier timestamp into an aware UTC datetime, None if unreadable.

    Timestamps without a zone are read as UTC.
    """
    if not value:
        return None
    text = str(value)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in CARRIER_DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def map_carrier_order(raw: dict) -> dict:
    """Carrier order payload -> order store fields."""
    shipments = raw.get("shipments") or []
    shipment = shipments[0] if shipments else {}
    products = raw.get("products") or []
    asku = ", ".join(p.get("channel_sku") for p in products if p.get("channel_sku"))

    return {
        "order_id": str(raw.get("channel_order_id") or "").strip(),
        "enrollment": raw.get("brand_name") or None,
        "shipment_id": str(shipment["id"]) if shipment.get("id") else None,
        "tracking_id": shipment.get("awb") or None,
        "delivery_partner": shipment.get("courier") or None,
        "asku": asku or None,
    }


async def record_failure(
    db: AsyncSession,
    task_name: str,
    error: str,
    payload: Optional[dict],
    source_ref: Optional[str] = None,
) -> DeadLetterQueue:
    """Queue a failure, or refresh the open item already queued for the same input."""
    item = None
    if source_ref:
        item = (await db.execute(
            select(DeadLetterQueue).where(
                DeadLetterQueue.task_name == task_name,
                DeadLetterQueue.source_ref == source_ref,
                DeadLetterQueue.status.in_(OPEN_STATUSES),
            )
        )).scalars().first()

    if item is None:
        item = DeadLetterQueue(
            task_name=task_name, source_ref=source_ref, error_message=error, payload=payload, status=DLQStatus.FAILED
        )
        db.add(item)
    else:
        item.error_message = error
        item.payload = payload
        item.occurrences += 1
    await db.commit()
    return item


async def ingest_order(db: AsyncSession, raw: dict) -> Optional[str]:
    """
    Store one carrier order. Returns its order id, or None if it already existed.

    Raises:
        AppException: the payload cannot be stored
    """
    fields = map_carrier_order(raw)
    order_id = fields.pop("order_id")
    if order_id in await existing_order_ids(db, [order_id]):
        return None
    await create_order(db, order_id, FulfillmentMode.CARRIER, **fields)
    await db.commit()
    return order_id


class OrderSyncTask:
    """
    Background sweep with an explicit lifecycle.

    Usage:
        task = OrderSyncTask(AsyncSessionLocal)
        task.start()
        ...
        await task.stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client_factory: Callable[[], CarrierClient] = CarrierClient,
        interval_seconds: Optional[int] = None,
        lookback_minutes: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.interval_seconds = interval_seconds or settings.order_sync_interval_seconds
        self.lookback_minutes = lookback_minutes or settings.order_sync_lookback_minutes
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="order-sync")
        logger.info("Order sync started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Order sync stopped")

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self) -> Optional[SyncReport]:
        """One sweep; a failed sweep is logged and queued for retry instead of raised."""
        try:
            return await self.sweep()
        except AppException as exc:
            logger.error("Order sync sweep failed: %s", exc.message)
            async with self.session_factory() as db:
                await record_failure(db, SWEEP_TASK, exc.message, {"lookback_minutes": self.lookback_minutes})
            return None

    async def sweep(self, lookback_minutes: Optional[int] = None) -> SyncReport:
        lookback = lookback_minutes or self.lookback_minutes
        since = datetime.now(timezone.utc) - timedelta(minutes=lookback)

        raw_orders = await self.client_factory().fetch_orders(since)
        report = SyncReport(fetched=len(raw_orders))

        async with self.session_factory() as db:
            for raw in raw_orders:
                created_at = parse_carrier_datetime(raw.get("created_at"))
                if created_at is not None and created_at < since:
                    continue
                order_id = str(raw.get("channel_order_id") or "")
                try:
                    stored = await ingest_order(db, raw)
                except AppException as exc:
                    await db.rollback()
                    logger.warning("Could not store carrier order %s: %s", order_id, exc.message)
                    report.failed.append(order_id)
                    await record_failure(db, INGEST_TASK, exc.message, raw, source_ref=order_id or None)
                    continue
                if stored is None:
                    report.skipped.append(order_id)
                else:
                    report.created.append(stored)

        logger.info(
            "Order sync: fetched=%d created=%d skipped=%d failed=%d",
            report.fetched, len(report.created), len(report.skipped), len(report.failed),
        )
        return report
