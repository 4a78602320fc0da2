"""
Admin Operations API Endpoints.

Order sync on demand, dead letter queue handling and the audit trail.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
from datetime import datetime, timezone
from typing import Optional

from backend.app.db.session import get_db, get_session_factory
from backend.app.models.dlq import DeadLetterQueue, DLQStatus, OPEN_STATUSES
from backend.app.models.enums import UserRole
from backend.app.core.exceptions import AppException
from backend.app.core.guards import require_role
from backend.app.services.carrier_client import CarrierClient, get_carrier_client
from backend.app.services.order_sync import OrderSyncTask, SWEEP_TASK, INGEST_TASK, ingest_order
from backend.app.services.audit import get_audit_trail
from backend.app.schemas.account import AuditLogResponse, AuditTrailResponse

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.post("/sync-orders")
async def trigger_order_sync(
    lookback_minutes: Optional[int] = Query(None, ge=1, description="Override the sync window"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    client: CarrierClient = Depends(get_carrier_client),
):
    """Run one carrier order sync sweep now."""
    task = OrderSyncTask(session_factory, client_factory=lambda: client)
    report = await task.sweep(lookback_minutes)
    return {
        "message": "Order sync completed",
        "fetched": report.fetched,
        "created": report.created,
        "skipped": report.skipped,
        "failed": report.failed,
    }


@router.get("/dlq")
async def list_dlq_items(
    status: Optional[DLQStatus] = Query(None),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    query = select(DeadLetterQueue).order_by(DeadLetterQueue.id.desc()).limit(200)
    if status:
        query = query.where(DeadLetterQueue.status == status)
    result = await db.execute(query)
    return [
        {
            "id": item.id,
            "task_name": item.task_name,
            "source_ref": item.source_ref,
            "error_message": item.error_message,
            "status": item.status.value,
            "retry_count": item.retry_count,
            "occurrences": item.occurrences,
            "created_at": item.created_at,
            "last_retry_at": item.last_retry_at,
            "resolved_at": item.resolved_at,
        }
        for item in result.scalars().all()
    ]


@router.post("/dlq/{dlq_id}/retry")
async def retry_dlq_item(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    client: CarrierClient = Depends(get_carrier_client),
):
    """
    Re-run a failed sync task.

    Sweep failures re-run the sweep; ingest failures re-store the
    captured carrier payload.
    """
    result = await db.execute(select(DeadLetterQueue).where(DeadLetterQueue.id == dlq_id))
    item = result.scalar_one_or_none()

    if not item:
        raise HTTPException(status_code=404, detail="DLQ item not found")
    if item.status not in OPEN_STATUSES:
        raise HTTPException(status_code=409, detail=f"DLQ item already {item.status.value.lower()}")
    if item.task_name not in (SWEEP_TASK, INGEST_TASK):
        raise HTTPException(status_code=400, detail=f"No retry handler for task {item.task_name}")

    item.status = DLQStatus.RETRYING
    item.retry_count += 1
    item.last_retry_at = datetime.now(timezone.utc)
    await db.commit()

    try:
        if item.task_name == SWEEP_TASK:
            task = OrderSyncTask(session_factory, client_factory=lambda: client)
            await task.sweep((item.payload or {}).get("lookback_minutes"))
        else:
            async with session_factory() as ingest_db:
                await ingest_order(ingest_db, item.payload or {})
    except AppException as exc:
        item.status = DLQStatus.FAILED
        item.error_message = exc.message
        await db.commit()
        return {"message": f"Task {item.task_name} failed again", "status": item.status.value, "error": exc.message}

    item.status = DLQStatus.PROCESSED
    item.resolved_at = datetime.now(timezone.utc)
    await db.commit()
    return {"message": f"Task {item.task_name} processed", "status": item.status.value}


@router.post("/dlq/{dlq_id}/archive")
async def archive_dlq_item(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db),
):
    """Give up on an open item; it stays for reference but is no longer retried."""
    result = await db.execute(select(DeadLetterQueue).where(DeadLetterQueue.id == dlq_id))
    item = result.scalar_one_or_none()

    if not item:
        raise HTTPException(status_code=404, detail="DLQ item not found")
    if item.status not in OPEN_STATUSES:
        raise HTTPException(status_code=409, detail=f"DLQ item already {item.status.value.lower()}")

    item.status = DLQStatus.ARCHIVED
    item.resolved_at = datetime.now(timezone.utc)
    await db.commit()
    return {"message": "DLQ item archived", "status": item.status.value}


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    enrollment: Optional[str] = Query(None, description="Filter by account enrollment"),
    order_id: Optional[str] = Query(None, description="Filter by order ID"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Audit trail of wallet adjustments and order changes (admin-only).
    """
    logs = await get_audit_trail(
        db=db,
        target_enrollment=enrollment,
        target_order_id=order_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
