"""
Order API Endpoints.

Charging, manual status actions, carrier actions and order lookup.
"""

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.db.session import get_db
from backend.app.models.enums import UserRole, STAFF_ROLES
from backend.app.models.order_enums import OrderEvent, OrderStatus, FulfillmentMode
from backend.app.schemas.order import (
    AddSkuRequest, PayOrderRequest, OrderRefRequest, StatusUpdateRequest,
    ShipmentRequest, ShipmentIdsRequest, AssignAwbRequest,
    OrderResponse, OrderListResponse, ChargeResponse, AssignAwbResponse,
    AwbResultResponse, PickupResponse,
)
from backend.app.core.guards import require_role, ownership_guard
from backend.app.domain.billing.coordinator import LedgerOrderCoordinator, ChargeOutcome
from backend.app.domain.billing.ledger_service import LedgerService
from backend.app.domain.orders import order_store
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.carrier_client import CarrierClient, get_carrier_client
from backend.app.services.order_transitions import transition_order, set_status
from backend.app.services.shipping_service import ShippingService

router = APIRouter(prefix="/orders", tags=["Orders"])

CHARGE_ROLES = [UserRole.ADMIN, UserRole.MANAGER, UserRole.DISPATCH]
DISPATCH_ROLES = [UserRole.ADMIN, UserRole.DISPATCH]


def charge_response(outcome: ChargeOutcome) -> ChargeResponse:
    if outcome.charged:
        message = f"Order charged. Status updated to {outcome.status.value}."
    else:
        message = "Insufficient balance. Order held (HMI)."
    return ChargeResponse(
        message=message,
        status=outcome.status,
        charged=outcome.charged,
        balance=outcome.balance,
        final_amount=outcome.order.final_amount,
        order=OrderResponse.model_validate(outcome.order),
    )


@router.post("/add-sku", response_model=ChargeResponse)
async def add_sku(
    request: AddSkuRequest,
    current_user: dict = Depends(require_role(CHARGE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Price a carrier order from its SKUs and charge the account.

    Returns the resulting status: funded (RTD / Schedule) or held (HMI).
    """
    account = await LedgerService.get_account(db, request.enrollment)
    order = await order_store.get_order(db, shipment_id=request.shipment_id)
    outcome = await LedgerOrderCoordinator.charge_and_advance(
        db, order, account, request.sku, actor=current_user
    )
    return charge_response(outcome)


@router.post("/pay", response_model=ChargeResponse)
async def pay_order(
    request: PayOrderRequest,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.MANAGER, UserRole.USER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Pay a held (HMI) order from the wallet at its stored amount.

    Still insufficient balance is reported as HMI, not as an error.
    """
    order = await order_store.get_order(db, order_id=request.order_id)
    enrollment = request.enrollment or order.enrollment
    ownership_guard.enforce(enrollment, current_user, "order")
    ownership_guard.enforce(order.enrollment or enrollment, current_user, "order")

    account = await LedgerService.get_account(db, enrollment)
    outcome = await LedgerOrderCoordinator.retry_charge(
        db, order, account, expected_amount=request.final_amount, actor=current_user
    )
    return charge_response(outcome)


@router.post("/archive", response_model=OrderResponse)
async def archive_order(
    request: OrderRefRequest,
    current_user: dict = Depends(require_role(CHARGE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Archive a held order."""
    order = await order_store.get_order(db, order_id=request.order_id, shipment_id=request.shipment_id)
    return await transition_order(db, order, OrderEvent.ARCHIVE, current_user)


@router.post("/unarchive", response_model=OrderResponse)
async def unarchive_order(
    request: OrderRefRequest,
    current_user: dict = Depends(require_role(CHARGE_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Move an archived order back to HMI."""
    order = await order_store.get_order(db, order_id=request.order_id, shipment_id=request.shipment_id)
    return await transition_order(db, order, OrderEvent.UNARCHIVE, current_user)


@router.patch("/mark-pna", response_model=OrderResponse)
async def mark_pna(
    request: OrderRefRequest,
    current_user: dict = Depends(require_role(DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Mark a ready order as product-not-available."""
    order = await order_store.get_order(db, order_id=request.order_id, shipment_id=request.shipment_id)
    return await transition_order(db, order, OrderEvent.MARK_UNAVAILABLE, current_user)


@router.post("/mark-available", response_model=OrderResponse)
async def mark_available(
    request: OrderRefRequest,
    current_user: dict = Depends(require_role(DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    order = await order_store.get_order(db, order_id=request.order_id, shipment_id=request.shipment_id)
    return await transition_order(db, order, OrderEvent.MARK_AVAILABLE, current_user)


@router.post("/assign-awb", response_model=AssignAwbResponse)
async def assign_awb(
    request: AssignAwbRequest,
    current_user: dict = Depends(require_role(DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_db),
    client: CarrierClient = Depends(get_carrier_client),
):
    """
    Assign AWBs for the given shipments, or for all NEW carrier orders
    without one. Per-shipment failures are reported, not raised.
    """
    results = await ShippingService.assign_awb_bulk(db, client, request.shipment_ids, actor=current_user)
    return AssignAwbResponse(
        message="AWB assignment process completed.",
        results=[AwbResultResponse(**vars(r)) for r in results],
    )


@router.post("/schedule-pickup", response_model=PickupResponse)
async def schedule_pickup(
    request: ShipmentRequest,
    current_user: dict = Depends(require_role(DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_db),
    client: CarrierClient = Depends(get_carrier_client),
):
    result = await ShippingService.schedule_pickup(db, client, request.shipment_id, actor=current_user)
    message = "Pickup scheduled successfully." if result.newly_scheduled else "Pickup already scheduled."
    return PickupResponse(
        message=f"{message} Status updated to {result.order.status.value}.",
        carrier_status=result.carrier_status,
        order=OrderResponse.model_validate(result.order),
    )


@router.post("/generate-label")
async def generate_label(
    request: ShipmentIdsRequest,
    current_user: dict = Depends(require_role(DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_db),
    client: CarrierClient = Depends(get_carrier_client),
):
    """Download labels for the shipments as one ZIP archive."""
    bundle = await ShippingService.generate_labels(db, client, request.shipment_ids, actor=current_user)
    return Response(
        content=bundle.archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": 'attachment; filename="labels.zip"',
            "X-Labels-Generated": str(len(bundle.succeeded)),
            "X-Labels-Failed": str(len(bundle.failed)),
        },
    )


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    mode: Optional[FulfillmentMode] = Query(None),
    search: Optional[str] = Query(None, description="Order, shipment or tracking id"),
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role(STAFF_ROLES + [UserRole.USER])),
    db: AsyncSession = Depends(get_db)
):
    """List orders. USER tokens only see their own account's orders."""
    orders, total = await order_store.list_orders(
        db,
        enrollment=ownership_guard.filter_by_ownership(current_user),
        status=status,
        fulfillment_mode=mode,
        search=search,
        page=page,
        page_size=page_size,
    )
    return OrderListResponse(orders=orders, total=total, page=page, page_size=page_size)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str = Path(..., description="External order ID"),
    current_user: dict = Depends(require_role(STAFF_ROLES + [UserRole.USER])),
    db: AsyncSession = Depends(get_db)
):
    order = await order_store.get_order(db, order_id=order_id)
    ownership_guard.enforce(order.enrollment, current_user, "order")
    return order


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    request: StatusUpdateRequest,
    order_id: str = Path(..., description="External order ID"),
    current_user: dict = Depends(require_role(DISPATCH_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Direct status mark (SHIPPED, PNA, RTD from SHIPPED/PNA, ...).

    Funding and holds are not reachable here; they belong to the charge flow.
    """
    order = await order_store.get_order(db, order_id=order_id)
    return await set_status(db, order, request.status, current_user)


@router.delete("/{order_id}")
async def delete_order(
    order_id: str = Path(..., description="External order ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """
    Hard delete an order.

    Ledger effects are not reversed; the order's transactions stay with
    their order link cleared.
    """
    order = await order_store.get_order(db, order_id=order_id)
    await log_event(
        db,
        AuditAction.ORDER_DELETED,
        actor=current_user,
        target_enrollment=order.enrollment,
        target_order_id=order.order_id,
        metadata={
            "status": order.status.value,
            "final_amount": str(order.final_amount) if order.final_amount is not None else None,
            "billed": order.is_billed,
        },
    )
    await order_store.delete_order(db, order)
    await db.commit()
    return {"message": f"Order {order_id} deleted"}
