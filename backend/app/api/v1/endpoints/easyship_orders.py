"""
EasyShip Order API Endpoints.

Manually entered, flat-priced orders.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.models.order_enums import FulfillmentMode, OrderEvent
from backend.app.schemas.order import EasyShipOrderCreate, OrderRefRequest, OrderResponse, ChargeResponse
from backend.app.core.guards import require_role
from backend.app.domain.billing.coordinator import LedgerOrderCoordinator
from backend.app.domain.billing.ledger_service import LedgerService
from backend.app.domain.orders import order_store
from backend.app.services.order_transitions import transition_order
from backend.app.api.v1.endpoints.orders import charge_response

router = APIRouter(prefix="/easyshiporders", tags=["EasyShip Orders"])

EASYSHIP_ROLES = [UserRole.ADMIN, UserRole.MANAGER, UserRole.DISPATCH]


@router.post("/create", response_model=ChargeResponse, status_code=status.HTTP_201_CREATED)
async def create_easyship_order(
    request: EasyShipOrderCreate,
    current_user: dict = Depends(require_role(EASYSHIP_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a flat-priced order and charge it immediately.

    final = (order amount + shipping) plus the platform surcharge.
    The order is created funded (RTD) or held (HMI); if pricing or the
    profile check fails nothing is stored.
    """
    account = await LedgerService.get_account(db, request.enrollment)
    order = await order_store.create_order(
        db,
        request.order_id,
        FulfillmentMode.EASY_SHIP,
        account=account,
        order_amount=request.order_amount,
        shipping_amount=request.shipping_amount,
        order_type=request.order_type,
        lastmile_partner=request.lastmile_partner,
        lastmile_tracking_id=request.lastmile_tracking_id,
        lastmile_id_permanent=request.lastmile_id_permanent,
        asku=request.asku,
    )
    outcome = await LedgerOrderCoordinator.charge_and_advance(db, order, account, actor=current_user)
    return charge_response(outcome)


@router.put("/archive", response_model=OrderResponse)
async def archive_easyship_order(
    request: OrderRefRequest,
    current_user: dict = Depends(require_role(EASYSHIP_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    order = await order_store.get_order(db, order_id=request.order_id, shipment_id=request.shipment_id)
    return await transition_order(db, order, OrderEvent.ARCHIVE, current_user)


@router.put("/return-adjust", response_model=OrderResponse)
async def return_adjust_easyship_order(
    request: OrderRefRequest,
    current_user: dict = Depends(require_role(EASYSHIP_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Pull a held order aside for manual reconciliation (RA)."""
    order = await order_store.get_order(db, order_id=request.order_id, shipment_id=request.shipment_id)
    return await transition_order(db, order, OrderEvent.RETURN_ADJUST, current_user)
