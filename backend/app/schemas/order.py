"""
Order Pydantic schemas.

Request bodies accept the camelCase keys used by the dashboard
(`shipmentId`, `orderId`, ...) as well as snake_case names.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.order_enums import OrderStatus, FulfillmentMode


class AddSkuRequest(BaseModel):
    """Price a carrier order from its SKUs and charge the account."""
    enrollment: str = Field(..., min_length=1)
    shipment_id: str = Field(..., alias="shipmentId", min_length=1)
    sku: str = Field(..., min_length=1, description="Comma separated SKU codes, repeats count as quantity")

    class Config:
        populate_by_name = True


class PayOrderRequest(BaseModel):
    """Pay a held (HMI) order at its stored amount."""
    order_id: str = Field(..., alias="orderId", min_length=1)
    enrollment: Optional[str] = None
    final_amount: Optional[Decimal] = Field(None, alias="finalAmount")

    class Config:
        populate_by_name = True


class OrderRefRequest(BaseModel):
    """Identify an order by order id or shipment id."""
    order_id: Optional[str] = Field(None, alias="orderId")
    shipment_id: Optional[str] = Field(None, alias="shipmentId")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def require_reference(self):
        if not self.order_id and not self.shipment_id:
            raise ValueError("orderId or shipmentId is required")
        return self


class StatusUpdateRequest(BaseModel):
    """Direct status mark (carrier-confirmed or manual)."""
    status: OrderStatus


class ShipmentRequest(BaseModel):
    shipment_id: str = Field(..., alias="shipmentId", min_length=1)

    class Config:
        populate_by_name = True


class ShipmentIdsRequest(BaseModel):
    shipment_ids: List[str] = Field(..., alias="shipmentIds", min_length=1)

    class Config:
        populate_by_name = True


class AssignAwbRequest(BaseModel):
    """Omit `shipmentIds` to assign every NEW carrier order without an AWB."""
    shipment_ids: Optional[List[str]] = Field(None, alias="shipmentIds")

    class Config:
        populate_by_name = True


class EasyShipOrderCreate(BaseModel):
    """Manually entered flat-priced order."""
    order_id: str = Field(..., alias="orderId", min_length=1, max_length=100)
    enrollment: str = Field(..., min_length=1)
    order_amount: Decimal = Field(..., alias="orderAmount")
    shipping_amount: Decimal = Field(..., alias="shippingAmount")
    order_type: Optional[str] = Field(None, alias="orderType", max_length=50)
    lastmile_partner: Optional[str] = Field(None, alias="lastmilePartner", max_length=100)
    lastmile_tracking_id: Optional[str] = Field(None, alias="lastmileTrackingId", max_length=100)
    lastmile_id_permanent: Optional[bool] = Field(None, alias="lastmileIdPermanent")
    asku: Optional[str] = Field(None, max_length=500)

    class Config:
        populate_by_name = True


class OrderItemResponse(BaseModel):
    sku: str
    name: Optional[str]
    unit_price: Decimal
    unit_shipping: Decimal
    tax_rate_percent: Decimal
    quantity: int
    hsn: Optional[str]
    weight_kg: Optional[float]
    dimension: Optional[str]

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Schema for order response."""
    id: int
    order_id: str
    fulfillment_mode: FulfillmentMode
    status: OrderStatus
    enrollment: Optional[str]
    shipment_id: Optional[str]
    tracking_id: Optional[str]
    delivery_partner: Optional[str]
    asku: Optional[str]
    order_type: Optional[str]
    lastmile_partner: Optional[str]
    lastmile_tracking_id: Optional[str]
    lastmile_id_permanent: Optional[bool]
    order_amount: Optional[Decimal]
    shipping_amount: Optional[Decimal]
    final_amount: Optional[Decimal]
    billed_at: Optional[datetime]
    brand_name: Optional[str]
    manager: Optional[str]
    state: Optional[str]
    pincode: Optional[str]
    address: Optional[str]
    gst: Optional[str]
    items: List[OrderItemResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Schema for paginated order list."""
    orders: List[OrderResponse]
    total: int
    page: int
    page_size: int


class ChargeResponse(BaseModel):
    """Result of a charge attempt: the order's resulting status, funded or held."""
    message: str
    status: OrderStatus
    charged: bool
    balance: Decimal
    final_amount: Optional[Decimal]
    order: OrderResponse


class AwbResultResponse(BaseModel):
    shipment_id: str
    success: bool
    order_id: Optional[str] = None
    tracking_id: Optional[str] = None
    delivery_partner: Optional[str] = None
    error: Optional[str] = None


class AssignAwbResponse(BaseModel):
    message: str
    results: List[AwbResultResponse]


class PickupResponse(BaseModel):
    message: str
    carrier_status: Optional[int]
    order: OrderResponse
