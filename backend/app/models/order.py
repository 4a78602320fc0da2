"""
Order and Order Item database models.

One order entity covers both fulfillment modes; mode-specific fields
are nullable and validated by the order store.
"""

from sqlalchemy import Column, Integer, String, Numeric, Float, DateTime, ForeignKey, Enum, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.order_enums import OrderStatus, FulfillmentMode


class Order(Base):
    """
    Order model.

    `status` is written only by the order state machine.
    `final_amount` is set once when the order is priced and never
    recomputed; `billed_at` marks the moment the wallet was debited.
    """
    __tablename__ = "orders"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification
    order_id = Column(String(100), unique=True, nullable=False, index=True)
    fulfillment_mode = Column(Enum(FulfillmentMode), nullable=False, index=True)

    # Ownership
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=True, index=True)
    enrollment = Column(String(100), nullable=True, index=True)

    # Status
    status = Column(Enum(OrderStatus), default=OrderStatus.NEW, nullable=False, index=True)

    # Carrier data
    shipment_id = Column(String(100), nullable=True, index=True)
    tracking_id = Column(String(100), nullable=True, index=True)
    delivery_partner = Column(String(100), nullable=True)
    asku = Column(String(500), nullable=True)

    # EASY_SHIP only
    order_type = Column(String(50), nullable=True)
    lastmile_partner = Column(String(100), nullable=True)
    lastmile_tracking_id = Column(String(100), nullable=True)
    lastmile_id_permanent = Column(Boolean, nullable=True)

    # Pricing
    order_amount = Column(Numeric(12, 2), nullable=True)
    shipping_amount = Column(Numeric(12, 2), nullable=True)
    final_amount = Column(Numeric(12, 2), nullable=True)
    billed_at = Column(DateTime(timezone=True), nullable=True)

    # Account snapshot taken when the order is priced
    brand_name = Column(String(255), nullable=True)
    manager = Column(String(100), nullable=True)
    address = Column(String(500), nullable=True)
    state = Column(String(100), nullable=True)
    pincode = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    gst = Column(String(50), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_priced(self) -> bool:
        return self.final_amount is not None

    @property
    def is_billed(self) -> bool:
        return self.billed_at is not None

    def __repr__(self):
        return f"<Order(id={self.id}, order_id='{self.order_id}', status='{self.status.value}')>"


class OrderItem(Base):
    """
    Order line item.

    Catalog attributes are copied at add time so later catalog edits
    never change what the order was priced with.
    """
    __tablename__ = "order_items"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete="CASCADE"), nullable=False, index=True)

    sku = Column(String(100), nullable=False)
    name = Column(String(255), nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=False)
    unit_shipping = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate_percent = Column(Numeric(5, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=1)

    hsn = Column(String(50), nullable=True)
    weight_kg = Column(Float, nullable=True)
    dimension = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, sku='{self.sku}', qty={self.quantity})>"
