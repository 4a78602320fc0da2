"""
Catalog Item (SKU) database model.
"""

from sqlalchemy import Column, Integer, String, Numeric, Float, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class CatalogItem(Base):
    """
    Catalog item model.

    Read-only for order pricing; maintained by the product upload flow.
    Weight and dimension are carrier logistics data, not pricing inputs.
    """
    __tablename__ = "catalog_items"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    sku = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)

    # Pricing attributes
    unit_price = Column(Numeric(12, 2), nullable=False)
    unit_shipping = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate_percent = Column(Numeric(5, 2), nullable=False, default=0)

    # Logistics attributes
    weight_kg = Column(Float, nullable=True)
    dimension = Column(String(100), nullable=True)
    hsn = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<CatalogItem(sku='{self.sku}', price={self.unit_price})>"
