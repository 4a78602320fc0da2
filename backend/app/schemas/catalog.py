"""
Catalog (product) schemas.
"""

from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List


class CatalogItemUpsert(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    unit_price: Decimal = Field(..., alias="unitPrice", gt=0)
    unit_shipping: Decimal = Field(Decimal("0"), alias="unitShipping", ge=0)
    tax_rate_percent: Decimal = Field(Decimal("0"), alias="taxRatePercent", ge=0)
    weight_kg: Optional[float] = Field(None, alias="weightKg", ge=0)
    dimension: Optional[str] = Field(None, max_length=100)
    hsn: Optional[str] = Field(None, max_length=50)

    class Config:
        populate_by_name = True


class CatalogUploadRequest(BaseModel):
    products: List[CatalogItemUpsert] = Field(..., min_length=1)


class CatalogItemResponse(BaseModel):
    id: int
    sku: str
    name: str
    unit_price: Decimal
    unit_shipping: Decimal
    tax_rate_percent: Decimal
    weight_kg: Optional[float]
    dimension: Optional[str]
    hsn: Optional[str]

    class Config:
        from_attributes = True


class CatalogUploadResponse(BaseModel):
    created: int
    updated: int
