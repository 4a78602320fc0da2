"""
Product Catalog API Endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.models.catalog_item import CatalogItem
from backend.app.models.enums import UserRole, STAFF_ROLES
from backend.app.schemas.catalog import CatalogUploadRequest, CatalogUploadResponse, CatalogItemResponse
from backend.app.core.guards import require_role

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("/upload", response_model=CatalogUploadResponse)
async def upload_products(
    request: CatalogUploadRequest,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.DISPATCH])),
    db: AsyncSession = Depends(get_db)
):
    """
    Insert or update catalog items by SKU.

    Already priced orders keep the attributes captured at add time.
    """
    skus = [p.sku for p in request.products]
    result = await db.execute(select(CatalogItem).where(CatalogItem.sku.in_(skus)))
    existing = {item.sku: item for item in result.scalars().all()}

    created = updated = 0
    for product in request.products:
        values = product.model_dump()
        item = existing.get(product.sku)
        if item is None:
            item = CatalogItem(**values)
            db.add(item)
            existing[product.sku] = item
            created += 1
        else:
            for name, value in values.items():
                setattr(item, name, value)
            updated += 1

    await db.commit()
    return CatalogUploadResponse(created=created, updated=updated)


@router.get("", response_model=List[CatalogItemResponse])
async def list_products(
    search: Optional[str] = Query(None, description="SKU or name"),
    current_user: dict = Depends(require_role(STAFF_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    query = select(CatalogItem).order_by(CatalogItem.sku)
    if search:
        pattern = f"%{search}%"
        query = query.where(CatalogItem.sku.ilike(pattern) | CatalogItem.name.ilike(pattern))
    result = await db.execute(query)
    return result.scalars().all()
