"""
Catalog Lookup.

Resolves SKU codes to catalog attributes for pricing.
"""

from typing import List, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import CatalogLookupFailed
from backend.app.domain.billing.pricing import PricingLine
from backend.app.models.catalog_item import CatalogItem


async def lookup_skus(
    db: AsyncSession,
    sku_counts: Sequence[Tuple[str, int]],
) -> List[Tuple[CatalogItem, int]]:
    """
    Fetch catalog rows for every requested SKU.

    Raises:
        CatalogLookupFailed: on the first SKU (in request order) missing from the catalog
    """
    skus = [sku for sku, _ in sku_counts]
    result = await db.execute(select(CatalogItem).where(CatalogItem.sku.in_(skus)))
    by_sku = {item.sku: item for item in result.scalars().all()}

    resolved = []
    for sku, quantity in sku_counts:
        item = by_sku.get(sku)
        if item is None:
            raise CatalogLookupFailed(sku)
        resolved.append((item, quantity))
    return resolved


def to_pricing_line(item: CatalogItem, quantity: int) -> PricingLine:
    return PricingLine(
        sku=item.sku,
        unit_price=item.unit_price,
        unit_shipping=item.unit_shipping,
        tax_rate_percent=item.tax_rate_percent,
        quantity=quantity,
    )
