"""
Catalog repository: all DB access in one place.

Rows are validated into immutable Product schemas on the way out; a row that cannot be
validated is logged and skipped so one bad catalog entry never blocks a recommendation.
"""

import logging
import time
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skinroutine.config import get_settings
from skinroutine.errors import CatalogError
from skinroutine.models.db import ProductRecord
from skinroutine.schemas import Product
from skinroutine.services.premium import premium_ids

logger = logging.getLogger(__name__)


def _to_product(record: ProductRecord) -> Product:
    return Product(
        id=record.id,
        name=record.name,
        brand=record.brand,
        link=record.link,
        price=record.price,
        ingredient_list=record.ingredient_list,
        primary_actives=record.primary_actives_json,
        skin_types=record.skin_types_json,
        concerns=record.concerns_json,
        steps=record.steps_json,
        format=record.format,
        function=record.function_json,
        summary=record.summary,
        strength=record.strength_json,
        sensitive_safe=record.sensitive_safe,
        spf_quality=record.spf_quality,
        cannot_mix_with=record.cannot_mix_with_json,
    )


def _apply(record: ProductRecord, product: Product) -> None:
    data = product.model_dump(mode="json")
    record.name = data["name"]
    record.brand = data["brand"]
    record.link = data["link"]
    record.price = data["price"]
    record.ingredient_list = data["ingredient_list"]
    record.primary_actives_json = [a["name"] for a in data["primary_actives"]]
    record.skin_types_json = data["skin_types"]
    record.concerns_json = data["concerns"]
    record.steps_json = data["steps"]
    record.format = data["format"]
    record.function_json = data["function"]
    record.summary = data["summary"]
    record.strength_json = data["strength"]
    record.sensitive_safe = data["sensitive_safe"]
    record.spf_quality = data["spf_quality"]
    record.cannot_mix_with_json = data["cannot_mix_with"]


class CatalogRepository:
    """Catalog accessor with an optional in-process TTL cache."""

    def __init__(self, cache_seconds: Optional[int] = None):
        self.cache_seconds = get_settings().catalog_cache_seconds if cache_seconds is None else cache_seconds
        self._cache: Optional[list[Product]] = None
        self._cached_at = 0.0

    def invalidate(self) -> None:
        self._cache = None

    async def get_all(self, db: AsyncSession) -> list[Product]:
        if self._cache is not None and time.monotonic() - self._cached_at < self.cache_seconds:
            return list(self._cache)

        try:
            result = await db.execute(select(ProductRecord).order_by(ProductRecord.id))
            records = list(result.scalars().all())
        except Exception as e:
            logger.error(f"❌ Error reading catalog: {str(e)}")
            raise CatalogError("Catalog could not be read") from e

        products: list[Product] = []
        for record in records:
            try:
                products.append(_to_product(record))
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping malformed catalog row {record.id}: {e}")

        self._cache = products
        self._cached_at = time.monotonic()
        logger.info(f"Loaded {len(products)} catalog products")
        return list(products)

    async def upsert_many(self, db: AsyncSession, products: list[Product]) -> int:
        for product in products:
            record = await db.get(ProductRecord, product.id)
            if record is None:
                record = ProductRecord(id=product.id)
                db.add(record)
            _apply(record, product)
        await db.commit()
        self.invalidate()
        logger.info(f"Upserted {len(products)} catalog products")
        return len(products)

    async def get_premium_ids(self, db: AsyncSession) -> set[str]:
        return premium_ids(await self.get_all(db))
