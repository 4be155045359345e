#!/usr/bin/env python3
"""
Create the catalog tables and load a JSON product catalog into them.

Usage:
    python scripts/seed_catalog.py [path/to/catalog.json]
    python scripts/seed_catalog.py --init-only      # tables only, no products
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging

from pydantic import ValidationError

from skinroutine.config import get_settings
from skinroutine.database import SessionLocal, engine, init_db
from skinroutine.errors import CatalogError
from skinroutine.repository import CatalogRepository
from skinroutine.schemas import Product

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

DEFAULT_CATALOG = Path(__file__).parent.parent / "data" / "sample_catalog.json"


def load_catalog(path: Path) -> list[Product]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read catalog file {path}: {e}") from e

    products: list[Product] = []
    for entry in raw:
        try:
            products.append(Product.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Skipping invalid product {entry.get('id')}: {e}")
    return products


async def main(path: Optional[Path]):
    """Create missing tables, then upsert the catalog at `path` (skipped when None)."""
    try:
        logger.info(f"Database URL: {get_settings().database_url}")
        await init_db()
        logger.info("✅ Tables ready")
        if path is None:
            return

        products = load_catalog(path)
        logger.info(f"Seeding {len(products)} products from {path}")
        async with SessionLocal() as db:
            await CatalogRepository(cache_seconds=0).upsert_many(db, products)
        logger.info("✅ Catalog seeded")
    except Exception as e:
        logger.error(f"❌ Error seeding catalog: {str(e)}")
        raise
    finally:
        await engine.dispose()


def _catalog_arg(args: list[str]) -> Optional[Path]:
    if not args:
        return DEFAULT_CATALOG
    if args[0] == "--init-only":
        return None
    return Path(args[0])


if __name__ == "__main__":
    asyncio.run(main(_catalog_arg(sys.argv[1:])))
