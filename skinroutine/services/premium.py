"""
"Best product" predicate used as a scoring tiebreaker.

A product counts as premium when it pairs a top active with a top function, or a top active
with a premium price, or a top function with several primary actives.
"""

import logging

from skinroutine.schemas import Product

logger = logging.getLogger(__name__)

TOP_ACTIVES = ("azelaic acid", "retinol", "vitamin c", "niacinamide", "salicylic acid", "hyaluronic acid")
TOP_FUNCTIONS = ("treat", "spot treatment", "exfoliate", "protect")
PREMIUM_PRICE = 18


def is_premium(product: Product) -> bool:
    try:
        has_top_active = any(
            top in active.name.lower() for active in product.primary_actives for top in TOP_ACTIVES
        )
        has_top_function = any(top in fn for fn in product.function for top in TOP_FUNCTIONS)
        has_premium_price = product.cost >= PREMIUM_PRICE
        has_multiple_actives = len(product.primary_actives) >= 2
        return (
            (has_top_active and has_top_function)
            or (has_top_active and has_premium_price)
            or (has_top_function and has_multiple_actives)
        )
    except Exception as e:
        logger.error(f"Error checking if product is premium: {e}")
        return False


def premium_ids(catalog: list[Product]) -> set[str]:
    return {p.id for p in catalog if is_premium(p)}
