"""
Diversity checker: steer repeat visitors of the same profile class towards fresh products.

History lives in a caller-owned DiversityStore keyed by "<skin type>_<sensitivity>", one entry
per product id (latest position wins). The pipeline only reads and writes it under the store's
per-key lock; without a store the pipeline is fully deterministic.
"""

import logging
import threading
from contextlib import AbstractContextManager
from typing import Optional, Protocol

from skinroutine.config import Settings, get_settings
from skinroutine.schemas import ESSENTIAL_STEPS, Product, Profile
from skinroutine.services.categorizer import is_essential, product_steps
from skinroutine.services.conflicts import conflicts_with_any, normalized_function_tags
from skinroutine.services.eligibility import is_sensitive_profile
from skinroutine.services.routine_rules import is_treatment_candidate, respects_exfoliation_with
from skinroutine.services.scoring import ConcernScorer

logger = logging.getLogger(__name__)


class DiversityStore(Protocol):
    def get(self, key: str) -> list[str]: ...

    def put(self, key: str, ids: list[str]) -> None: ...

    def lock(self, key: str) -> AbstractContextManager: ...


class InMemoryDiversityStore:
    """Process-local store. One lock per key serializes read-modify-write per profile class."""

    def __init__(self) -> None:
        self._history: dict[str, list[str]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, key: str) -> list[str]:
        return list(self._history.get(key, []))

    def put(self, key: str, ids: list[str]) -> None:
        self._history[key] = list(ids)

    def lock(self, key: str) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def clear(self) -> None:
        self._history.clear()


def diversity_key(profile: Profile) -> str:
    sensitivity = "sensitive" if is_sensitive_profile(profile) else "normal"
    return f"{profile.skin_type.value}_{sensitivity}"


def trim_history(ids: list[str], settings: Settings) -> list[str]:
    if len(ids) > settings.diversity_history_max:
        return ids[-settings.diversity_history_keep:]
    return ids


def remember(history: list[str], shown: list[str], settings: Settings) -> list[str]:
    """Append `shown` to the history, keeping only the latest position of each id."""
    merged: list[str] = []
    seen: set[str] = set()
    for product_id in reversed(history + shown):
        if product_id not in seen:
            seen.add(product_id)
            merged.append(product_id)
    return trim_history(list(reversed(merged)), settings)


def _find_alternative(
    original: Product,
    pool: list[Product],
    others: list[Product],
    recent: set[str],
    excluded: set[str],
    profile: Profile,
    scorer: ConcernScorer,
) -> Optional[Product]:
    tags = normalized_function_tags(original)
    original_steps = set(product_steps(original))
    essential_steps = original_steps & set(ESSENTIAL_STEPS)
    treatment_slot = not is_essential(original)
    for candidate in pool:
        if candidate.id in recent or candidate.id in excluded:
            continue
        candidate_steps = set(product_steps(candidate))
        if tags:
            if not tags & normalized_function_tags(candidate):
                continue
        elif not original_steps & candidate_steps:
            continue
        if not essential_steps <= candidate_steps:
            continue
        if conflicts_with_any(candidate, others) or not respects_exfoliation_with(others, candidate):
            continue
        # a replacement treatment must clear the same bar as any other treatment pick
        if treatment_slot and not is_treatment_candidate(candidate, others, profile, scorer):
            continue
        return candidate
    return None


def apply_diversity(
    products: list[Product],
    pool: list[Product],
    profile: Profile,
    store: Optional[DiversityStore],
    settings: Optional[Settings] = None,
    scorer: Optional[ConcernScorer] = None,
) -> list[Product]:
    """Swap recently shown products (past the protected head) for fresh look-alikes."""
    if store is None:
        return products
    settings = settings or get_settings()
    scorer = scorer or ConcernScorer(profile, settings=settings)
    key = diversity_key(profile)

    with store.lock(key):
        history = store.get(key)
        recent = set(history)
        result = list(products)
        for index, product in enumerate(products):
            if index < settings.diversity_protected_count or product.id not in recent:
                continue
            others = [p for p in result if p.id != product.id]
            excluded = {p.id for p in result} | {p.id for p in products}
            alternative = _find_alternative(product, pool, others, recent, excluded, profile, scorer)
            if alternative is None:
                logger.debug(f"Diversity: keeping {product.name}, no fresh alternative")
                continue
            result[index] = alternative
            logger.info(f"Diversity: swapped {product.name} for {alternative.name}")

        store.put(key, remember(history, [p.id for p in result], settings))

    return result
