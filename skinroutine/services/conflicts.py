"""
Ingredient conflict rules and active-ingredient classification.

INGREDIENT_CONFLICTS is hand-authored reference data. It is stored one-sided (A lists B) but
applies both ways, so every lookup checks both directions. ActiveFlags is derived on demand
from the ingredient text and role tags; nothing here is persisted.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from skinroutine.errors import guarded
from skinroutine.schemas import Product, Step
from skinroutine.services.categorizer import is_essential, product_steps
from skinroutine.services.matcher import active_corpus, extract_actives, normalize_text, text_contains_term

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictRule:
    name: str
    non_compatible: tuple[str, ...]


INGREDIENT_CONFLICTS: list[ConflictRule] = [
    ConflictRule("Allantoin", ("Bisabolol", "Niacinamide", "Retinol", "Sodium Hyaluronate")),
    ConflictRule("Ascorbyl Glucoside", ("Ferulic Acid", "Niacinamide", "Sodium Hyaluronate")),
    ConflictRule(
        "Niacinamide",
        (
            "Allantoin", "Ascorbyl Glucoside", "Astaxanthin", "Azealic Acid", "Bisabolol",
            "Ceramides", "Retinol", "Sodium Hyaluronate", "Tranexamic Acid", "Vitamin C",
        ),
    ),
    ConflictRule(
        "Sodium Hyaluronate",
        ("Allantoin", "Ascorbyl Glucoside", "Bisabolol", "Ceramides", "Niacinamide", "Squalene"),
    ),
    ConflictRule("Astaxanthin", ("Niacinamide", "Squalene")),
    ConflictRule("Azealic Acid", ("Tranexamic Acid",)),
    ConflictRule("Ceramides", ("Retinol", "Sodium Hyaluronate", "Squalene")),
    ConflictRule("Glycolic Acid (AHA)", ("Salycilic Acid (BHA)",)),
    ConflictRule("Lactic Acid (AHA)", ("Salycilic Acid (BHA)",)),
    ConflictRule("Retinol", ("Peptides", "Squalene", "Allantoin", "Ceramides", "Niacinamide")),
    ConflictRule("Vitamin C", ("Tranexamic Acid",)),
]

EXFOLIATING_FUNCTIONS = ("exfoliate", "spot treatment")


# ── Active flags ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ActiveFlags:
    is_retinoid: bool = False
    is_benzoyl_peroxide: bool = False
    is_aha: bool = False
    is_bha: bool = False
    is_vitamin_c: bool = False
    is_sulfur: bool = False
    is_exfoliant: bool = False
    is_treatment: bool = False
    is_essential: bool = False

    @property
    def is_acid(self) -> bool:
        return self.is_aha or self.is_bha

    @property
    def is_primary_active(self) -> bool:
        return self.is_retinoid or self.is_benzoyl_peroxide or self.is_acid


@guarded(default=True)
def is_exfoliating(product: Product) -> bool:
    """Function-tag based: exfoliate / spot treatment, or an explicit exfoliate step."""
    if any(tag in fn for fn in product.function for tag in EXFOLIATING_FUNCTIONS):
        return True
    return Step.EXFOLIATE in product_steps(product)


def active_flags(product: Product) -> ActiveFlags:
    actives = set(extract_actives(product))
    return ActiveFlags(
        is_retinoid=bool(actives & {"retinol", "retinal", "retinoid"}),
        is_benzoyl_peroxide="benzoyl peroxide" in actives,
        is_aha=bool(actives & {"aha", "glycolic acid", "lactic acid"}),
        is_bha=bool(actives & {"bha", "salicylic acid"}),
        is_vitamin_c=bool(actives & {"vitamin c", "ascorbic acid"}),
        is_sulfur="sulfur" in actives,
        is_exfoliant=is_exfoliating(product),
        is_treatment=Step.TREAT in product_steps(product),
        is_essential=is_essential(product),
    )


# ── Conflict predicates ──────────────────────────────────────────────────────


@guarded(default=True)
def has_self_conflict(product: Product) -> bool:
    """True if the formulation itself contains a mutually non-compatible pair."""
    corpus = active_corpus(product)
    for rule in INGREDIENT_CONFLICTS:
        if not text_contains_term(corpus, rule.name):
            continue
        for other in rule.non_compatible:
            if text_contains_term(corpus, other):
                logger.debug(f"Self-conflict in {product.name}: {rule.name} + {other}")
                return True
    return False


def _table_hit(left: str, right: str) -> bool:
    for rule in INGREDIENT_CONFLICTS:
        if text_contains_term(left, rule.name) and any(
            text_contains_term(right, other) for other in rule.non_compatible
        ):
            return True
    return False


def _cannot_mix_hit(product: Product, other_corpus: str) -> bool:
    return any(text_contains_term(other_corpus, tag) for tag in product.cannot_mix_with)


def ingredient_table_conflict(a: Product, b: Product) -> bool:
    corpus_a, corpus_b = active_corpus(a), active_corpus(b)
    return (
        _table_hit(corpus_a, corpus_b)
        or _table_hit(corpus_b, corpus_a)
        or _cannot_mix_hit(a, corpus_b)
        or _cannot_mix_hit(b, corpus_a)
    )


@guarded(default=True)
def conflicts(a: Product, b: Product) -> bool:
    """Pairwise incompatibility: active-class clashes or any ingredient-table conflict.

    Benzoyl peroxide with salicylic acid is deliberately absent from the clash list.
    """
    if a.id == b.id:
        return False
    fa, fb = active_flags(a), active_flags(b)

    def clash(x: ActiveFlags, y: ActiveFlags) -> bool:
        return (
            (x.is_retinoid and y.is_benzoyl_peroxide)
            or (x.is_retinoid and y.is_acid)
            or (x.is_retinoid and y.is_vitamin_c)
            or (x.is_vitamin_c and y.is_acid)
            or (x.is_vitamin_c and y.is_benzoyl_peroxide)
            or (x.is_sulfur and (y.is_retinoid or y.is_benzoyl_peroxide or y.is_acid))
        )

    if clash(fa, fb) or clash(fb, fa):
        return True
    return ingredient_table_conflict(a, b)


def conflicts_with_any(candidate: Product, selection: Iterable[Product]) -> bool:
    return any(conflicts(candidate, p) for p in selection)


def count_incompatibilities(product: Product, others: Iterable[Product]) -> int:
    return sum(1 for o in others if o.id != product.id and conflicts(product, o))


def conflicting_pairs(products: list[Product]) -> list[tuple[Product, Product]]:
    pairs = []
    for i, a in enumerate(products):
        for b in products[i + 1:]:
            if conflicts(a, b):
                pairs.append((a, b))
    return pairs


def normalized_function_tags(product: Product) -> set[str]:
    return {normalize_text(fn) for fn in product.function if fn}
