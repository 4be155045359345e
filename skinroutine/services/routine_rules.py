"""
Routine shape rules: single exfoliant, one product per essential step, SPF dedup, product cap.
"""

import logging

from skinroutine.schemas import AdvisoryNotes, Product, Step, TimeCommitment
from skinroutine.services.categorizer import has_step, is_combo, is_essential, is_eye_product, product_steps
from skinroutine.services.conflicts import conflicts_with_any, is_exfoliating
from skinroutine.services.eligibility import matches_skin_type

logger = logging.getLogger(__name__)

EXFOLIANT_SWAP_NOTE = (
    "Removed exfoliating cleanser to comply with single exfoliant rule - "
    "kept exfoliating treatment for better results."
)

MAX_PRODUCTS: dict[TimeCommitment, int] = {
    TimeCommitment.FIVE_MINUTE: 3,
    TimeCommitment.TEN_MINUTE: 5,
    TimeCommitment.FIFTEEN_PLUS: 6,
}

STEP_ORDER: dict[Step, int] = {
    Step.CLEANSE: 1,
    Step.TONE: 2,
    Step.EXFOLIATE: 2,
    Step.TREAT: 2,
    Step.MOISTURIZE: 3,
    Step.PROTECT: 4,
}


def max_products(time_commitment: TimeCommitment) -> int:
    return MAX_PRODUCTS.get(time_commitment, 5)


def step_rank(product: Product) -> int:
    """Routine position: cleanse, treat, moisturize, protect. A combo sits with moisturize."""
    steps = product_steps(product)
    return min((STEP_ORDER[s] for s in steps), default=5)


def respects_exfoliation_with(selection: list[Product], candidate: Product) -> bool:
    """At most one exfoliating product across the whole routine."""
    count = sum(1 for p in selection if p.id != candidate.id and is_exfoliating(p))
    if is_exfoliating(candidate):
        count += 1
    return count <= 1


def apply_single_exfoliant_rule(products: list[Product], notes: AdvisoryNotes) -> list[Product]:
    """Keep one exfoliant. An exfoliating treatment beats an exfoliating cleanser."""
    exfoliants = [p for p in products if is_exfoliating(p)]
    if len(exfoliants) <= 1:
        return products

    drop: set[str] = set()
    cleanser = next((p for p in exfoliants if has_step(p, Step.CLEANSE)), None)
    treatment = next((p for p in exfoliants if has_step(p, Step.TREAT) and not is_essential(p)), None)
    if cleanser and treatment:
        drop.add(cleanser.id)
        notes.add_note(EXFOLIANT_SWAP_NOTE)
        logger.info(f"Dropped exfoliating cleanser {cleanser.name} in favour of {treatment.name}")

    kept_one = False
    for p in exfoliants:
        if p.id in drop:
            continue
        if kept_one:
            drop.add(p.id)
            logger.info(f"Dropped extra exfoliant {p.name}")
        kept_one = True

    return [p for p in products if p.id not in drop]


def apply_step_caps(products: list[Product]) -> list[Product]:
    """At most one product per cleanse / moisturize / protect. Earlier products win."""
    taken: set[Step] = set()
    kept: list[Product] = []
    for p in products:
        essential_steps = [s for s in product_steps(p) if s in (Step.CLEANSE, Step.MOISTURIZE, Step.PROTECT)]
        if essential_steps and any(s in taken for s in essential_steps):
            logger.debug(f"Step cap: dropping duplicate {p.name}")
            continue
        taken.update(essential_steps)
        kept.append(p)
    return kept


def dedupe_spf(products: list[Product]) -> list[Product]:
    """A combo covers SPF, so standalone sunscreens go. Otherwise keep only the first SPF."""
    combo = next((p for p in products if is_combo(p)), None)
    kept: list[Product] = []
    seen_spf = False
    for p in products:
        if has_step(p, Step.PROTECT):
            if combo is not None and p.id != combo.id:
                continue
            if seen_spf:
                continue
            seen_spf = True
        kept.append(p)
    return kept


def enforce_product_cap(products: list[Product], limit: int, rank_key) -> list[Product]:
    """Trim non-essentials (lowest `rank_key` first) until the routine fits the time budget."""
    if len(products) <= limit:
        return products
    removable = sorted((p for p in products if not is_essential(p)), key=rank_key)
    drop: set[str] = set()
    while len(products) - len(drop) > limit and removable:
        victim = removable.pop(0)
        drop.add(victim.id)
        logger.info(f"Product cap {limit}: dropped {victim.name}")
    return [p for p in products if p.id not in drop]


def is_treatment_candidate(candidate: Product, selection: list[Product], profile, scorer) -> bool:
    """A treatment worth adding: relevant, skin-matched, compatible, single-exfoliant safe.

    Eye products only qualify when the profile asks about dark circles.
    """
    if not has_step(candidate, Step.TREAT) or any(p.id == candidate.id for p in selection):
        return False
    if is_eye_product(candidate) and "dark circles" not in scorer.concerns:
        return False
    return (
        scorer.is_relevant(candidate)
        and matches_skin_type(candidate, profile.skin_type)
        and not conflicts_with_any(candidate, selection)
        and respects_exfoliation_with(selection, candidate)
    )
