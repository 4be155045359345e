"""
Routine filter: the pipeline that turns (profile, catalog) into a routine.

Single entry point: build_routine(profile, catalog, store?, premium?, settings?)

Stage order is fixed: eligibility -> ranking -> essentials -> concern treatments -> budget ->
compatibility -> diversity -> role backfill -> final sort -> exfoliant / step / SPF caps ->
product cap -> notes. Everything except the diversity store is request-local; advisory notes
travel back in the returned Routine.
"""

import logging
from typing import Optional

from skinroutine.config import Settings, get_settings
from skinroutine.schemas import ESSENTIAL_STEPS, AdvisoryNotes, Product, Profile, Routine
from skinroutine.services.budget import BudgetBounds, BudgetManager, total_cost, within_treatment_target
from skinroutine.services.categorizer import has_step, is_essential
from skinroutine.services.compatibility import CompatibilityEnforcer
from skinroutine.services.conflicts import count_incompatibilities
from skinroutine.services.diversity import DiversityStore, apply_diversity
from skinroutine.services.eligibility import exact_skin_match, filter_eligible, is_sensitive_profile
from skinroutine.services.essentials import EssentialSelector, missing_role_note, no_treatment_note
from skinroutine.services.routine_rules import (
    apply_single_exfoliant_rule,
    apply_step_caps,
    dedupe_spf,
    enforce_product_cap,
    is_treatment_candidate,
    max_products,
    step_rank,
)
from skinroutine.services.scoring import ConcernScorer

logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────────────


def select_concern_treatments(
    products: list[Product],
    pool: list[Product],
    profile: Profile,
    scorer: ConcernScorer,
    bounds: BudgetBounds,
    limit: int,
) -> list[Product]:
    """Top up with concern-targeted treatments, as many as the budget tier allows."""
    selection = list(products)
    limit = bounds.growth_limit(len(selection), limit)
    treatments = sum(1 for p in selection if not is_essential(p))
    for candidate in scorer.rank_treatments(pool):
        if len(selection) >= limit or treatments >= bounds.strategy.max_treatments:
            break
        if is_essential(candidate):
            continue
        if not is_treatment_candidate(candidate, selection, profile, scorer):
            continue
        if not within_treatment_target(candidate, bounds, scorer):
            continue
        if total_cost(selection) + candidate.cost > bounds.ceil:
            continue
        selection.append(candidate)
        treatments += 1
        logger.info(f"Concern treatment: {candidate.name}")
    return selection


def final_sort(products: list[Product], profile: Profile, scorer: ConcernScorer) -> list[Product]:
    """Priority order: skin match, concern score, price, fewest incompatibilities, step order."""
    skin = profile.skin_type
    return sorted(
        products,
        key=lambda p: (
            not exact_skin_match(p, skin),
            -scorer.score(p),
            p.cost,
            count_incompatibilities(p, products),
            step_rank(p),
        ),
    )


def missing_roles(products: list[Product]):
    return [step for step in ESSENTIAL_STEPS if not any(has_step(p, step) for p in products)]


# ── Pipeline ────────────────────────────────────────────────────────────────


def build_routine(
    profile: Profile,
    catalog: list[Product],
    *,
    store: Optional[DiversityStore] = None,
    premium: Optional[set[str]] = None,
    settings: Optional[Settings] = None,
) -> Routine:
    settings = settings or get_settings()
    notes = AdvisoryNotes()
    scorer = ConcernScorer(profile, premium=premium, settings=settings)
    budget = BudgetManager(profile, scorer, settings)
    enforcer = CompatibilityEnforcer(profile, scorer)
    limit = max_products(profile.time_commitment)

    logger.info(
        f"Building routine: {profile.skin_type.value} skin, concerns={profile.all_concerns}, "
        f"budget=${budget.bounds.ceil:g}, catalog={len(catalog)}"
    )

    eligible = filter_eligible(catalog, profile)
    ranked = scorer.rank(eligible)

    selection = EssentialSelector(profile, scorer, budget.bounds).select(ranked, catalog, notes)
    products = selection.products

    products = select_concern_treatments(products, ranked, profile, scorer, budget.bounds, limit)
    products = budget.optimize(products, ranked, limit)
    products = enforcer.enforce(products, ranked)
    products = apply_diversity(products, ranked, profile, store, settings, scorer=scorer)

    if len(products) < 3 or missing_roles(products):
        products = enforcer.backfill_missing_roles(products, ranked)

    products = final_sort(products, profile, scorer)
    products = apply_single_exfoliant_rule(products, notes)
    if missing_roles(products):
        products = final_sort(enforcer.backfill_missing_roles(products, ranked), profile, scorer)
    products = apply_step_caps(products)
    products = dedupe_spf(products)
    products = enforce_product_cap(products, limit, rank_key=lambda p: (scorer.drop_score(p), -p.cost))
    if total_cost(products) > budget.bounds.ceil:
        products = budget.trim_to_ceiling(products, ranked)

    for step in missing_roles(products):
        notes.add_note(missing_role_note(step))
    if is_sensitive_profile(profile) and all(is_essential(p) for p in products):
        notes.add_note(no_treatment_note(profile))
    budget.add_overage_note(products, notes)

    ordered = sorted(products, key=step_rank)
    logger.info(
        f"Routine: {len(ordered)} products, ${total_cost(ordered)} "
        f"({', '.join(p.name for p in ordered)})"
    )
    return Routine(products=ordered, notes=notes.get_notes())
