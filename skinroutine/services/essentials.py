"""
Essential selector: one cleanser, one moisturizer, SPF coverage, plus an optional treatment.

Three escalating tiers, each only filling roles the previous tier left empty:

  strict     eligible products, SPF-quality checked, tier price caps preferred,
             moisturizer+SPF combo tried before separate moisturizer + sunscreen
  relaxed    the catalog minus safety / strength / sensitivity failures (skin-type tags are
             a ranking signal only here), SPF quality not required
  emergency  the catalog minus hard-safety failures, first hit per role

When a later tier finds SPF only in moisturizer+SPF combos, the combo replaces the plain
moisturizer picked earlier so sun protection is never lost to the strict tier's choice.

Picks are greedy in the order cleanser -> moisturizer/SPF -> treatment, and every pick must be
conflict-free against what has already been chosen.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from skinroutine.schemas import AdvisoryNotes, Product, Profile, Step
from skinroutine.services.budget import BudgetBounds, essential_price_cap
from skinroutine.services.categorizer import bucket_by_category, has_step, is_combo, passes_spf_quality
from skinroutine.services.conflicts import conflicts_with_any, has_self_conflict
from skinroutine.services.eligibility import (
    exact_skin_match,
    is_sensitive_profile,
    is_sensitive_safe,
    passes_strength_filter,
    safe_for_profile,
    violates_safety,
)
from skinroutine.services.routine_rules import is_treatment_candidate
from skinroutine.services.scoring import ConcernScorer

logger = logging.getLogger(__name__)

ROLE_LABELS = {
    Step.CLEANSE: "cleanser",
    Step.MOISTURIZE: "moisturizer",
    Step.PROTECT: "sunscreen",
}


def no_treatment_note(profile: Profile) -> str:
    return (
        "Note: We couldn't include a treatment product in your routine because we couldn't find one "
        f"that matches your {profile.skin_type.value} skin type and addresses your specific concerns "
        "safely. We've prioritized your core essentials (cleanser, moisturizer, and SPF) to ensure the "
        "best results without compromising on quality or safety."
    )


def missing_role_note(step: Step) -> str:
    label = ROLE_LABELS.get(step, step.value)
    return (
        f"Note: We couldn't find a suitable {label} for your profile in our catalog. "
        f"Please add a gentle {label} you already trust to complete your routine."
    )


@dataclass
class EssentialSelection:
    cleanser: Optional[Product] = None
    moisturizer: Optional[Product] = None
    protect: Optional[Product] = None
    treatment: Optional[Product] = None
    tiers_used: list[str] = field(default_factory=list)

    @property
    def essentials(self) -> list[Product]:
        picked: list[Product] = []
        for p in (self.cleanser, self.moisturizer, self.protect):
            if p is not None and all(p.id != q.id for q in picked):
                picked.append(p)
        return picked

    @property
    def products(self) -> list[Product]:
        return self.essentials + ([self.treatment] if self.treatment else [])

    def missing_roles(self) -> list[Step]:
        missing = []
        if self.cleanser is None:
            missing.append(Step.CLEANSE)
        if self.moisturizer is None:
            missing.append(Step.MOISTURIZE)
        if self.protect is None:
            missing.append(Step.PROTECT)
        return missing


class EssentialSelector:
    """Tiered essential selection for one profile."""

    def __init__(self, profile: Profile, scorer: ConcernScorer, bounds: BudgetBounds):
        self.profile = profile
        self.scorer = scorer
        self.bounds = bounds

    # ── ordering ────────────────────────────────────────────────────────────

    def _by_match_then_score(self, products: list[Product]) -> list[Product]:
        skin = self.profile.skin_type
        return sorted(
            products,
            key=lambda p: (not exact_skin_match(p, skin), -self.scorer.score(p), p.cost, p.name),
        )

    # ── picking ─────────────────────────────────────────────────────────────

    def _pick(
        self,
        candidates: list[Product],
        chosen: list[Product],
        cap: Optional[float] = None,
        accept: Optional[Callable[[Product], bool]] = None,
    ) -> Optional[Product]:
        """First candidate that is compatible with `chosen`; affordable ones first when capped."""
        compatible = [
            c for c in candidates
            if all(c.id != p.id for p in chosen)
            and (accept is None or accept(c))
            and not conflicts_with_any(c, chosen)
        ]
        if cap is not None:
            affordable = [c for c in compatible if c.cost <= cap]
            if affordable:
                return affordable[0]
        return compatible[0] if compatible else None

    def _fill(
        self,
        selection: EssentialSelection,
        pool: list[Product],
        tier: str,
        require_spf_quality: bool,
        use_caps: bool,
    ) -> None:
        buckets = bucket_by_category(pool)

        def cap(role: str) -> Optional[float]:
            return essential_price_cap(self.bounds, role) if use_caps else None

        def spf_ok(p: Product) -> bool:
            return passes_spf_quality(p) if require_spf_quality else True

        filled: list[str] = []

        if selection.cleanser is None:
            selection.cleanser = self._pick(buckets.cleanse, selection.essentials, cap("cleanse"))
            if selection.cleanser:
                filled.append(f"cleanser={selection.cleanser.name}")

        if selection.moisturizer is None and selection.protect is None:
            combo = self._pick(
                [p for p in buckets.protect if is_combo(p)],
                selection.essentials,
                cap("combo"),
                accept=spf_ok,
            )
            if combo:
                selection.moisturizer = selection.protect = combo
                filled.append(f"combo={combo.name}")

        if selection.moisturizer is None:
            plain = [p for p in buckets.moisturize if not has_step(p, Step.PROTECT)]
            pick = self._pick(plain, selection.essentials, cap("moisturize"))
            if pick is None:
                pick = self._pick(buckets.moisturize, selection.essentials, cap("moisturize"), accept=spf_ok)
            if pick:
                selection.moisturizer = pick
                if is_combo(pick) and selection.protect is None:
                    selection.protect = pick
                filled.append(f"moisturizer={pick.name}")

        if selection.protect is None:
            standalone = [p for p in buckets.protect if not is_combo(p)]
            pick = self._pick(standalone, selection.essentials, cap("protect"), accept=spf_ok)
            if pick:
                selection.protect = pick
                filled.append(f"protect={pick.name}")

        # only combos left for SPF: trade the plain moisturizer for one
        if selection.protect is None and selection.moisturizer is not None and not require_spf_quality:
            others = [p for p in selection.essentials if p.id != selection.moisturizer.id]
            combo = self._pick([p for p in buckets.protect if is_combo(p)], others)
            if combo:
                logger.info(f"Essentials ({tier}): {selection.moisturizer.name} swapped for combo {combo.name}")
                selection.moisturizer = selection.protect = combo
                filled.append(f"combo={combo.name}")

        if filled:
            selection.tiers_used.append(tier)
            logger.info(f"Essentials ({tier}): {', '.join(filled)}")

    # ── tiers ───────────────────────────────────────────────────────────────

    def _relaxed_pool(self, catalog: list[Product]) -> list[Product]:
        skin = self.profile.skin_type
        pool = [
            p for p in catalog
            if not has_self_conflict(p)
            and not violates_safety(p, self.profile)
            and passes_strength_filter(p, skin)
        ]
        if is_sensitive_profile(self.profile):
            pool = [p for p in pool if is_sensitive_safe(p)]
        return self._by_match_then_score(pool)

    def select_treatment(self, selection: EssentialSelection, eligible: list[Product], notes: AdvisoryNotes) -> None:
        chosen = selection.essentials
        for candidate in self.scorer.rank_treatments(eligible):
            if is_treatment_candidate(candidate, chosen, self.profile, self.scorer):
                selection.treatment = candidate
                logger.info(f"Treatment: {candidate.name} (score {self.scorer.treatment_score(candidate):.2f})")
                return
        logger.info("Treatment: none qualifies")
        notes.add_note(no_treatment_note(self.profile))

    def select(self, eligible: list[Product], catalog: list[Product], notes: AdvisoryNotes) -> EssentialSelection:
        selection = EssentialSelection()

        self._fill(selection, self._by_match_then_score(eligible), "strict", require_spf_quality=True, use_caps=True)

        if selection.missing_roles():
            logger.info(f"Relaxed tier for {[s.value for s in selection.missing_roles()]}")
            self._fill(selection, self._relaxed_pool(catalog), "relaxed", require_spf_quality=False, use_caps=False)

        if selection.missing_roles():
            logger.warning(f"Emergency tier for {[s.value for s in selection.missing_roles()]}")
            self._fill(
                selection, safe_for_profile(catalog, self.profile), "emergency",
                require_spf_quality=False, use_caps=False,
            )

        for step in selection.missing_roles():
            logger.warning(f"No {step.value} product available for this profile")
            notes.add_note(missing_role_note(step))

        self.select_treatment(selection, eligible, notes)
        return selection
