"""
Compatibility enforcer: make the selected set safe to use together.

1. Single primary active: essentials are protected; among non-essential treatments carrying a
   retinoid, acid or benzoyl peroxide only the best one (by drop score) survives. If several
   essentials are themselves primary actives, only the top-ranked primary of all survives.
2. Pairwise resolution: drop the loser of the first conflicting pair, rescan, repeat until no
   pair conflicts. Terminates because every pass removes one product.
3. Backfill: refill any essential role lost in 1-2 from the safe pool.
"""

import logging

from skinroutine.schemas import Product, Profile, Step
from skinroutine.services.categorizer import bucket_by_category, has_step, is_combo, is_essential, passes_spf_quality
from skinroutine.services.conflicts import active_flags, conflicts, conflicts_with_any
from skinroutine.services.eligibility import exact_skin_match
from skinroutine.services.routine_rules import is_treatment_candidate, respects_exfoliation_with
from skinroutine.services.scoring import ConcernScorer

logger = logging.getLogger(__name__)


class CompatibilityEnforcer:
    def __init__(self, profile: Profile, scorer: ConcernScorer):
        self.profile = profile
        self.scorer = scorer

    # ── single primary active ────────────────────────────────────────────────

    def enforce_single_primary_active(self, products: list[Product]) -> list[Product]:
        primaries = [p for p in products if active_flags(p).is_primary_active]
        if len(primaries) <= 1:
            return products

        essential_primaries = [p for p in primaries if is_essential(p)]
        treatment_primaries = [p for p in primaries if not is_essential(p)]

        if len(essential_primaries) <= 1:
            keep = max(treatment_primaries, key=self.scorer.drop_score)
            dropped = [p for p in treatment_primaries if p.id != keep.id]
        else:
            keep = max(
                primaries,
                key=lambda p: self.scorer.drop_score(p) + (1 if active_flags(p).is_treatment else 0),
            )
            dropped = [p for p in primaries if p.id != keep.id]

        for p in dropped:
            logger.info(f"Single primary active: dropped {p.name}, kept {keep.name}")
        dropped_ids = {p.id for p in dropped}
        return [p for p in products if p.id not in dropped_ids]

    # ── pairwise ─────────────────────────────────────────────────────────────

    def _spf_match(self, product: Product) -> bool:
        return has_step(product, Step.PROTECT) and exact_skin_match(product, self.profile.skin_type)

    def _loser(self, a: Product, b: Product) -> Product:
        a_ess, b_ess = is_essential(a), is_essential(b)
        if a_ess and not b_ess:
            return b
        if b_ess and not a_ess:
            return a
        if a_ess and b_ess:
            a_spf, b_spf = self._spf_match(a), self._spf_match(b)
            if a_spf and not b_spf:
                return b
            if b_spf and not a_spf:
                return a
        # ties keep the earlier product
        return b if self.scorer.drop_score(a) >= self.scorer.drop_score(b) else a

    def resolve_conflicts(self, products: list[Product]) -> list[Product]:
        current = list(products)
        changed = True
        while changed:
            changed = False
            for i, a in enumerate(current):
                for b in current[i + 1:]:
                    if not conflicts(a, b):
                        continue
                    loser = self._loser(a, b)
                    logger.info(f"Conflict: {a.name} x {b.name}, dropped {loser.name}")
                    current = [p for p in current if p.id != loser.id]
                    changed = True
                    break
                if changed:
                    break
        return current

    # ── backfill ─────────────────────────────────────────────────────────────

    def backfill_missing_roles(self, products: list[Product], pool: list[Product]) -> list[Product]:
        current = list(products)
        has_cleanser = any(has_step(p, Step.CLEANSE) for p in current)
        has_moisturizer = any(has_step(p, Step.MOISTURIZE) for p in current)
        has_protect = any(has_step(p, Step.PROTECT) for p in current)
        if has_cleanser and has_moisturizer and has_protect:
            return current

        skin = self.profile.skin_type
        taken = {p.id for p in current}
        ranked = sorted(
            (p for p in pool if p.id not in taken),
            key=lambda p: (not exact_skin_match(p, skin), -self.scorer.score(p), p.cost, p.name),
        )
        buckets = bucket_by_category(ranked)

        def first_compatible(candidates: list[Product], accept=None) -> Product | None:
            for c in candidates:
                if any(c.id == p.id for p in current):
                    continue
                if accept is not None and not accept(c):
                    continue
                if conflicts_with_any(c, current) or not respects_exfoliation_with(current, c):
                    continue
                return c
            return None

        if not has_cleanser:
            pick = first_compatible(buckets.cleanse)
            if pick:
                current.append(pick)
                logger.info(f"Backfill cleanser: {pick.name}")

        if not has_moisturizer:
            plain = [m for m in buckets.moisturize if not has_step(m, Step.PROTECT)]
            pick = first_compatible(plain) or first_compatible(buckets.moisturize)
            if pick:
                current.append(pick)
                logger.info(f"Backfill moisturizer: {pick.name}")

        if not any(has_step(p, Step.PROTECT) for p in current):
            standalone = [p for p in buckets.protect if not is_combo(p)]
            pick = first_compatible(standalone, lambda p: passes_spf_quality(p) and exact_skin_match(p, skin))
            combos = [p for p in buckets.protect if is_combo(p)]
            without_moisturizer = [p for p in current if not has_step(p, Step.MOISTURIZE)]

            def combo_swap(quality_only: bool) -> Product | None:
                for combo in combos:
                    if quality_only and not (passes_spf_quality(combo) and exact_skin_match(combo, skin)):
                        continue
                    if conflicts_with_any(combo, without_moisturizer):
                        continue
                    if not respects_exfoliation_with(without_moisturizer, combo):
                        continue
                    return combo
                return None

            if pick is None:
                pick = combo_swap(quality_only=True)
                if pick:
                    current = without_moisturizer
            if pick is None:
                pick = first_compatible(buckets.protect, passes_spf_quality)
            # last resort: any SPF beats none
            if pick is None:
                pick = first_compatible(standalone)
            if pick is None:
                pick = combo_swap(quality_only=False)
                if pick:
                    current = without_moisturizer
            if pick:
                current.append(pick)
                logger.info(f"Backfill SPF: {pick.name}")

        if not any(not is_essential(p) for p in current):
            for candidate in self.scorer.rank_treatments(buckets.treat):
                if not is_essential(candidate) and is_treatment_candidate(candidate, current, self.profile, self.scorer):
                    current.append(candidate)
                    logger.info(f"Backfill treatment: {candidate.name}")
                    break

        return current

    def enforce(self, products: list[Product], pool: list[Product]) -> list[Product]:
        current = self.enforce_single_primary_active(products)
        current = self.resolve_conflicts(current)
        return self.backfill_missing_roles(current, pool)
