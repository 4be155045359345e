"""
Budget manager: fit the routine between a floor and a ceiling.

ceil = min(parsed budget, hard cap), floor = ceil * 0.55. The ceiling's tier (low / mid / high)
sets how many products and treatments a routine may grow to. Over the ceiling, the most expensive
non-essential treatment is swapped for a cheaper compatible one (or dropped when nothing
cheaper fits). Under the floor, relevant compatible treatments are added while the total
stays under the ceiling. Essentials are never removed for money reasons; if they alone
overshoot, the routine is returned as-is with an advisory note.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from skinroutine.config import Settings, get_settings
from skinroutine.schemas import AdvisoryNotes, BudgetTier, Product, Profile
from skinroutine.services.categorizer import is_essential
from skinroutine.services.eligibility import exact_skin_match
from skinroutine.services.routine_rules import is_treatment_candidate
from skinroutine.services.scoring import ConcernScorer

logger = logging.getLogger(__name__)

# Share of the ceiling an essential may cost, per budget tier
ESSENTIAL_PRICE_CAPS: dict[BudgetTier, dict[str, float]] = {
    BudgetTier.LOW: {"cleanse": 0.25, "moisturize": 0.35, "protect": 0.35, "combo": 0.65},
    BudgetTier.MID: {"cleanse": 0.20, "moisturize": 0.25, "protect": 0.20, "combo": 0.45},
    BudgetTier.HIGH: {"cleanse": 0.15, "moisturize": 0.20, "protect": 0.20, "combo": 0.40},
}
ESSENTIAL_PRICE_MINIMUMS: dict[str, float] = {"cleanse": 10, "moisturize": 12, "protect": 12, "combo": 18}

HIGH_QUALITY_RELEVANCE = 3.0
SKIN_MATCH_BONUS = 2.0

_FIRST_NUMBER = re.compile(r"\d+")


@dataclass(frozen=True)
class TierStrategy:
    """How far a routine may grow past its essentials at a given budget tier."""

    name: str
    target_products: tuple[int, int]
    extra_treatments: int

    @property
    def max_treatments(self) -> int:
        # the opportunistic treatment slot plus the tier's extras
        return 1 + self.extra_treatments


TIER_STRATEGIES: dict[BudgetTier, TierStrategy] = {
    BudgetTier.LOW: TierStrategy("Essentials only", (2, 3), 0),
    BudgetTier.MID: TierStrategy("Essentials + treatment", (3, 4), 1),
    BudgetTier.HIGH: TierStrategy("Multi-treatment", (4, 6), 2),
}


@dataclass(frozen=True)
class BudgetBounds:
    ceil: float
    floor: float
    tier: BudgetTier
    treatment_target: float

    @property
    def strategy(self) -> TierStrategy:
        return TIER_STRATEGIES[self.tier]

    def growth_limit(self, current: int, time_limit: int) -> int:
        """Product count that treatment top-ups may grow to. Never below what is already chosen."""
        return min(time_limit, max(self.strategy.target_products[1], current))


def parse_budget(text: Optional[str], default: int = 100) -> int:
    """First integer in the budget string ("$80", "80-100 USD"); `default` if none."""
    match = _FIRST_NUMBER.search(text or "")
    if not match:
        return default
    value = int(match.group())
    return value if value > 0 else default


def budget_tier(ceil: float) -> BudgetTier:
    if ceil <= 70:
        return BudgetTier.LOW
    if ceil <= 150:
        return BudgetTier.MID
    return BudgetTier.HIGH


def budget_bounds(profile: Profile, settings: Optional[Settings] = None) -> BudgetBounds:
    settings = settings or get_settings()
    raw = parse_budget(profile.budget, settings.default_budget)
    ceil = float(min(raw, settings.budget_hard_cap))
    return BudgetBounds(
        ceil=ceil,
        floor=round(ceil * settings.budget_floor_ratio, 2),
        tier=budget_tier(ceil),
        treatment_target=round(ceil * settings.treatment_budget_share, 2),
    )


def essential_price_cap(bounds: BudgetBounds, role: str) -> float:
    share = ESSENTIAL_PRICE_CAPS[bounds.tier][role]
    return max(ESSENTIAL_PRICE_MINIMUMS[role], bounds.ceil * share)


def total_cost(products: list[Product]) -> float:
    return round(sum(p.cost for p in products), 2)


def is_high_quality_match(product: Product, scorer: ConcernScorer) -> bool:
    return scorer.relevance(product) >= HIGH_QUALITY_RELEVANCE


def within_treatment_target(product: Product, bounds: BudgetBounds, scorer: ConcernScorer) -> bool:
    """Treatments stay near 20% of the budget unless they are an unusually strong match."""
    return product.cost <= bounds.treatment_target or is_high_quality_match(product, scorer)


def over_budget_note(cost: float, bounds: BudgetBounds, profile: Profile) -> str:
    skin = profile.skin_type.value
    return (
        f"Note: Your personalized routine (${cost:.2f}) slightly exceeds your budget (${bounds.ceil:g}) "
        f"because we prioritized products that best match your {skin} skin type and your specific "
        "concerns. We couldn't find cheaper alternatives that would provide the same quality results "
        "while maintaining safety and effectiveness. We recommend keeping this routine for optimal "
        "results, but you can adjust your budget if needed."
    )


class BudgetManager:
    """Budget fitting for one request."""

    def __init__(self, profile: Profile, scorer: ConcernScorer, settings: Optional[Settings] = None):
        self.profile = profile
        self.scorer = scorer
        self.settings = settings or get_settings()
        self.bounds = budget_bounds(profile, self.settings)

    def _fits_with(self, candidate: Product, others: list[Product]) -> bool:
        return not is_essential(candidate) and is_treatment_candidate(candidate, others, self.profile, self.scorer)

    def _substitute_rank(self, product: Product) -> tuple:
        bonus = SKIN_MATCH_BONUS if exact_skin_match(product, self.profile.skin_type) else 0.0
        return (-(self.scorer.score(product) + bonus), product.cost, product.name)

    def trim_to_ceiling(self, products: list[Product], pool: list[Product]) -> list[Product]:
        selection = list(products)
        while total_cost(selection) > self.bounds.ceil:
            treatments = [p for p in selection if not is_essential(p)]
            if not treatments:
                break
            target = max(treatments, key=lambda p: (p.cost, p.name))
            others = [p for p in selection if p.id != target.id]
            taken = {p.id for p in selection}
            alternatives = sorted(
                (
                    c for c in pool
                    if c.id not in taken
                    and c.cost < target.cost
                    and self._fits_with(c, others)
                ),
                key=self._substitute_rank,
            )
            index = selection.index(target)
            if alternatives:
                replacement = alternatives[0]
                selection[index] = replacement
                logger.info(f"Budget: swapped {target.name} (${target.cost}) for {replacement.name} (${replacement.cost})")
            else:
                selection.pop(index)
                logger.info(f"Budget: removed {target.name} (${target.cost}), no cheaper alternative")
        return selection

    def fill_to_floor(self, products: list[Product], pool: list[Product], limit: int) -> list[Product]:
        selection = list(products)
        if total_cost(selection) >= self.bounds.floor:
            return selection
        taken = {p.id for p in selection}
        limit = self.bounds.growth_limit(len(selection), limit)
        treatments = sum(1 for p in selection if not is_essential(p))
        for candidate in self.scorer.rank(pool):
            if total_cost(selection) >= self.bounds.floor or len(selection) >= limit:
                break
            if treatments >= self.bounds.strategy.max_treatments:
                logger.info(f"Budget: {self.bounds.strategy.name} tier allows no more treatments")
                break
            if candidate.id in taken:
                continue
            if total_cost(selection) + candidate.cost > self.bounds.ceil:
                continue
            if not self._fits_with(candidate, selection):
                continue
            selection.append(candidate)
            taken.add(candidate.id)
            treatments += 1
            logger.info(f"Budget: added {candidate.name} (${candidate.cost}) to reach floor ${self.bounds.floor}")
        return selection

    def optimize(self, products: list[Product], pool: list[Product], limit: int) -> list[Product]:
        selection = self.trim_to_ceiling(products, pool)
        selection = self.fill_to_floor(selection, pool, limit)
        logger.info(
            f"Budget: ${total_cost(selection)} within [{self.bounds.floor}, {self.bounds.ceil}] "
            f"tier={self.bounds.tier.value}"
        )
        return selection

    def add_overage_note(self, products: list[Product], notes: AdvisoryNotes) -> None:
        cost = total_cost(products)
        if cost > self.bounds.ceil:
            logger.warning(f"Budget: essentials alone cost ${cost}, over ceiling ${self.bounds.ceil}")
            notes.add_note(over_budget_note(cost, self.bounds, self.profile))
