"""
Concern scorer: how well a product's actives address the user's concerns.

Scores come from a hand-authored effectiveness table (concern -> ingredient -> weight 3-10).
Acne is re-mapped to an "active acne" or "acne-prone" sub-table based on the profile's acne
status. Three views are exposed:

  score()            ranking score used everywhere (primary actives 90%, full list 10%)
  treatment_score()  stricter, primary actives only, for treatment-vs-treatment decisions
  relevance()        0..N admission score; treatments below the threshold are never picked
"""

import logging
from typing import Optional

from skinroutine.config import Settings, get_settings
from skinroutine.schemas import AcneStatus, Product, Profile, Step
from skinroutine.services.categorizer import is_essential, product_steps
from skinroutine.services.eligibility import age_lower_bound, is_sensitive_profile, is_sensitive_safe
from skinroutine.services.matcher import active_corpus, primary_corpus

logger = logging.getLogger(__name__)


# ── Effectiveness tables ─────────────────────────────────────────────────────

INGREDIENT_EFFECTIVENESS: dict[str, dict[str, int]] = {
    "active acne": {
        "salicylic": 10, "bha": 10, "benzoyl peroxide": 9, "retinal": 8, "azelaic": 8,
        "retinol": 7, "sulfur": 7, "glycolic": 6, "aha": 6, "hypochlorous": 5, "pha": 5, "lactic": 4,
    },
    "acne-prone": {
        "salicylic": 9, "bha": 9, "niacinamide": 8, "azelaic": 7, "retinal": 6, "retinol": 6,
        "benzoyl peroxide": 5, "zinc": 5, "sulfur": 4, "tea tree": 4,
    },
    "texture": {
        "glycolic": 10, "aha": 10, "salicylic": 9, "bha": 9, "retinal": 8, "retinol": 7,
        "lactic": 6, "azelaic": 6, "pha": 5,
    },
    "hyperpigmentation": {
        "vitamin c": 10, "ascorbic": 10, "kojic": 9, "azelaic": 9, "niacinamide": 8,
        "tranexamic": 8, "glycolic": 7, "aha": 7, "retinal": 6, "retinol": 5, "lactic": 4,
    },
    "fine lines": {
        "retinal": 10, "retinol": 9, "glycolic": 6, "aha": 6, "niacinamide": 6,
        "vitamin c": 5, "lactic": 5, "peptide": 5,
    },
    "redness": {
        "azelaic": 9, "niacinamide": 8, "allantoin": 6, "centella": 5, "zinc oxide": 5, "green tea": 4,
    },
    "pores": {
        "salicylic": 9, "bha": 9, "niacinamide": 8, "retinal": 7, "retinol": 6,
    },
    "dullness": {
        "vitamin c": 10, "ascorbic": 10, "glycolic": 7, "lactic": 7, "niacinamide": 6, "aha": 6, "pha": 4,
    },
    "dryness": {
        "ceramide": 10, "hyaluronic": 9, "squalane": 8, "glycerin": 7, "urea": 7, "panthenol": 5, "shea": 4,
    },
    "dark circles": {
        "caffeine": 9, "retinal": 8, "vitamin c": 7, "retinol": 7, "niacinamide": 6, "peptide": 6,
    },
}

CONCERN_ALIASES: dict[str, str] = {
    "breakouts": "acne",
    "blemishes": "acne",
    "acne prone": "acne-prone",
    "dark spots": "hyperpigmentation",
    "pigmentation": "hyperpigmentation",
    "uneven tone": "hyperpigmentation",
    "melasma": "hyperpigmentation",
    "wrinkles": "fine lines",
    "aging": "fine lines",
    "anti-aging": "fine lines",
    "anti aging": "fine lines",
    "large pores": "pores",
    "enlarged pores": "pores",
    "dull": "dullness",
    "dry": "dryness",
    "dehydration": "dryness",
    "rough texture": "texture",
    "uneven texture": "texture",
    "under eye": "dark circles",
}

# Words that identify a concern inside a product's own concern tags
CONCERN_TAG_KEYWORDS: dict[str, tuple[str, ...]] = {
    "active acne": ("acne", "breakout", "blemish"),
    "acne-prone": ("acne", "breakout", "blemish"),
    "texture": ("texture",),
    "hyperpigmentation": ("pigment", "dark spot", "uneven tone"),
    "fine lines": ("fine line", "wrinkle", "aging"),
    "redness": ("redness", "rosacea"),
    "pores": ("pore",),
    "dullness": ("dull", "radiance", "glow"),
    "dryness": ("dry", "dehydrat", "hydration"),
    "dark circles": ("dark circle", "under eye"),
}

ANTI_AGING_CONCERNS = {"fine lines"}
ANTI_AGING_ACTIVES = ("retinol", "retinal", "retinoid", "peptide", "vitamin c", "ascorbic")

SECONDARY_WEIGHT = 0.6
PRIMARY_TAG_BONUS = 1.0
SENSITIVE_BONUS = 0.5
ANTI_AGING_BONUS = 1.5
PREMIUM_BONUS = 0.25
ESSENTIAL_DROP_BONUS = 1000.0


def resolve_concern(concern: str, acne_status: AcneStatus = AcneStatus.NONE) -> str:
    """Map a free-form concern to its effectiveness-table key."""
    key = (concern or "").strip().lower()
    key = CONCERN_ALIASES.get(key, key)
    if key == "acne":
        return "active acne" if acne_status == AcneStatus.ACTIVE else "acne-prone"
    return key


def _best_weight(table: dict[str, int], corpus: str) -> int:
    return max((w for ing, w in table.items() if ing in corpus), default=0)


def _tagged_for(product: Product, concern_key: str) -> bool:
    keywords = CONCERN_TAG_KEYWORDS.get(concern_key, (concern_key,))
    return any(k in tag for tag in product.concerns for k in keywords)


class ConcernScorer:
    """Scores products against one profile. Results are memoized per product id."""

    def __init__(
        self,
        profile: Profile,
        premium: Optional[set[str]] = None,
        settings: Optional[Settings] = None,
    ):
        self.profile = profile
        self.premium = premium or set()
        self.settings = settings or get_settings()
        self._primary = {resolve_concern(c, profile.acne_status) for c in profile.primary_concerns}
        self._concerns: list[str] = []
        for c in profile.all_concerns:
            key = resolve_concern(c, profile.acne_status)
            if key not in self._concerns:
                self._concerns.append(key)
        self._sensitive = is_sensitive_profile(profile)
        lower_age = age_lower_bound(profile)
        self._anti_aging = (
            lower_age is not None and lower_age >= 25 and bool(ANTI_AGING_CONCERNS & set(self._concerns))
        )
        self._scores: dict[str, float] = {}
        self._treatment_scores: dict[str, float] = {}
        self._relevance: dict[str, float] = {}

    @property
    def concerns(self) -> list[str]:
        return list(self._concerns)

    def _concern_weight(self, key: str) -> float:
        return 1.0 if key in self._primary else SECONDARY_WEIGHT

    def _bonuses(self, product: Product) -> float:
        bonus = 0.0
        if self._sensitive and is_sensitive_safe(product):
            bonus += SENSITIVE_BONUS
        if self._anti_aging and any(a in active_corpus(product) for a in ANTI_AGING_ACTIVES):
            bonus += ANTI_AGING_BONUS
        if product.id in self.premium:
            bonus += PREMIUM_BONUS
        return bonus

    def score(self, product: Product) -> float:
        if product.id in self._scores:
            return self._scores[product.id]
        primary, full = primary_corpus(product), active_corpus(product)
        total = 0.0
        for key in self._concerns:
            table = INGREDIENT_EFFECTIVENESS.get(key, {})
            weighted = 0.9 * _best_weight(table, primary) + 0.1 * _best_weight(table, full)
            total += weighted * self._concern_weight(key)
            if key in self._primary and _tagged_for(product, key):
                total += PRIMARY_TAG_BONUS
        total += self._bonuses(product)
        self._scores[product.id] = total
        return total

    def treatment_score(self, product: Product) -> float:
        """Primary actives only; the full ingredient list does not count."""
        if product.id in self._treatment_scores:
            return self._treatment_scores[product.id]
        primary = primary_corpus(product)
        total = 0.0
        for key in self._concerns:
            table = INGREDIENT_EFFECTIVENESS.get(key, {})
            total += _best_weight(table, primary) * self._concern_weight(key)
            if key in self._primary and _tagged_for(product, key):
                total += PRIMARY_TAG_BONUS
        total += self._bonuses(product)
        self._treatment_scores[product.id] = total
        return total

    def relevance(self, product: Product) -> float:
        """Tag overlap plus ingredient presence, per concern."""
        if product.id in self._relevance:
            return self._relevance[product.id]
        primary, full = primary_corpus(product), active_corpus(product)
        total = 0.0
        for key in self._concerns:
            if _tagged_for(product, key):
                total += 1.0
            table = INGREDIENT_EFFECTIVENESS.get(key, {})
            if _best_weight(table, primary):
                total += 1.0
            elif _best_weight(table, full):
                total += 0.5
        self._relevance[product.id] = total
        return total

    def is_relevant(self, product: Product) -> bool:
        return self.relevance(product) >= self.settings.relevance_threshold

    def drop_score(self, product: Product) -> float:
        """Higher survives: concern fit + large essential bonus - small price penalty."""
        base = self.treatment_score(product) if Step.TREAT in product_steps(product) else self.score(product)
        if is_essential(product):
            base += ESSENTIAL_DROP_BONUS
        return base - product.cost / 1000

    def rank(self, products: list[Product]) -> list[Product]:
        """Score desc, then price asc, then name. Stable and deterministic."""
        return sorted(products, key=lambda p: (-self.score(p), p.cost, p.name))

    def rank_treatments(self, products: list[Product]) -> list[Product]:
        return sorted(products, key=lambda p: (-self.treatment_score(p), p.cost, p.name))
