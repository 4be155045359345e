"""
Eligibility filter: which catalog products may be shown to this profile at all.

A product is rejected if it is self-incompatible, breaks a hard safety rule (age, pregnancy,
skin condition, medication, allergy), is tagged for an incompatible skin type, fails the
sensitive-skin heuristic for sensitive profiles, or its strength rating is out of range for
the skin type. Pure: same catalog + profile in, same list out.
"""

import logging
import re

from skinroutine.errors import guarded
from skinroutine.schemas import Product, Profile, SkinType, Step
from skinroutine.services.categorizer import is_combo
from skinroutine.services.conflicts import has_self_conflict
from skinroutine.services.matcher import active_corpus, extract_actives, text_includes_any

logger = logging.getLogger(__name__)


# ── Rule data ────────────────────────────────────────────────────────────────

RETINOID_ACTIVES = {"retinol", "retinal", "retinoid"}
ACID_ACTIVES = {"aha", "bha", "glycolic acid", "salicylic acid", "lactic acid"}
HARSH_FOR_CONDITIONS = RETINOID_ACTIVES | ACID_ACTIVES | {"alcohol", "fragrance", "benzoyl peroxide"}
HARSH_FOR_SENSITIVE = HARSH_FOR_CONDITIONS | {"sulfur"}

RETINOID_MEDICATIONS = ("tretinoin", "adapalene", "accutane", "isotretinoin")
BARRIER_CONDITIONS = ("rosacea", "eczema")

GENTLE_COUNTERBALANCE = [
    "ceramide", "centella", "panthenol", "allantoin", "colloidal oat", "avena sativa", "aloe",
    "bisabolol", "squalane", "madecassoside", "cica",
]

UNIVERSAL_SKIN_TAGS = ("all", "universal", "all skin types", "any", "unspecified")

# Profile skin type -> product skin-type tags that also suit it
SKIN_TYPE_COMPATIBILITY: dict[SkinType, tuple[str, ...]] = {
    SkinType.NORMAL: ("combination", "dry"),
    SkinType.OILY: ("combination",),
    SkinType.DRY: ("normal", "sensitive"),
    SkinType.COMBINATION: ("oily", "normal"),
    SkinType.SENSITIVE: ("dry", "normal"),
}

# (skin type, role) -> inclusive allowed strength range
STRENGTH_RANGES: dict[tuple[SkinType, Step], tuple[int, int]] = {
    (SkinType.OILY, Step.CLEANSE): (2, 4),
    (SkinType.DRY, Step.CLEANSE): (1, 2),
    (SkinType.COMBINATION, Step.CLEANSE): (1, 2),
    (SkinType.OILY, Step.MOISTURIZE): (1, 3),
    (SkinType.DRY, Step.MOISTURIZE): (2, 4),
    (SkinType.COMBINATION, Step.MOISTURIZE): (1, 4),
    (SkinType.OILY, Step.TREAT): (2, 4),
    (SkinType.DRY, Step.TREAT): (1, 4),
    (SkinType.COMBINATION, Step.TREAT): (2, 4),
}

_AGE_LOWER = re.compile(r"(\d{1,3})")


# ── Profile helpers ──────────────────────────────────────────────────────────


def age_lower_bound(profile: Profile) -> int | None:
    match = _AGE_LOWER.search(profile.age or "")
    return int(match.group(1)) if match else None


def is_under_25(profile: Profile) -> bool:
    lower = age_lower_bound(profile)
    return lower is not None and lower < 25


def is_sensitive_profile(profile: Profile) -> bool:
    return profile.sensitive or profile.skin_type == SkinType.SENSITIVE


def is_pregnant(profile: Profile) -> bool:
    health = profile.health
    return bool(
        health.is_pregnant
        or health.is_nursing
        or any("pregnan" in c for c in health.conditions)
    )


def _mentions(items: list[str], needles) -> bool:
    return any(n in item for item in items for n in needles)


# ── Predicates ───────────────────────────────────────────────────────────────


@guarded(default=True)
def violates_safety(product: Product, profile: Profile) -> bool:
    """Hard safety rules. Fails closed: an error means the product is treated as unsafe."""
    actives = set(extract_actives(product))
    has_retinoid = bool(actives & RETINOID_ACTIVES)
    health = profile.health

    if has_retinoid and (is_under_25(profile) or is_pregnant(profile)):
        return True

    if _mentions(health.conditions, BARRIER_CONDITIONS) and actives & HARSH_FOR_CONDITIONS:
        return True

    if _mentions(health.medications, RETINOID_MEDICATIONS) and (has_retinoid or actives & ACID_ACTIVES):
        return True
    if _mentions(health.medications, ("benzoyl peroxide",)) and "benzoyl peroxide" in actives:
        return True
    if _mentions(health.medications, ("clindamycin",)) and "sulfur" in actives:
        return True

    for allergen in health.allergies:
        if text_includes_any(product.primary_actives_text, [allergen]) or text_includes_any(
            product.ingredient_list, [allergen]
        ):
            return True

    return False


@guarded(default=True)
def matches_skin_type(product: Product, skin_type: SkinType) -> bool:
    """Exact, compatible-pair or universal tag match. Untagged products pass."""
    tags = product.skin_types
    if not tags:
        return True
    wanted = skin_type.value
    if any(wanted in tag for tag in tags):
        return True
    if any(tag.strip() in UNIVERSAL_SKIN_TAGS for tag in tags):
        return True
    compatible = SKIN_TYPE_COMPATIBILITY.get(skin_type, ())
    return any(c in tag for tag in tags for c in compatible)


def exact_skin_match(product: Product, skin_type: SkinType) -> bool:
    """Stricter ranking signal: tagged for exactly this skin type."""
    return any(skin_type.value in tag for tag in product.skin_types)


@guarded(default=False)
def is_sensitive_safe(product: Product) -> bool:
    """Explicit flag wins. Unmarked products are unsafe only if harsh without a gentle buffer."""
    if product.sensitive_safe is not None:
        return product.sensitive_safe
    actives = set(extract_actives(product))
    if not actives & HARSH_FOR_SENSITIVE:
        return True
    corpus = active_corpus(product)
    return any(g in corpus for g in GENTLE_COUNTERBALANCE)


@guarded(default=False)
def passes_strength_filter(product: Product, skin_type: SkinType) -> bool:
    if skin_type == SkinType.NORMAL or not product.strength:
        return True
    combo = is_combo(product)
    for step, rating in product.strength.items():
        if step == Step.PROTECT:
            continue
        if combo and step == Step.MOISTURIZE:
            continue
        bounds = STRENGTH_RANGES.get((skin_type, step))
        if bounds and not bounds[0] <= rating <= bounds[1]:
            return False
    return True


def rejection_reason(product: Product, profile: Profile) -> str | None:
    if has_self_conflict(product):
        return "self-conflicting formulation"
    if violates_safety(product, profile):
        return "safety rule"
    if not matches_skin_type(product, profile.skin_type):
        return "skin type"
    if is_sensitive_profile(profile) and not is_sensitive_safe(product):
        return "not sensitive-safe"
    if not passes_strength_filter(product, profile.skin_type):
        return "strength out of range"
    return None


def filter_eligible(catalog: list[Product], profile: Profile) -> list[Product]:
    """Drop every product the profile must never see. Preserves catalog order."""
    eligible: list[Product] = []
    for product in catalog:
        reason = rejection_reason(product, profile)
        if reason:
            logger.debug(f"Rejected {product.name}: {reason}")
            continue
        eligible.append(product)
    logger.info(f"Eligibility: {len(eligible)}/{len(catalog)} products pass for {profile.skin_type.value} skin")
    return eligible


def safe_for_profile(catalog: list[Product], profile: Profile) -> list[Product]:
    """Hard-safety only (plus sensitivity for sensitive profiles): the emergency pool."""
    pool = [p for p in catalog if not has_self_conflict(p) and not violates_safety(p, profile)]
    if is_sensitive_profile(profile):
        pool = [p for p in pool if is_sensitive_safe(p)]
    return pool
