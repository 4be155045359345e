"""
Role categorizer: which routine steps a product fills.

Explicit step tags win. Without them the strength-rating roles are used, and without those the
role is inferred from name / format / summary / function / ingredient text. A moisturizer that
also carries SPF is a combo and lands in both the moisturize and protect buckets.
"""

import logging
import re
from dataclasses import dataclass, field

from skinroutine.errors import guarded
from skinroutine.schemas import ESSENTIAL_STEPS, Product, Step, normalize_step_label
from skinroutine.services.matcher import extract_actives

logger = logging.getLogger(__name__)

_CLEANSER = re.compile(r"cleanser|face\s*wash|cleansing|\bwash\b")
_MOISTURIZER = re.compile(r"moisturi[sz]e|moisturi[sz]er|lotion|cream|hydrating|hydrate\b")
_SPF = re.compile(r"\bspf\b|\bspf\d|sunscreen|sun\s*screen|broad\s*spectrum|pa\+")
_EYE = re.compile(r"eye\s*cream|under\s*eye|eye\s*serum|dark\s*circle")

_SPF_VALUE = re.compile(r"spf\s*(\d{1,3})")
_BROAD_SPECTRUM = re.compile(r"broad\s*spectrum|pa\+|uva\s*/?\s*uvb|uv\s*protection")
_BARE_SPF = re.compile(r"\bspf\b")


def _ordered(steps: list[Step]) -> list[Step]:
    seen: list[Step] = []
    for s in steps:
        if s not in seen:
            seen.append(s)
    return seen


def product_steps(product: Product) -> list[Step]:
    explicit = [s for label in product.steps for s in normalize_step_label(label)]
    if explicit:
        return _ordered(explicit)

    if product.strength:
        return _ordered(list(product.strength))

    text = " ".join(
        [product.name, product.format, product.summary, " ".join(product.function), product.ingredient_list]
    ).lower()
    is_cleanser = bool(_CLEANSER.search(text))
    is_moisturizer = bool(_MOISTURIZER.search(text))
    has_spf = bool(_SPF.search(text))

    if is_moisturizer and has_spf:
        return [Step.MOISTURIZE, Step.PROTECT]
    if has_spf:
        return [Step.PROTECT]
    if is_cleanser:
        return [Step.CLEANSE]
    if is_moisturizer:
        return [Step.MOISTURIZE]
    if extract_actives(product) or product.concerns or product.function:
        return [Step.TREAT]
    return []


def has_step(product: Product, step: Step) -> bool:
    return step in product_steps(product)


def is_combo(product: Product) -> bool:
    steps = product_steps(product)
    return Step.MOISTURIZE in steps and Step.PROTECT in steps


def is_essential(product: Product) -> bool:
    return any(s in ESSENTIAL_STEPS for s in product_steps(product))


def is_eye_product(product: Product) -> bool:
    text = " ".join([product.name, product.summary, " ".join(product.function)]).lower()
    return bool(_EYE.search(text))


# ── SPF quality ──────────────────────────────────────────────────────────────


def _spf_text(product: Product) -> str:
    return " ".join(
        [product.name, product.summary, product.primary_actives_text, product.format]
    ).lower()


def spf_value(product: Product) -> int | None:
    match = _SPF_VALUE.search(_spf_text(product))
    return int(match.group(1)) if match else None


@guarded(default=True)
def passes_spf_quality(product: Product) -> bool:
    """SPF >= 30, a broad-spectrum claim, or a bare SPF keyword with no number.

    Products without a protect role pass trivially.
    """
    if Step.PROTECT not in product_steps(product):
        return True
    if product.spf_quality is not None:
        return product.spf_quality
    text = _spf_text(product)
    if _BROAD_SPECTRUM.search(text):
        return True
    value = spf_value(product)
    if value is not None:
        return value >= 30
    return bool(_BARE_SPF.search(text))


# ── Buckets ──────────────────────────────────────────────────────────────────


@dataclass
class Buckets:
    cleanse: list[Product] = field(default_factory=list)
    moisturize: list[Product] = field(default_factory=list)
    protect: list[Product] = field(default_factory=list)
    treat: list[Product] = field(default_factory=list)

    def for_step(self, step: Step) -> list[Product]:
        return getattr(self, step.value, [])


def bucket_by_category(products: list[Product]) -> Buckets:
    """Split products by role, preserving input order. A product may sit in several buckets."""
    buckets = Buckets()
    for p in products:
        steps = product_steps(p)
        if Step.CLEANSE in steps:
            buckets.cleanse.append(p)
        if Step.MOISTURIZE in steps:
            buckets.moisturize.append(p)
        if Step.PROTECT in steps:
            buckets.protect.append(p)
        if Step.TREAT in steps:
            buckets.treat.append(p)
    logger.debug(
        f"Buckets: cleanse={len(buckets.cleanse)} moisturize={len(buckets.moisturize)} "
        f"protect={len(buckets.protect)} treat={len(buckets.treat)}"
    )
    return buckets
