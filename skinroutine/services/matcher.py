"""
Ingredient / text matcher.

Normalizes ingredient text and expands ingredient synonyms so that "BHA", "Salicylic Acid"
and the catalog's "Salycilic Acid (BHA)" spelling all hit each other. Every higher layer
matches ingredients through here.
"""

import logging
import re

from skinroutine.schemas import Product

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^a-z0-9%+\s]")
_SPACES = re.compile(r"\s+")

# Whole-word tokens recognised as actives (order matters only for readability)
ACTIVE_TOKENS = [
    "retinol", "retinal", "retinoid",
    "benzoyl peroxide", "salicylic acid", "bha", "glycolic acid", "aha", "lactic acid", "pha",
    "azelaic acid", "sulfur", "vitamin c", "ascorbic acid",
    "niacinamide", "hyaluronic acid", "ceramide", "ceramides", "peptide", "zinc oxide",
    "fragrance", "alcohol",
]

_TOKEN_PATTERNS = {
    token: re.compile(rf"\b{re.escape(token)}\b") for token in ACTIVE_TOKENS
}

# (trigger substring, variants added when the trigger appears in a term)
_SYNONYMS: list[tuple[tuple[str, ...], tuple[str, ...]]] = [
    (("salicylic", "salycilic", "bha"), ("salicylic acid", "salicylic", "bha")),
    (("azelaic", "azealic"), ("azelaic acid", "azealic acid", "azelaic")),
    (("squalane", "squalene"), ("squalane", "squalene")),
    (("vitamin c", "ascorbic", "ascor"), ("vitamin c", "ascorbic acid", "ascorbic")),
    (("hyaluron",), ("sodium hyaluronate", "hyaluronic acid", "hyaluronic")),
    (("niacinamide", "nicotinamide"), ("niacinamide", "nicotinamide")),
    (("retinol", "retinoid", "retinal"), ("retinol", "retinoid", "retinal")),
    (("glycolic",), ("glycolic acid", "glycolic")),
    (("lactic",), ("lactic acid", "lactic")),
    (("ceramide",), ("ceramide", "ceramides")),
    (("peptide",), ("peptide", "peptides")),
]


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation (keeping % and +), collapse whitespace."""
    lowered = (text or "").lower()
    return _SPACES.sub(" ", _NON_WORD.sub(" ", lowered)).strip()


def expand_ingredient_variants(term: str) -> list[str]:
    """Return `term` plus its known synonyms, all normalized.

    Parenthesised qualifiers are also tried on their own, so "Glycolic Acid (AHA)"
    yields "glycolic acid aha", "glycolic acid" and "glycolic".
    """
    base = (term or "").strip().lower()
    if not base:
        return []

    variants: list[str] = []

    def add(value: str) -> None:
        norm = normalize_text(value)
        if norm and norm not in variants:
            variants.append(norm)

    add(base)
    add(re.sub(r"\(.*?\)", " ", base))
    for triggers, synonyms in _SYNONYMS:
        if any(t in base for t in triggers):
            for s in synonyms:
                add(s)
    return variants


def text_contains_term(text_norm: str, term: str) -> bool:
    """Substring match of `term` (or any synonym) in already-normalized text."""
    return any(v in text_norm for v in expand_ingredient_variants(term))


def text_includes_any(text: str, terms: list[str]) -> bool:
    norm = normalize_text(text)
    return any(text_contains_term(norm, t) for t in terms if t)


def active_corpus(product: Product) -> str:
    """Primary actives plus full ingredient list, normalized."""
    return normalize_text(f"{product.primary_actives_text} {product.ingredient_list}")


def primary_corpus(product: Product) -> str:
    return normalize_text(product.primary_actives_text)


def extract_actives(product: Product) -> list[str]:
    """Known active tokens present as whole words in actives + ingredient list."""
    base = f"{product.primary_actives_text}\n{product.ingredient_list}".lower()
    return [token for token, pattern in _TOKEN_PATTERNS.items() if pattern.search(base)]
