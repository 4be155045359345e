"""
Quiz payload -> Profile.

Raw quiz answers are loose: comma-separated concern strings, "Oily / shiny by noon" skin
types, "$80-100" budgets, free-text health notes. This module maps them onto the controlled
vocabulary the pipeline scores against.
"""

import logging
import re
from typing import Any

from pydantic import ValidationError

from skinroutine.errors import ProfileError
from skinroutine.schemas import AcneStatus, HealthInfo, Profile, SkinType, TimeCommitment

logger = logging.getLogger(__name__)

CONCERN_MAPPING: dict[str, str] = {
    "acne": "acne",
    "breakouts": "acne",
    "pimples": "acne",
    "texture": "texture",
    "pores": "pores",
    "large pores": "pores",
    "hyperpigmentation": "hyperpigmentation",
    "dark spots": "hyperpigmentation",
    "dark spot": "hyperpigmentation",
    "pigmentation": "hyperpigmentation",
    "melasma": "hyperpigmentation",
    "dark patches": "hyperpigmentation",
    "uneven skin tone": "hyperpigmentation",
    "wrinkles": "wrinkles",
    "fine lines": "fine lines",
    "wrinkles/fine lines": "wrinkles",
    "anti-aging": "wrinkles",
    "aging": "wrinkles",
    "age spots": "wrinkles",
    "redness": "redness",
    "dark circles": "dark circles",
    "under eye circles": "dark circles",
    "eye bags": "dark circles",
    "dullness": "dullness",
    "dull skin": "dullness",
    "dryness": "dryness",
    "dry skin": "dryness",
    "dehydrated": "dryness",
    "flaky skin": "dryness",
}

PRIMARY_CONCERNS = ("acne", "texture", "pores", "hyperpigmentation")
SECONDARY_CONCERNS = ("wrinkles", "fine lines", "redness", "dark circles", "dullness", "dryness")

SENSITIVE_KEYWORDS = ("sensitive", "reactive", "irritat")
NOT_SENSITIVE_KEYWORDS = ("not sensitive", "resistant", "tough")
ACNE_KEYWORDS = ("acne", "pimples", "breakouts", "zits", "blemishes")

CONDITION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "rosacea": ("rosacea",),
    "eczema": ("eczema", "atopic dermatitis", "dermatitis"),
    "pregnant": ("pregnant", "pregnancy", "expecting", "breastfeeding", "nursing"),
}
MEDICATION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "tretinoin": ("tretinoin", "retin-a", "retin a"),
    "benzoyl peroxide": ("benzoyl peroxide", "benzac"),
    "accutane": ("accutane", "isotretinoin", "roaccutane"),
    "adapalene": ("adapalene", "differin"),
    "clindamycin": ("clindamycin", "clinda"),
}
ALLERGY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "fragrance": ("fragrance", "perfume", "scented"),
    "niacinamide": ("niacinamide", "vitamin b3"),
    "salicylic acid": ("salicylic", "beta hydroxy acid"),
    "retinol": ("retinol", "retinoid"),
    "vitamin c": ("vitamin c", "ascorbic acid", "vit c"),
    "hyaluronic acid": ("hyaluronic",),
}

MIN_BUDGET = 40
MAX_BUDGET = 200


def _split(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [c.strip().lower() for c in re.split(r"[,|]", value) if c.strip()]
    return [str(c).strip().lower() for c in value if str(c).strip()]


def parse_concerns(value: Any) -> tuple[list[str], list[str]]:
    primary: list[str] = []
    secondary: list[str] = []
    for concern in _split(value):
        mapped = CONCERN_MAPPING.get(concern, concern)
        if mapped in PRIMARY_CONCERNS and mapped not in primary:
            primary.append(mapped)
        elif mapped in SECONDARY_CONCERNS and mapped not in secondary:
            secondary.append(mapped)
    return primary, secondary


def map_skin_type(value: str) -> SkinType:
    text = (value or "").lower()
    for skin in (SkinType.DRY, SkinType.OILY, SkinType.COMBINATION, SkinType.SENSITIVE):
        if skin.value in text:
            return skin
    return SkinType.NORMAL


def is_sensitive(value: str) -> bool:
    text = (value or "").lower()
    if any(k in text for k in NOT_SENSITIVE_KEYWORDS):
        return False
    return any(k in text for k in SENSITIVE_KEYWORDS)


def map_time_commitment(value: str) -> TimeCommitment:
    text = (value or "").lower()
    number = re.search(r"\d+", text)
    minutes = int(number.group()) if number else None
    if minutes is None:
        if any(w in text for w in ("fifteen", "twenty", "thirty")):
            minutes = 15
        elif "five" in text:
            minutes = 5
    if minutes is None:
        return TimeCommitment.TEN_MINUTE
    if minutes >= 15:
        return TimeCommitment.FIFTEEN_PLUS
    if minutes <= 5:
        return TimeCommitment.FIVE_MINUTE
    return TimeCommitment.TEN_MINUTE


def map_acne_status(value: Any, concern_text: str) -> AcneStatus:
    text = str(value or "").lower()
    if text:
        if "not" in text or text == "none":
            return AcneStatus.NONE
        if "prone" in text:
            return AcneStatus.PRONE
        if "active" in text:
            return AcneStatus.ACTIVE
    return AcneStatus.ACTIVE if any(k in concern_text for k in ACNE_KEYWORDS) else AcneStatus.NONE


def format_budget(value: Any) -> str:
    digits = re.search(r"\d+", str(value or ""))
    if not digits:
        return f"${MAX_BUDGET // 2}"
    amount = min(max(int(digits.group()), MIN_BUDGET), MAX_BUDGET)
    return f"${amount}"


def _keywords_found(text: str, table: dict[str, tuple[str, ...]]) -> list[str]:
    return [name for name, words in table.items() if any(re.search(rf"\b{re.escape(w)}", text) for w in words)]


def parse_health(raw: dict) -> HealthInfo:
    notes = str(raw.get("additional_info") or "").lower()
    conditions = _split(raw.get("conditions")) + _keywords_found(notes, CONDITION_KEYWORDS)
    medications = _split(raw.get("medications")) + _keywords_found(notes, MEDICATION_KEYWORDS)
    allergies = _split(raw.get("allergies")) + _keywords_found(notes, ALLERGY_KEYWORDS)
    return HealthInfo(
        is_pregnant=raw.get("is_pregnant") or ("pregnant" in conditions) or None,
        medications=list(dict.fromkeys(medications)),
        allergies=list(dict.fromkeys(allergies)),
        conditions=list(dict.fromkeys(conditions)),
    )


def normalize_profile(raw: dict) -> Profile:
    """Build a Profile from a raw quiz dict. Raises ProfileError on unusable input."""
    if not isinstance(raw, dict):
        raise ProfileError(f"Quiz payload must be a mapping, got {type(raw).__name__}")

    concerns_raw = raw.get("concerns", raw.get("work_on"))
    primary, secondary = parse_concerns(concerns_raw)
    concern_text = " ".join(_split(concerns_raw))

    acne_status = map_acne_status(raw.get("acne_status"), concern_text)

    sensitivity = str(raw.get("sensitivity") or "")
    skin_type = map_skin_type(str(raw.get("skin_type") or ""))

    try:
        profile = Profile(
            skin_type=skin_type,
            sensitive=is_sensitive(sensitivity) or skin_type == SkinType.SENSITIVE,
            acne_status=acne_status,
            primary_concerns=primary,
            secondary_concerns=secondary,
            age=str(raw.get("age") or ""),
            budget=format_budget(raw.get("budget")),
            time_commitment=map_time_commitment(str(raw.get("routine_time") or "")),
            health=parse_health(raw),
        )
    except ValidationError as e:
        raise ProfileError(f"Invalid quiz payload: {e}") from e

    logger.info(f"Normalized profile: {profile.skin_type.value}, concerns={primary + secondary}")
    return profile
