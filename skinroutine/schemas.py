"""
Pydantic schemas: the single source of truth for all data contracts.

Product is immutable catalog data. Every optional attribute has a neutral default and the
`mode="before"` validators below are the one place where loose catalog shapes (None, bare
strings, `{"name": ...}` wrappers, "Treat: 3/4" strength labels) get normalized.
Profile is the per-request quiz result. Routine is what the pipeline returns.
"""

from __future__ import annotations

import enum
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Enums ────────────────────────────────────────────────────────────────────


class SkinType(str, enum.Enum):
    DRY = "dry"
    OILY = "oily"
    COMBINATION = "combination"
    NORMAL = "normal"
    SENSITIVE = "sensitive"


class Step(str, enum.Enum):
    CLEANSE = "cleanse"
    MOISTURIZE = "moisturize"
    PROTECT = "protect"
    TREAT = "treat"
    TONE = "tone"
    EXFOLIATE = "exfoliate"


ESSENTIAL_STEPS = (Step.CLEANSE, Step.MOISTURIZE, Step.PROTECT)


class TimeCommitment(str, enum.Enum):
    FIVE_MINUTE = "5_minute"
    TEN_MINUTE = "10_minute"
    FIFTEEN_PLUS = "15+_minute"


class AcneStatus(str, enum.Enum):
    NONE = "none"
    PRONE = "prone"
    ACTIVE = "active"


class BudgetTier(str, enum.Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"


# ── Step label normalization ─────────────────────────────────────────────────

_STEP_PREFIX = re.compile(r"step\s*\d+\s*:\s*(.+)")

_STEP_PATTERNS: list[tuple[re.Pattern, Step]] = [
    (re.compile(r"cleanse|cleanser|cleansing|wash"), Step.CLEANSE),
    (re.compile(r"moistur|hydrat|cream|lotion"), Step.MOISTURIZE),
    (re.compile(r"protect|spf|sunscreen"), Step.PROTECT),
    (re.compile(r"treat|serum|active|target"), Step.TREAT),
    (re.compile(r"\bton(e|er)\b"), Step.TONE),
    (re.compile(r"exfoliat"), Step.EXFOLIATE),
]


def normalize_step_label(raw: str) -> list[Step]:
    """Map a free-form step label ("Step 2: Serum", "Moisturizer + SPF") to roles."""
    lower = (raw or "").lower().strip()
    match = _STEP_PREFIX.match(lower)
    value = match.group(1).strip() if match else lower
    return [step for pattern, step in _STEP_PATTERNS if pattern.search(value)]


def _names(value: Any) -> list[str]:
    """Accept None, a string, or a list of strings / {"name": ...} dicts."""
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        value = [value]
    out: list[str] = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("name")
        if item is None:
            continue
        text = str(item).strip()
        if text:
            out.append(text)
    return out


# ── Product ──────────────────────────────────────────────────────────────────


class ActiveIngredient(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""


class Product(BaseModel):
    """Catalog item. Read-only reference data owned by the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    brand: Optional[str] = None
    link: Optional[str] = None
    price: Optional[float] = None

    ingredient_list: str = ""
    primary_actives: list[ActiveIngredient] = Field(default_factory=list)

    skin_types: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    format: str = ""
    function: list[str] = Field(default_factory=list)
    summary: str = ""
    strength: dict[Step, int] = Field(
        default_factory=dict, description="Role -> 1-4 intensity of the product's actives"
    )
    sensitive_safe: Optional[bool] = Field(
        default=None, description="Explicit sensitive-skin flag; None means the catalog is silent"
    )
    spf_quality: Optional[bool] = Field(
        default=None, description="Explicit SPF-quality flag; overrides text inspection"
    )
    cannot_mix_with: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        return str(v)

    @field_validator("name", "ingredient_list", "format", "summary", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        if v is None:
            return ""
        if isinstance(v, dict):
            # catalog exports wrap rich text as {"plain_text": ...} or {"name": ...}
            return str(v.get("plain_text") or v.get("name") or "")
        return str(v)

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, v):
        if v in (None, ""):
            return None
        if isinstance(v, str):
            match = re.search(r"\d+(?:\.\d+)?", v)
            return float(match.group()) if match else None
        return v

    @field_validator("primary_actives", mode="before")
    @classmethod
    def _coerce_actives(cls, v):
        return [{"name": n} for n in _names(v)]

    @field_validator("skin_types", "concerns", "function", "cannot_mix_with", mode="before")
    @classmethod
    def _coerce_tags(cls, v):
        return [n.lower() for n in _names(v)]

    @field_validator("steps", mode="before")
    @classmethod
    def _coerce_steps(cls, v):
        return _names(v)

    @field_validator("strength", mode="before")
    @classmethod
    def _coerce_strength(cls, v):
        """Accept {"treat": 3}, {"Treat": "3/4"} or ["Treat: 3/4", "Cleanse 2/4"]."""
        if not v:
            return {}
        pairs: list[tuple[str, Any]] = []
        if isinstance(v, dict):
            pairs = [(str(k), val) for k, val in v.items()]
        else:
            for label in _names(v):
                pairs.append((label, label))

        ratings: dict[Step, int] = {}
        for label, raw in pairs:
            if isinstance(raw, (int, float)):
                rating = int(raw)
            else:
                match = re.search(r"([1-4])\s*/\s*4", str(raw)) or re.search(r"\b([1-4])\b", str(raw))
                if not match:
                    continue
                rating = int(match.group(1))
            for step in normalize_step_label(label.split(":")[0] if ":" in label else label):
                ratings.setdefault(step, rating)
        return ratings

    @field_validator("sensitive_safe", "spf_quality", mode="before")
    @classmethod
    def _coerce_flag(cls, v):
        if v is None or isinstance(v, bool):
            return v
        text = str(v.get("name", "") if isinstance(v, dict) else v).strip().lower()
        if not text:
            return None
        if text in ("yes", "y", "true", "safe") or text.startswith("yes"):
            return True
        if text in ("no", "n", "false", "unsafe") or text.startswith("no"):
            return False
        return None

    @property
    def primary_actives_text(self) -> str:
        return " ".join(a.name for a in self.primary_actives)

    @property
    def cost(self) -> float:
        return self.price or 0.0


# ── Profile ──────────────────────────────────────────────────────────────────


class HealthInfo(BaseModel):
    is_pregnant: Optional[bool] = None
    is_nursing: Optional[bool] = None
    medications: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    conditions: list[str] = Field(default_factory=list)

    @field_validator("medications", "allergies", "conditions", mode="before")
    @classmethod
    def _lower(cls, v):
        return [n.lower() for n in _names(v)]


class Profile(BaseModel):
    """Quiz result for one request. Read-only inside the pipeline."""

    skin_type: SkinType = SkinType.NORMAL
    sensitive: bool = False
    acne_status: AcneStatus = AcneStatus.NONE
    primary_concerns: list[str] = Field(default_factory=list)
    secondary_concerns: list[str] = Field(default_factory=list)
    age: str = Field(default="", description="Age bracket, e.g. '18-24' or '35-44'")
    budget: str = Field(default="", description="Free-form budget, e.g. '$80'")
    time_commitment: TimeCommitment = TimeCommitment.TEN_MINUTE
    health: HealthInfo = Field(default_factory=HealthInfo)

    @field_validator("primary_concerns", "secondary_concerns", mode="before")
    @classmethod
    def _lower(cls, v):
        return [n.lower() for n in _names(v)]

    @property
    def all_concerns(self) -> list[str]:
        seen: list[str] = []
        for c in self.primary_concerns + self.secondary_concerns:
            if c not in seen:
                seen.append(c)
        return seen


# ── Output ───────────────────────────────────────────────────────────────────


class AdvisoryNotes:
    """Per-invocation note collector. Keeps insertion order and drops repeats."""

    def __init__(self) -> None:
        self._notes: list[str] = []

    def add_note(self, note: str) -> None:
        if note and note not in self._notes:
            self._notes.append(note)

    def get_notes(self) -> list[str]:
        return list(self._notes)

    def clear_notes(self) -> None:
        self._notes.clear()


class Routine(BaseModel):
    """Ordered products plus the advisory notes gathered while building them."""

    products: list[Product] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return round(sum(p.cost for p in self.products), 2)

    @property
    def product_ids(self) -> list[str]:
        return [p.id for p in self.products]
