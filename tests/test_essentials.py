"""
Unit tests for the tiered essential selector.
"""

import pytest

from skinroutine.schemas import AdvisoryNotes, Product, Profile, SkinType, Step
from skinroutine.services.budget import budget_bounds
from skinroutine.services.eligibility import filter_eligible
from skinroutine.services.essentials import EssentialSelector, missing_role_note, no_treatment_note
from skinroutine.services.scoring import ConcernScorer


# ── Fixtures ────────────────────────────────────────────────────────────────


def _profile(**overrides) -> Profile:
    defaults = dict(skin_type=SkinType.OILY, primary_concerns=["acne"], age="25-34", budget="$80")
    defaults.update(overrides)
    return Profile(**defaults)


def _product(**overrides) -> Product:
    defaults = dict(id="p1", name="Product", ingredient_list="Water, Glycerin", skin_types=["oily"], price=12)
    defaults.update(overrides)
    return Product(**defaults)


def _cleanser(**overrides) -> Product:
    defaults = dict(id="c1", name="Gentle Gel Cleanser", steps=["Cleanse"])
    defaults.update(overrides)
    return _product(**defaults)


def _moisturizer(**overrides) -> Product:
    defaults = dict(id="m1", name="Oil-Free Gel Moisturizer", steps=["Moisturize"], price=15)
    defaults.update(overrides)
    return _product(**defaults)


def _sunscreen(**overrides) -> Product:
    defaults = dict(
        id="s1", name="Daily Sunscreen SPF 50", steps=["Protect"], price=18,
        ingredient_list="Zinc Oxide, Water",
    )
    defaults.update(overrides)
    return _product(**defaults)


def _treatment(**overrides) -> Product:
    defaults = dict(
        id="t1", name="Acne Treatment Gel", steps=["Treat"], price=10,
        primary_actives=["Benzoyl Peroxide"], concerns=["acne"],
        ingredient_list="Benzoyl Peroxide, Water, Carbomer",
    )
    defaults.update(overrides)
    return _product(**defaults)


def _select(catalog: list[Product], profile: Profile | None = None):
    profile = profile or _profile()
    scorer = ConcernScorer(profile)
    notes = AdvisoryNotes()
    selector = EssentialSelector(profile, scorer, budget_bounds(profile))
    selection = selector.select(filter_eligible(catalog, profile), catalog, notes)
    return selection, notes.get_notes()


# ── Strict tier ─────────────────────────────────────────────────────────────


class TestStrictTier:
    def test_fills_every_role(self):
        selection, notes = _select([_cleanser(), _moisturizer(), _sunscreen(), _treatment()])
        assert selection.cleanser.id == "c1"
        assert selection.moisturizer.id == "m1"
        assert selection.protect.id == "s1"
        assert selection.treatment.id == "t1"
        assert selection.tiers_used == ["strict"]
        assert selection.missing_roles() == []
        assert notes == []

    def test_combo_preferred_over_separate_products(self):
        combo = _product(id="k1", name="Day Cream SPF 30", steps=["Moisturize", "Protect"], price=22)
        selection, _ = _select([_cleanser(), _moisturizer(), _sunscreen(), combo])
        assert selection.moisturizer.id == "k1"
        assert selection.protect.id == "k1"
        assert [p.id for p in selection.essentials] == ["c1", "k1"]

    def test_price_cap_prefers_affordable(self):
        pricey = _cleanser(id="c2", name="Clarifying Cleanser", primary_actives=["Salicylic Acid"], price=30)
        cheap = _cleanser(price=12)
        selection, _ = _select([pricey, cheap, _moisturizer(), _sunscreen()])
        assert selection.cleanser.id == "c1"

    def test_skips_conflicting_candidate(self):
        cleanser = _cleanser(primary_actives=["Salicylic Acid"])
        clashing = _moisturizer(id="m2", name="Glow Gel Moisturizer", primary_actives=["Glycolic Acid"], price=10)
        selection, _ = _select([cleanser, clashing, _moisturizer(), _sunscreen()])
        assert selection.moisturizer.id == "m1"

    def test_low_spf_rejected_in_strict_tier(self):
        weak = _sunscreen(id="s2", name="Tinted Balm SPF 15", price=8)
        selection, _ = _select([_cleanser(), _moisturizer(), weak, _sunscreen()])
        assert selection.protect.id == "s1"


# ── Fallback tiers ──────────────────────────────────────────────────────────


class TestFallbackTiers:
    def test_relaxed_tier_ignores_skin_tags(self):
        dry_sunscreen = _sunscreen(skin_types=["dry"])
        selection, notes = _select([_cleanser(), _moisturizer(), dry_sunscreen])
        assert selection.protect.id == "s1"
        assert selection.tiers_used == ["strict", "relaxed"]
        assert missing_role_note(Step.PROTECT) not in notes

    def test_emergency_tier_ignores_strength(self):
        weak_cleanser = _cleanser(strength={"cleanse": 1})
        selection, _ = _select([weak_cleanser, _moisturizer(), _sunscreen()])
        assert selection.cleanser.id == "c1"
        assert selection.tiers_used == ["strict", "emergency"]

    def test_emergency_tier_keeps_safety(self):
        retinol_cleanser = _cleanser(primary_actives=["Retinol"])
        selection, notes = _select([retinol_cleanser, _moisturizer(), _sunscreen()], _profile(age="13-17"))
        assert selection.cleanser is None
        assert missing_role_note(Step.CLEANSE) in notes

    def test_low_spf_combo_covers_protect_when_no_sunscreen(self):
        day_cream = _product(id="k1", name="Day Cream SPF 15", steps=["Moisturize", "Protect"], price=20)
        selection, notes = _select([_cleanser(), _moisturizer(), day_cream])
        assert selection.moisturizer.id == "k1"
        assert selection.protect.id == "k1"
        assert [p.id for p in selection.essentials] == ["c1", "k1"]
        assert selection.tiers_used == ["strict", "relaxed"]
        assert missing_role_note(Step.PROTECT) not in notes

    def test_missing_role_note(self):
        selection, notes = _select([_moisturizer(), _sunscreen()])
        assert selection.missing_roles() == [Step.CLEANSE]
        assert missing_role_note(Step.CLEANSE) in notes


# ── Treatment ───────────────────────────────────────────────────────────────


class TestTreatment:
    def test_irrelevant_treatment_not_picked(self):
        untagged = _treatment(concerns=[])
        profile = _profile()
        selection, notes = _select([_cleanser(), _moisturizer(), _sunscreen(), untagged], profile)
        assert selection.treatment is None
        assert no_treatment_note(profile) in notes

    def test_treatment_must_not_conflict_with_essentials(self):
        niacinamide_moisturizer = _moisturizer(primary_actives=["Niacinamide"])
        azelaic_treatment = _treatment(primary_actives=["Azelaic Acid"], ingredient_list="Azelaic Acid, Water")
        selection, _ = _select([_cleanser(), niacinamide_moisturizer, _sunscreen(), azelaic_treatment])
        assert selection.treatment is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
