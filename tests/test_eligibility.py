"""
Unit tests for the eligibility filter: safety rules, skin-type matching, sensitivity and
strength ranges.
"""

import pytest

from skinroutine.schemas import HealthInfo, Product, Profile, SkinType
from skinroutine.services.eligibility import (
    filter_eligible,
    is_sensitive_safe,
    matches_skin_type,
    passes_strength_filter,
    rejection_reason,
    safe_for_profile,
    violates_safety,
)


# ── Fixtures ────────────────────────────────────────────────────────────────


def _profile(**overrides) -> Profile:
    defaults = dict(skin_type=SkinType.OILY, age="25-34", budget="$100")
    defaults.update(overrides)
    return Profile(**defaults)


def _product(**overrides) -> Product:
    defaults = dict(
        id="p1",
        name="Serum",
        ingredient_list="Water, Glycerin",
        steps=["Treat"],
        skin_types=["oily"],
    )
    defaults.update(overrides)
    return Product(**defaults)


def _retinol(**overrides) -> Product:
    return _product(id="ret", name="Retinol Serum", primary_actives=["Retinol"], **overrides)


# ── Safety ──────────────────────────────────────────────────────────────────


class TestSafety:
    def test_retinoid_excluded_for_teens(self):
        assert violates_safety(_retinol(), _profile(age="13-17"))
        assert filter_eligible([_retinol()], _profile(age="13-17")) == []

    def test_retinoid_allowed_for_adults(self):
        assert not violates_safety(_retinol(), _profile(age="25-34"))

    def test_retinoid_excluded_when_pregnant(self):
        profile = _profile(health=HealthInfo(is_pregnant=True))
        assert violates_safety(_retinol(), profile)

    def test_retinoid_excluded_when_nursing(self):
        profile = _profile(health=HealthInfo(is_nursing=True))
        assert violates_safety(_retinol(), profile)

    def test_rosacea_blocks_harsh_actives(self):
        profile = _profile(health=HealthInfo(conditions=["Rosacea"]))
        acid = _product(primary_actives=["Glycolic Acid"])
        assert violates_safety(acid, profile)
        assert not violates_safety(_product(), profile)

    def test_tretinoin_blocks_acids(self):
        profile = _profile(health=HealthInfo(medications=["tretinoin"]))
        assert violates_safety(_product(primary_actives=["Salicylic Acid"]), profile)

    def test_benzoyl_peroxide_medication_blocks_bp_products(self):
        profile = _profile(health=HealthInfo(medications=["Benzoyl Peroxide 5% gel"]))
        assert violates_safety(_product(primary_actives=["Benzoyl Peroxide"]), profile)
        assert not violates_safety(_product(primary_actives=["Niacinamide"]), profile)

    def test_clindamycin_blocks_sulfur(self):
        profile = _profile(health=HealthInfo(medications=["clindamycin"]))
        assert violates_safety(_product(primary_actives=["Sulfur"]), profile)

    def test_allergen_in_ingredient_list(self):
        profile = _profile(health=HealthInfo(allergies=["niacinamide"]))
        p = _product(ingredient_list="Water, Niacinamide, Glycerin")
        assert violates_safety(p, profile)
        assert rejection_reason(p, profile) == "safety rule"


# ── Skin type ───────────────────────────────────────────────────────────────


class TestSkinType:
    def test_exact_match(self):
        assert matches_skin_type(_product(skin_types=["oily"]), SkinType.OILY)

    def test_compatible_pair(self):
        assert matches_skin_type(_product(skin_types=["combination"]), SkinType.OILY)

    def test_incompatible(self):
        p = _product(skin_types=["dry"])
        assert not matches_skin_type(p, SkinType.OILY)
        assert rejection_reason(p, _profile()) == "skin type"

    def test_universal_and_untagged_pass(self):
        assert matches_skin_type(_product(skin_types=["All"]), SkinType.DRY)
        assert matches_skin_type(_product(skin_types=[]), SkinType.DRY)


# ── Sensitivity ─────────────────────────────────────────────────────────────


class TestSensitivity:
    def test_explicit_flag_wins(self):
        p = _product(primary_actives=["Retinol"], sensitive_safe="Yes")
        assert is_sensitive_safe(p)

    def test_harsh_without_buffer_is_unsafe(self):
        assert not is_sensitive_safe(_product(primary_actives=["Glycolic Acid"]))

    def test_harsh_with_gentle_buffer_is_safe(self):
        p = _product(primary_actives=["Salicylic Acid"], ingredient_list="Water, Centella Asiatica")
        assert is_sensitive_safe(p)

    def test_sensitive_profile_rejects_unsafe(self):
        p = _product(primary_actives=["Glycolic Acid"])
        assert rejection_reason(p, _profile(sensitive=True)) == "not sensitive-safe"
        assert rejection_reason(p, _profile()) is None


# ── Strength ────────────────────────────────────────────────────────────────


class TestStrength:
    def test_gentle_cleanser_too_weak_for_oily(self):
        p = _product(steps=["Cleanse"], strength={"cleanse": 1})
        assert not passes_strength_filter(p, SkinType.OILY)

    def test_strong_cleanser_too_harsh_for_dry(self):
        p = _product(steps=["Cleanse"], strength=["Cleanse: 3/4"])
        assert not passes_strength_filter(p, SkinType.DRY)

    def test_normal_skin_skips_strength(self):
        p = _product(steps=["Cleanse"], strength={"cleanse": 4})
        assert passes_strength_filter(p, SkinType.NORMAL)

    def test_combo_moisture_rating_ignored(self):
        p = _product(name="Day Cream SPF 30", steps=[], strength={"moisturize": 4, "protect": 4})
        assert passes_strength_filter(p, SkinType.OILY)


# ── Pools ───────────────────────────────────────────────────────────────────


class TestPools:
    def test_filter_preserves_catalog_order(self):
        a = _product(id="a")
        b = _product(id="b", skin_types=["dry"])
        c = _product(id="c")
        assert [p.id for p in filter_eligible([a, b, c], _profile())] == ["a", "c"]

    def test_emergency_pool_ignores_skin_type(self):
        dry_only = _product(id="d", skin_types=["dry"])
        assert [p.id for p in safe_for_profile([dry_only], _profile())] == ["d"]

    def test_emergency_pool_keeps_safety(self):
        assert safe_for_profile([_retinol()], _profile(age="13-17")) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
