"""
Unit tests for the role categorizer and SPF quality check.
"""

import pytest

from skinroutine.schemas import Product, Step, normalize_step_label
from skinroutine.services.categorizer import (
    bucket_by_category,
    has_step,
    is_combo,
    is_essential,
    is_eye_product,
    passes_spf_quality,
    product_steps,
    spf_value,
)


def _product(**overrides) -> Product:
    defaults = dict(id="p1", name="Product")
    defaults.update(overrides)
    return Product(**defaults)


class TestStepLabels:
    def test_numbered_label(self):
        assert normalize_step_label("Step 2: Serum") == [Step.TREAT]

    def test_combo_label(self):
        assert normalize_step_label("Moisturizer + SPF") == [Step.MOISTURIZE, Step.PROTECT]

    def test_unknown_label(self):
        assert normalize_step_label("Mask") == []


class TestProductSteps:
    def test_explicit_tags_win(self):
        p = _product(name="Foaming Cleanser", steps=["Treat"])
        assert product_steps(p) == [Step.TREAT]

    def test_strength_roles_used_without_tags(self):
        p = _product(name="Mystery Product", strength=["Cleanse: 2/4"])
        assert product_steps(p) == [Step.CLEANSE]

    def test_inferred_cleanser(self):
        assert product_steps(_product(name="Gentle Face Wash")) == [Step.CLEANSE]

    def test_inferred_combo(self):
        p = _product(name="Daily Moisturizer SPF 30")
        assert product_steps(p) == [Step.MOISTURIZE, Step.PROTECT]
        assert is_combo(p)
        assert is_essential(p)

    def test_inferred_treatment_from_actives(self):
        p = _product(name="Night Drops", primary_actives=["Retinol"])
        assert product_steps(p) == [Step.TREAT]
        assert not is_essential(p)

    def test_nothing_known(self):
        assert product_steps(_product(name="Jade Roller")) == []

    def test_has_step(self):
        assert has_step(_product(steps=["Protect"]), Step.PROTECT)

    def test_eye_product(self):
        assert is_eye_product(_product(name="Caffeine Eye Serum"))
        assert not is_eye_product(_product(name="Daily Serum"))


class TestSpfQuality:
    def test_spf_value(self):
        assert spf_value(_product(name="Sunscreen SPF 50")) == 50
        assert spf_value(_product(name="Sunscreen")) is None

    def test_high_spf_passes(self):
        assert passes_spf_quality(_product(name="Sunscreen SPF 50", steps=["Protect"]))

    def test_low_spf_fails(self):
        assert not passes_spf_quality(_product(name="Tinted Balm SPF 15", steps=["Protect"]))

    def test_broad_spectrum_passes_without_number(self):
        p = _product(name="Mineral Shield", summary="Broad spectrum protection", steps=["Protect"])
        assert passes_spf_quality(p)

    def test_explicit_flag_overrides_text(self):
        p = _product(name="Sunscreen SPF 50", steps=["Protect"], spf_quality=False)
        assert not passes_spf_quality(p)

    def test_non_protect_products_pass(self):
        assert passes_spf_quality(_product(name="Cleanser", steps=["Cleanse"]))


class TestBuckets:
    def test_combo_lands_in_both_buckets(self):
        cleanser = _product(id="c", name="Cleanser", steps=["Cleanse"])
        combo = _product(id="m", name="Day Cream SPF 30")
        serum = _product(id="t", name="Serum", steps=["Treat"])
        buckets = bucket_by_category([cleanser, combo, serum])
        assert [p.id for p in buckets.cleanse] == ["c"]
        assert [p.id for p in buckets.moisturize] == ["m"]
        assert [p.id for p in buckets.protect] == ["m"]
        assert [p.id for p in buckets.for_step(Step.TREAT)] == ["t"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
