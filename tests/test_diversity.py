"""
Unit tests for the diversity checker and the in-memory history store.
"""

import threading

import pytest

from skinroutine.config import Settings
from skinroutine.schemas import Product, Profile, SkinType
from skinroutine.services.diversity import (
    InMemoryDiversityStore,
    apply_diversity,
    diversity_key,
    remember,
    trim_history,
)


def _profile(**overrides) -> Profile:
    defaults = dict(skin_type=SkinType.OILY, primary_concerns=["acne"], age="25-34", budget="$80")
    defaults.update(overrides)
    return Profile(**defaults)


def _product(**overrides) -> Product:
    defaults = dict(id="p1", name="Product", ingredient_list="Water, Glycerin", skin_types=["oily"], price=12)
    defaults.update(overrides)
    return Product(**defaults)


def _routine() -> list[Product]:
    return [
        _product(id="c1", steps=["Cleanse"]),
        _product(id="m1", steps=["Moisturize"]),
        _product(id="s1", steps=["Protect"]),
        _product(id="t1", name="Acne Gel", steps=["Treat"], function=["treat"]),
    ]


def _fresh_treatment(**overrides) -> Product:
    defaults = dict(
        id="t2", name="Tea Tree Clear Skin Gel", steps=["Treat"], function=["Treat"], concerns=["acne"],
        primary_actives=["Tea Tree Oil"], ingredient_list="Tea Tree Oil, Water",
    )
    defaults.update(overrides)
    return _product(**defaults)


def _ids(products: list[Product]) -> list[str]:
    return [p.id for p in products]


class TestKeysAndHistory:
    def test_key_includes_sensitivity(self):
        assert diversity_key(_profile()) == "oily_normal"
        assert diversity_key(_profile(sensitive=True)) == "oily_sensitive"
        assert diversity_key(_profile(skin_type=SkinType.SENSITIVE)) == "sensitive_sensitive"

    def test_trim_history(self):
        settings = Settings()
        ids = [str(i) for i in range(21)]
        assert trim_history(ids, settings) == ids[-15:]
        assert trim_history(ids[:20], settings) == ids[:20]

    def test_history_keeps_one_entry_per_product(self):
        settings = Settings()
        assert remember(["t1", "c1", "m1"], ["c1", "t2"], settings) == ["t1", "m1", "c1", "t2"]

    def test_repeats_do_not_push_out_older_products(self):
        settings = Settings()
        history = [f"old{i}" for i in range(10)]
        for _ in range(5):
            history = remember(history, ["c1", "m1", "s1", "t1"], settings)
        assert len(history) == 14
        assert history[:10] == [f"old{i}" for i in range(10)]

    def test_store_lock_is_per_key(self):
        store = InMemoryDiversityStore()
        assert store.lock("a") is store.lock("a")
        assert store.lock("a") is not store.lock("b")


class TestApplyDiversity:
    def test_no_store_is_a_no_op(self):
        products = _routine()
        assert apply_diversity(products, products, _profile(), None) is products

    def test_swaps_recent_treatment(self):
        products = _routine()
        fresh = _fresh_treatment()
        store = InMemoryDiversityStore()
        profile = _profile()
        store.put(diversity_key(profile), ["t1"])

        result = apply_diversity(products, products + [fresh], profile, store, Settings())

        assert _ids(result) == ["c1", "m1", "s1", "t2"]
        assert store.get(diversity_key(profile)) == ["t1", "c1", "m1", "s1", "t2"]

    def test_protected_head_never_swapped(self):
        products = _routine()
        other_cleanser = _product(id="c2", steps=["Cleanse"])
        store = InMemoryDiversityStore()
        profile = _profile()
        store.put(diversity_key(profile), ["c1"])

        result = apply_diversity(products, products + [other_cleanser], profile, store, Settings())

        assert _ids(result) == ["c1", "m1", "s1", "t1"]

    def test_alternative_must_share_a_function(self):
        products = _routine()
        unrelated = _product(id="t2", steps=["Treat"], function=["hydrate"])
        store = InMemoryDiversityStore()
        profile = _profile()
        store.put(diversity_key(profile), ["t1"])

        result = apply_diversity(products, products + [unrelated], profile, store, Settings())

        assert _ids(result) == ["c1", "m1", "s1", "t1"]

    def test_alternative_must_be_compatible(self):
        products = [p if p.id != "m1" else _product(id="m1", steps=["Moisturize"], primary_actives=["Niacinamide"])
                    for p in _routine()]
        clashing = _product(id="t2", steps=["Treat"], function=["treat"], primary_actives=["Azelaic Acid"])
        store = InMemoryDiversityStore()
        profile = _profile()
        store.put(diversity_key(profile), ["t1"])

        result = apply_diversity(products, products + [clashing], profile, store, Settings())

        assert _ids(result) == ["c1", "m1", "s1", "t1"]

    def test_irrelevant_alternative_never_replaces_treatment(self):
        products = _routine()
        glycerin_serum = _product(id="t9", name="Hydrating Glycerin Serum", steps=["Treat"], function=["treat"])
        store = InMemoryDiversityStore()
        profile = _profile()
        store.put(diversity_key(profile), ["t1"])

        result = apply_diversity(products, products + [glycerin_serum], profile, store, Settings())

        assert _ids(result) == ["c1", "m1", "s1", "t1"]

    def test_relevant_alternative_chosen_over_irrelevant(self):
        products = _routine()
        glycerin_serum = _product(id="t9", name="Hydrating Glycerin Serum", steps=["Treat"], function=["treat"])
        store = InMemoryDiversityStore()
        profile = _profile()
        store.put(diversity_key(profile), ["t1"])

        result = apply_diversity(products, products + [glycerin_serum, _fresh_treatment()], profile, store, Settings())

        assert _ids(result) == ["c1", "m1", "s1", "t2"]

    def test_concurrent_requests_keep_history_consistent(self):
        store = InMemoryDiversityStore()
        profile = _profile()
        settings = Settings()
        products = _routine()

        def worker():
            apply_diversity(products, products, profile, store, settings)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        history = store.get(diversity_key(profile))
        assert history == ["c1", "m1", "s1", "t1"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
