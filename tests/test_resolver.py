import pytest

from menuquiz.resolver import (
    ExpansionCache,
    IngredientResolver,
    expand_ingredient_ids,
    get_ingredient_all_allergies,
    get_menu_item_all_ingredient_ids,
    menu_item_contains_allergy,
    menu_item_contains_ingredient,
)

from conftest import make_ingredient, make_menu_item


class TestExpansion:

    def test_expands_sub_ingredients_transitively(self, ingredients):
        resolver = IngredientResolver(ingredients)

        assert resolver.expand(["dough", "cheese"]) == {"dough", "flour", "salt", "cheese", "milk"}

    def test_unknown_ids_are_kept(self, ingredients):
        resolver = IngredientResolver(ingredients)

        assert resolver.expand(["mystery", "dough"]) == {"mystery", "dough", "flour", "salt"}

    def test_empty_input(self, ingredients):
        assert IngredientResolver(ingredients).expand([]) == set()

    def test_cycle_terminates(self):
        catalog = [
            make_ingredient("a", sub_ingredients=["b"]),
            make_ingredient("b", sub_ingredients=["c"]),
            make_ingredient("c", sub_ingredients=["a"]),
        ]

        assert IngredientResolver(catalog).expand(["a"]) == {"a", "b", "c"}

    def test_expansion_is_idempotent(self, ingredients):
        resolver = IngredientResolver(ingredients)
        once = resolver.expand(["dough", "butter", "tomato"])

        assert resolver.expand(once) == once

    def test_result_can_be_mutated_without_touching_cache(self, ingredients):
        resolver = IngredientResolver(ingredients)
        first = resolver.expand(["dough"])
        first.add("intruder")

        assert resolver.expand(["dough"]) == {"dough", "flour", "salt"}
        assert resolver.cache.hits == 1

    def test_shared_cache_distinguishes_catalogs(self):
        wheat = [make_ingredient("dough", sub_ingredients=["flour"]), make_ingredient("flour")]
        rice = [make_ingredient("dough", sub_ingredients=["rice"]), make_ingredient("rice")]

        assert expand_ingredient_ids(["dough"], wheat) == {"dough", "flour"}
        assert expand_ingredient_ids(["dough"], rice) == {"dough", "rice"}


class TestAllergyClosure:

    def test_includes_direct_derived_and_sub_ingredient_allergies(self):
        catalog = [
            make_ingredient("sauce", allergies=["mustard"], derived=["sulphites"], sub_ingredients=["cream"]),
            make_ingredient("cream", allergies=["dairy"]),
        ]

        assert get_ingredient_all_allergies(catalog[0], catalog) == {"mustard", "sulphites", "dairy"}

    def test_deep_chain_reaches_leaf_allergy(self):
        depth = 1500
        catalog = [
            make_ingredient(f"i{n}", sub_ingredients=[f"i{n + 1}"]) for n in range(depth - 1)
        ]
        catalog.append(make_ingredient(f"i{depth - 1}", allergies=["gluten"]))
        dish = make_menu_item("tower", ["i0"])

        assert get_ingredient_all_allergies(catalog[0], catalog) == {"gluten"}
        assert menu_item_contains_allergy(dish, "gluten", catalog) is True
        assert len(expand_ingredient_ids(["i0"], catalog)) == depth

    def test_cycle_collects_every_allergy_once(self):
        catalog = [
            make_ingredient("a", allergies=["x"], sub_ingredients=["b"]),
            make_ingredient("b", allergies=["y"], sub_ingredients=["a"]),
        ]
        resolver = IngredientResolver(catalog)

        assert resolver.allergy_closure(catalog[0]) == {"x", "y"}
        assert resolver.allergy_closure(catalog[1]) == {"x", "y"}

    def test_visited_ingredient_contributes_nothing(self, ingredients):
        dough = next(i for i in ingredients if i.ingredient_id == "dough")

        assert get_ingredient_all_allergies(dough, ingredients, visited={"dough"}) == set()

    def test_ingredient_has_allergy(self, ingredients):
        resolver = IngredientResolver(ingredients)
        by_id = {i.ingredient_id: i for i in ingredients}

        assert resolver.ingredient_has_allergy(by_id["dough"], "gluten") is True
        assert resolver.ingredient_has_allergy(by_id["butter"], "dairy") is True
        assert resolver.ingredient_has_allergy(by_id["sugar"], "gluten") is False


class TestMenuItemPredicates:

    def test_allergy_reachable_through_sub_ingredient(self):
        catalog = [
            make_ingredient("dough", sub_ingredients=["flour"]),
            make_ingredient("flour", allergies=["gluten"]),
        ]
        pizza = make_menu_item("pizza", ["dough"])

        assert menu_item_contains_allergy(pizza, "gluten", catalog) is True
        assert menu_item_contains_allergy(pizza, "dairy", catalog) is False

    def test_contains_ingredient_transitively(self, ingredients, menu_items):
        pizza = menu_items[0]

        assert menu_item_contains_ingredient(pizza, "flour", ingredients) is True
        assert menu_item_contains_ingredient(pizza, "milk", ingredients) is True
        assert menu_item_contains_ingredient(pizza, "sugar", ingredients) is False

    def test_all_ingredient_ids(self, ingredients, menu_items):
        cake = menu_items[3]

        assert get_menu_item_all_ingredient_ids(cake, ingredients) == {
            "flour", "sugar", "butter", "milk", "egg"
        }


class TestExpansionCache:

    def test_evicts_least_recently_used(self):
        cache = ExpansionCache(max_size=2)
        cache.put((("a",), 0), {"a"})
        cache.put((("b",), 0), {"b"})
        cache.get((("a",), 0))
        cache.put((("c",), 0), {"c"})

        assert len(cache) == 2
        assert cache.get((("b",), 0)) is None
        assert cache.get((("a",), 0)) == {"a"}

    def test_counts_hits_and_misses(self, ingredients):
        resolver = IngredientResolver(ingredients, cache=ExpansionCache(max_size=8))
        resolver.expand(["dough"])
        resolver.expand(["dough"])

        assert resolver.cache.misses == 1
        assert resolver.cache.hits == 1

    def test_clear_resets_entries(self):
        cache = ExpansionCache()
        cache.put((("a",), 0), {"a"})
        cache.clear()

        assert len(cache) == 0
        assert cache.hits == 0

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            ExpansionCache(max_size=0)
