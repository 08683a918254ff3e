import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from menuquiz.metrics import METRICS
from menuquiz.models import Allergy, Ingredient, MenuItem, MenuSection, RestaurantData, SectionItem
from menuquiz.resolver import clear_expansion_cache


def make_ingredient(ingredient_id, allergies=None, sub_ingredients=None, derived=None):
    return Ingredient(
        ingredient_id=ingredient_id,
        ingredient_name=ingredient_id.replace("_", " ").title(),
        ingredient_allergies=allergies or [],
        derived_allergies=derived or [],
        sub_ingredients=sub_ingredients or [],
    )


def make_menu_item(item_id, ingredient_ids, url=None):
    return MenuItem(
        id=item_id,
        menu_item_name=item_id.replace("_", " ").title(),
        menu_item_url=url,
        menu_item_ingredients=ingredient_ids,
    )


@pytest.fixture(autouse=True)
def reset_shared_state():
    clear_expansion_cache()
    METRICS.reset()
    yield
    clear_expansion_cache()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def allergies():
    return {
        allergy_id: Allergy(
            allergy_id=allergy_id,
            allergy_name=allergy_id.title(),
            allergy_logo_url=f"https://cdn.example.com/allergies/{allergy_id}.png",
        )
        for allergy_id in ("gluten", "dairy", "egg", "peanut", "shellfish")
    }


@pytest.fixture
def ingredients():
    return [
        make_ingredient("flour", allergies=["gluten"]),
        make_ingredient("milk", allergies=["dairy"]),
        make_ingredient("egg", allergies=["egg"]),
        make_ingredient("peanut", allergies=["peanut"]),
        make_ingredient("shrimp", allergies=["shellfish"]),
        make_ingredient("sugar"),
        make_ingredient("salt"),
        make_ingredient("tomato"),
        make_ingredient("basil"),
        make_ingredient("cheese", sub_ingredients=["milk"]),
        make_ingredient("dough", sub_ingredients=["flour", "salt"]),
        make_ingredient("butter", sub_ingredients=["milk"]),
    ]


@pytest.fixture
def menu_items():
    return [
        make_menu_item("pizza", ["dough", "tomato", "cheese"], url="https://cdn.example.com/pizza.jpg"),
        make_menu_item("pasta", ["flour", "egg", "tomato", "basil"], url="https://cdn.example.com/pasta.jpg"),
        make_menu_item("pad_thai", ["peanut", "shrimp", "egg"], url="https://cdn.example.com/pad_thai.jpg"),
        make_menu_item("cake", ["flour", "sugar", "butter", "egg"], url="https://cdn.example.com/cake.jpg"),
        make_menu_item("salad", ["tomato", "basil", "salt"], url="https://cdn.example.com/salad.jpg"),
        make_menu_item("shrimp_cocktail", ["shrimp"], url="https://cdn.example.com/shrimp.jpg"),
        make_menu_item("bread", ["dough"]),
    ]


@pytest.fixture
def menu_sections():
    return [
        MenuSection(
            id="mains",
            title="Mains",
            items=[SectionItem(menu_item_id=item_id) for item_id in ("pizza", "pasta", "pad_thai")],
        ),
        MenuSection(
            id="desserts",
            title="Desserts",
            items=[SectionItem(menu_item_id="cake")],
        ),
    ]


@pytest.fixture
def catalog(menu_items, ingredients, allergies, menu_sections):
    return RestaurantData(
        menu_items=menu_items,
        ingredients=ingredients,
        allergies=allergies,
        menu_sections=menu_sections,
    )
