"""Ingredient composition graph traversal and allergy closure."""
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, FrozenSet, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

from .models import Ingredient, MenuItem

ExpansionKey = Tuple[Tuple[str, ...], Hashable]


class ExpansionCache:
    """Bounded LRU map from expansion keys to closed ingredient ID sets."""

    def __init__(self, max_size: int = 1024) -> None:
        if max_size < 1:
            raise ValueError("Expansion cache size must be positive")
        self._max_size = max_size
        self._entries: "OrderedDict[ExpansionKey, FrozenSet[str]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: ExpansionKey) -> Optional[Set[str]]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
        # callers may mutate the result
        return set(value)

    def put(self, key: ExpansionKey, value: Iterable[str]) -> None:
        with self._lock:
            self._entries[key] = frozenset(value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


def _catalog_fingerprint(ingredients: Sequence[Ingredient]) -> Hashable:
    edges = tuple(
        (ingredient.ingredient_id, tuple(ingredient.sub_ingredients)) for ingredient in ingredients
    )
    return (len(ingredients), hash(edges))


class IngredientResolver:
    """Answers composition questions over one immutable ingredient catalog.

    Ingredients are indexed by ID and sub-ingredient edges are followed by ID
    lookups with explicit visited sets, so cyclic compositions terminate.
    """

    def __init__(
        self, ingredients: Sequence[Ingredient], cache: Optional[ExpansionCache] = None
    ) -> None:
        self._ingredients: List[Ingredient] = list(ingredients)
        self._by_id: Dict[str, Ingredient] = {
            ingredient.ingredient_id: ingredient for ingredient in self._ingredients
        }
        self._fingerprint = _catalog_fingerprint(self._ingredients)
        self._cache = cache if cache is not None else ExpansionCache()
        self._allergy_closures: Dict[str, FrozenSet[str]] = {}

    @property
    def ingredients(self) -> List[Ingredient]:
        return self._ingredients

    @property
    def cache(self) -> ExpansionCache:
        return self._cache

    def get(self, ingredient_id: str) -> Optional[Ingredient]:
        return self._by_id.get(ingredient_id)

    def expand(self, ids: Iterable[str]) -> Set[str]:
        """Return ``ids`` plus every ingredient reachable through sub-ingredients.

        Unknown IDs are kept verbatim; they simply have no outgoing edges.
        """

        ids = list(ids)
        if not ids:
            return set()
        key: ExpansionKey = (tuple(sorted(ids)), self._fingerprint)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        expanded: Set[str] = set()
        stack = list(ids)
        while stack:
            current = stack.pop()
            if current in expanded:
                continue
            expanded.add(current)
            ingredient = self._by_id.get(current)
            if ingredient is not None:
                stack.extend(sub_id for sub_id in ingredient.sub_ingredients if sub_id not in expanded)

        self._cache.put(key, expanded)
        return set(expanded)

    def allergy_closure(
        self, ingredient: Ingredient, visited: Optional[Set[str]] = None
    ) -> Set[str]:
        """Union of direct, derived and sub-ingredient allergies.

        ``visited`` is shared across the whole traversal; an ingredient already
        in it contributes nothing. The walk uses an explicit stack, so nesting
        depth is unbounded.
        """

        if visited is None:
            visited = set()
        allergies: Set[str] = set()
        stack = [ingredient]
        while stack:
            current = stack.pop()
            if current.ingredient_id in visited:
                continue
            visited.add(current.ingredient_id)
            allergies.update(current.ingredient_allergies)
            allergies.update(current.derived_allergies)
            for sub_id in current.sub_ingredients:
                sub_ingredient = self._by_id.get(sub_id)
                if sub_ingredient is not None and sub_id not in visited:
                    stack.append(sub_ingredient)
        return allergies

    def all_allergies(self, ingredient: Ingredient) -> FrozenSet[str]:
        closure = self._allergy_closures.get(ingredient.ingredient_id)
        if closure is None:
            closure = frozenset(self.allergy_closure(ingredient))
            self._allergy_closures[ingredient.ingredient_id] = closure
        return closure

    def ingredient_has_allergy(self, ingredient: Ingredient, allergy_id: str) -> bool:
        return allergy_id in self.all_allergies(ingredient)

    def menu_item_ingredient_ids(self, menu_item: MenuItem) -> Set[str]:
        return self.expand(menu_item.menu_item_ingredients)

    def menu_item_contains_ingredient(self, menu_item: MenuItem, ingredient_id: str) -> bool:
        return ingredient_id in self.menu_item_ingredient_ids(menu_item)

    def menu_item_contains_allergy(self, menu_item: MenuItem, allergy_id: str) -> bool:
        for ingredient_id in self.menu_item_ingredient_ids(menu_item):
            ingredient = self._by_id.get(ingredient_id)
            if ingredient is not None and self.ingredient_has_allergy(ingredient, allergy_id):
                return True
        return False


_SHARED_CACHE = ExpansionCache()


def resolver_for(
    all_ingredients: Sequence[Ingredient], resolver: Optional[IngredientResolver] = None
) -> IngredientResolver:
    """Reuse ``resolver`` when given, otherwise index ``all_ingredients`` over the shared cache."""

    if resolver is not None:
        return resolver
    return IngredientResolver(all_ingredients, cache=_SHARED_CACHE)


def expand_ingredient_ids(ids: Iterable[str], all_ingredients: Sequence[Ingredient]) -> Set[str]:
    return resolver_for(all_ingredients).expand(ids)


def get_ingredient_all_allergies(
    ingredient: Ingredient,
    all_ingredients: Sequence[Ingredient],
    visited: Optional[Set[str]] = None,
) -> Set[str]:
    return resolver_for(all_ingredients).allergy_closure(ingredient, visited)


def get_menu_item_all_ingredient_ids(
    menu_item: MenuItem, all_ingredients: Sequence[Ingredient]
) -> Set[str]:
    return expand_ingredient_ids(menu_item.menu_item_ingredients, all_ingredients)


def menu_item_contains_ingredient(
    menu_item: MenuItem, ingredient_id: str, all_ingredients: Sequence[Ingredient]
) -> bool:
    return resolver_for(all_ingredients).menu_item_contains_ingredient(menu_item, ingredient_id)


def menu_item_contains_allergy(
    menu_item: MenuItem, allergy_id: str, all_ingredients: Sequence[Ingredient]
) -> bool:
    return resolver_for(all_ingredients).menu_item_contains_allergy(menu_item, allergy_id)


def clear_expansion_cache() -> None:
    _SHARED_CACHE.clear()


__all__ = [
    "ExpansionCache",
    "IngredientResolver",
    "clear_expansion_cache",
    "expand_ingredient_ids",
    "get_ingredient_all_allergies",
    "get_menu_item_all_ingredient_ids",
    "menu_item_contains_allergy",
    "menu_item_contains_ingredient",
    "resolver_for",
]
