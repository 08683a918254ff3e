"""Per-category quiz question builders.

Every builder returns ``None`` when the catalog cannot support a fair question
of its shape. Unexpected errors are logged and turned into ``None`` as well so
one malformed entity never aborts a whole generation pass.
"""
from __future__ import annotations

import functools
import logging
import random
from typing import Callable, Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from .domain import DIFFICULTY_SETTINGS
from .metrics import METRICS
from .models import (
    Allergy,
    AnswerOption,
    Difficulty,
    Ingredient,
    MenuItem,
    QuestionType,
    QuizQuestion,
)
from .resolver import IngredientResolver, resolver_for
from .sampling import (
    combine_and_shuffle_options,
    create_answer_option,
    get_random_subset,
    pick_one,
    random_source,
)

logger = logging.getLogger(__name__)

MAX_OPTIONS = 6
MIN_DISH_CORRECT = 2
MAX_DISH_CORRECT = 3
MIN_SINGLE_INGREDIENT_DISTRACTORS = 3
MAX_SINGLE_INGREDIENT_DISTRACTORS = 4
MAX_ALLERGY_CORRECT = 3
MIN_ALLERGY_INCORRECT = 3

TRUE_OPTION_ID = "true"
FALSE_OPTION_ID = "false"

Builder = Callable[..., Optional[QuizQuestion]]


def _guarded(builder: Builder) -> Builder:
    @functools.wraps(builder)
    def wrapper(*args, **kwargs) -> Optional[QuizQuestion]:
        try:
            question = builder(*args, **kwargs)
        except Exception:
            logger.exception(f"Unexpected error in {builder.__name__}")
            METRICS.record_builder_fault(builder.__name__)
            return None
        if question is None:
            logger.debug(f"{builder.__name__} found too little data for a question")
            METRICS.record_builder_empty(builder.__name__)
        return question

    return wrapper


def _suffix() -> str:
    return uuid4().hex[:8]


def _unique_options(options: Iterable[AnswerOption]) -> List[AnswerOption]:
    seen: Dict[str, AnswerOption] = {}
    for option in options:
        seen.setdefault(option.id, option)
    return list(seen.values())


def _ingredient_option(ingredient: Ingredient) -> AnswerOption:
    return create_answer_option(ingredient.ingredient_id, ingredient.ingredient_name)


def _menu_item_option(menu_item: MenuItem) -> AnswerOption:
    return create_answer_option(menu_item.id, menu_item.menu_item_name)


def _true_false_question(
    question_id: str,
    question_type: QuestionType,
    question_text: str,
    image_url: Optional[str],
    answer: bool,
) -> QuizQuestion:
    return QuizQuestion(
        id=question_id,
        type=question_type,
        question_text=question_text,
        image_url=image_url or None,
        options=[
            create_answer_option(TRUE_OPTION_ID, "True"),
            create_answer_option(FALSE_OPTION_ID, "False"),
        ],
        correct_answer_ids=[TRUE_OPTION_ID if answer else FALSE_OPTION_ID],
        is_single_choice=True,
    )


@_guarded
def generate_ingredients_in_dish_question(
    menu_item: MenuItem,
    correct_ingredients: Sequence[AnswerOption],
    all_ingredients: Sequence[Ingredient],
    rng: Optional[random.Random] = None,
    resolver: Optional[IngredientResolver] = None,
) -> Optional[QuizQuestion]:
    """Ask which ingredients make up a multi-ingredient menu item.

    Distractors are ingredients the dish does not contain at all, directly or
    through sub-ingredients, so Flour is never offered as wrong for a Pizza
    made from Dough.
    """

    correct_pool = _unique_options(correct_ingredients)
    if len(correct_pool) < MIN_DISH_CORRECT or not all_ingredients:
        return None

    resolver = resolver_for(all_ingredients, resolver)
    contained = resolver.menu_item_ingredient_ids(menu_item)
    contained.update(option.id for option in correct_pool)
    incorrect_pool = _unique_options(
        _ingredient_option(ingredient)
        for ingredient in all_ingredients
        if ingredient.ingredient_id not in contained
    )
    if not incorrect_pool:
        return None

    correct_count = min(random_source(rng).randint(MIN_DISH_CORRECT, MAX_DISH_CORRECT), len(correct_pool))
    selected_correct = get_random_subset(correct_pool, correct_count, rng)
    selected_incorrect = get_random_subset(incorrect_pool, MAX_OPTIONS - len(selected_correct), rng)

    return QuizQuestion(
        id=f"q_{menu_item.id}",
        type=QuestionType.INGREDIENTS_IN_DISH,
        question_text=f"Which ingredients are in {menu_item.menu_item_name}?",
        image_url=menu_item.menu_item_url or None,
        options=combine_and_shuffle_options(selected_correct, selected_incorrect, rng),
        correct_answer_ids=[option.id for option in selected_correct],
        is_single_choice=False,
    )


@_guarded
def generate_single_ingredient_question(
    menu_item: MenuItem,
    correct_ingredient: Optional[AnswerOption],
    all_ingredients: Sequence[Ingredient],
    all_menu_items: Sequence[MenuItem],
    rng: Optional[random.Random] = None,
    resolver: Optional[IngredientResolver] = None,
) -> Optional[QuizQuestion]:
    """Ask which menu item contains the only ingredient of ``menu_item``."""

    if correct_ingredient is None or not all_menu_items:
        return None

    resolver = resolver_for(all_ingredients, resolver)
    distractors = _unique_options(
        _menu_item_option(item)
        for item in all_menu_items
        if item.id != menu_item.id
        and not resolver.menu_item_contains_ingredient(item, correct_ingredient.id)
    )
    if len(distractors) < MIN_SINGLE_INGREDIENT_DISTRACTORS:
        return None

    distractor_count = random_source(rng).randint(
        MIN_SINGLE_INGREDIENT_DISTRACTORS, MAX_SINGLE_INGREDIENT_DISTRACTORS
    )
    selected_incorrect = get_random_subset(distractors, distractor_count, rng)
    correct_option = _menu_item_option(menu_item)

    return QuizQuestion(
        id=f"q_single_{menu_item.id}",
        type=QuestionType.INGREDIENTS_IN_DISH,
        question_text=f"Which menu item contains {correct_ingredient.text}?",
        image_url=None,
        options=combine_and_shuffle_options([correct_option], selected_incorrect, rng),
        correct_answer_ids=[correct_option.id],
        is_single_choice=True,
    )


@_guarded
def generate_ingredients_with_allergy_question(
    allergy: Allergy,
    all_ingredients: Sequence[Ingredient],
    rng: Optional[random.Random] = None,
    resolver: Optional[IngredientResolver] = None,
) -> Optional[QuizQuestion]:
    """Ask which ingredients carry ``allergy``, sub-ingredients included."""

    if not all_ingredients or not allergy.allergy_id:
        return None

    resolver = resolver_for(all_ingredients, resolver)
    with_allergy: List[AnswerOption] = []
    without_allergy: List[AnswerOption] = []
    for ingredient in all_ingredients:
        if resolver.ingredient_has_allergy(ingredient, allergy.allergy_id):
            with_allergy.append(_ingredient_option(ingredient))
        else:
            without_allergy.append(_ingredient_option(ingredient))
    with_allergy = _unique_options(with_allergy)
    without_allergy = _unique_options(without_allergy)

    if len(with_allergy) < 1 or len(without_allergy) < MIN_ALLERGY_INCORRECT:
        return None

    correct_count = random_source(rng).randint(1, min(MAX_ALLERGY_CORRECT, len(with_allergy)))
    selected_correct = get_random_subset(with_allergy, correct_count, rng)
    selected_incorrect = get_random_subset(without_allergy, MAX_OPTIONS - correct_count, rng)

    return QuizQuestion(
        id=f"q_allergy_{allergy.allergy_id}",
        type=QuestionType.INGREDIENTS_WITH_ALLERGY,
        question_text=f"Which ingredients contain the {allergy.allergy_name} allergy?",
        image_url=allergy.allergy_logo_url or None,
        options=combine_and_shuffle_options(selected_correct, selected_incorrect, rng),
        correct_answer_ids=[option.id for option in selected_correct],
        is_single_choice=False,
    )


def _ingredient_allergy_question(
    ingredient: Ingredient,
    allergy: Allergy,
    resolver: IngredientResolver,
    question_type: QuestionType,
) -> QuizQuestion:
    return _true_false_question(
        question_id=f"q_ingredient_allergy_{ingredient.ingredient_id}_{allergy.allergy_id}_{_suffix()}",
        question_type=question_type,
        question_text=f'Does "{ingredient.ingredient_name}" contain the {allergy.allergy_name} allergy?',
        image_url=ingredient.ingredient_image_url,
        answer=resolver.ingredient_has_allergy(ingredient, allergy.allergy_id),
    )


def _menu_item_allergy_question(
    menu_item: MenuItem,
    allergy: Allergy,
    resolver: IngredientResolver,
    question_type: QuestionType,
) -> QuizQuestion:
    return _true_false_question(
        question_id=f"q_menu_item_allergy_{menu_item.id}_{allergy.allergy_id}_{_suffix()}",
        question_type=question_type,
        question_text=f'Does "{menu_item.menu_item_name}" contain the {allergy.allergy_name} allergy?',
        image_url=menu_item.menu_item_url,
        answer=resolver.menu_item_contains_allergy(menu_item, allergy.allergy_id),
    )


@_guarded
def generate_ingredient_contains_allergy_question(
    all_ingredients: Sequence[Ingredient],
    allergies: Dict[str, Allergy],
    rng: Optional[random.Random] = None,
    resolver: Optional[IngredientResolver] = None,
) -> Optional[QuizQuestion]:
    if not all_ingredients or not allergies:
        return None

    resolver = resolver_for(all_ingredients, resolver)
    allergy = pick_one(list(allergies.values()), rng)
    ingredient = pick_one(all_ingredients, rng)
    return _ingredient_allergy_question(
        ingredient, allergy, resolver, QuestionType.INGREDIENT_CONTAINS_ALLERGY
    )


@_guarded
def generate_menu_item_contains_allergy_question(
    all_menu_items: Sequence[MenuItem],
    all_ingredients: Sequence[Ingredient],
    allergies: Dict[str, Allergy],
    rng: Optional[random.Random] = None,
    resolver: Optional[IngredientResolver] = None,
) -> Optional[QuizQuestion]:
    if not all_menu_items or not all_ingredients or not allergies:
        return None

    resolver = resolver_for(all_ingredients, resolver)
    allergy = pick_one(list(allergies.values()), rng)
    menu_item = pick_one(all_menu_items, rng)
    return _menu_item_allergy_question(
        menu_item, allergy, resolver, QuestionType.MENU_ITEM_CONTAINS_ALLERGY
    )


@_guarded
def generate_ingredient_or_menu_item_contains_allergy_question(
    all_ingredients: Sequence[Ingredient],
    all_menu_items: Sequence[MenuItem],
    allergies: Dict[str, Allergy],
    rng: Optional[random.Random] = None,
    resolver: Optional[IngredientResolver] = None,
) -> Optional[QuizQuestion]:
    """Flip a coin between an ingredient and a menu item allergy question."""

    if not all_ingredients or not all_menu_items or not allergies:
        return None

    resolver = resolver_for(all_ingredients, resolver)
    question_type = QuestionType.INGREDIENT_OR_MENU_ITEM_CONTAINS_ALLERGY
    allergy = pick_one(list(allergies.values()), rng)
    if random_source(rng).random() < 0.5:
        ingredient = pick_one(all_ingredients, rng)
        return _ingredient_allergy_question(ingredient, allergy, resolver, question_type)
    menu_item = pick_one(all_menu_items, rng)
    return _menu_item_allergy_question(menu_item, allergy, resolver, question_type)


@_guarded
def generate_menu_item_contains_ingredient_question(
    menu_item: MenuItem,
    all_ingredients: Sequence[Ingredient],
    rng: Optional[random.Random] = None,
    resolver: Optional[IngredientResolver] = None,
) -> Optional[QuizQuestion]:
    if not menu_item.menu_item_ingredients or not all_ingredients:
        return None

    resolver = resolver_for(all_ingredients, resolver)
    contained = resolver.menu_item_ingredient_ids(menu_item)
    in_item = [ingredient for ingredient in all_ingredients if ingredient.ingredient_id in contained]
    not_in_item = [
        ingredient for ingredient in all_ingredients if ingredient.ingredient_id not in contained
    ]
    if not in_item or not not_in_item:
        return None

    ask_about_contained = random_source(rng).random() < 0.5
    ingredient = pick_one(in_item if ask_about_contained else not_in_item, rng)

    return _true_false_question(
        question_id=f"q_contains_{menu_item.id}_{ingredient.ingredient_id}_{_suffix()}",
        question_type=QuestionType.MENU_ITEM_CONTAINS_INGREDIENT,
        question_text=f'Does "{menu_item.menu_item_name}" contain {ingredient.ingredient_name}?',
        image_url=menu_item.menu_item_url,
        answer=ask_about_contained,
    )


@_guarded
def generate_which_menu_item_is_this_question(
    all_menu_items: Sequence[MenuItem],
    difficulty: Difficulty = Difficulty.MEDIUM,
    rng: Optional[random.Random] = None,
    target: Optional[MenuItem] = None,
) -> Optional[QuizQuestion]:
    """Show a menu item's picture and ask the learner to name it.

    When ``target`` is given it becomes the pictured item, provided it has an
    image; otherwise an item with an image is drawn at random.
    """

    if not all_menu_items:
        return None

    settings = DIFFICULTY_SETTINGS[difficulty]
    with_images = [
        item for item in all_menu_items if item.menu_item_url and item.menu_item_url.strip()
    ]
    if target is not None:
        with_images = [item for item in with_images if item.id == target.id][:1]
    if not with_images:
        return None

    correct_item = pick_one(with_images, rng)
    distractors = _unique_options(
        _menu_item_option(item) for item in all_menu_items if item.id != correct_item.id
    )
    incorrect_count = settings.total_choices - 1
    if len(distractors) < incorrect_count:
        return None

    correct_option = _menu_item_option(correct_item)
    selected_incorrect = get_random_subset(distractors, incorrect_count, rng)

    return QuizQuestion(
        id=f"q_which_menu_item_{correct_item.id}_{_suffix()}",
        type=QuestionType.WHICH_MENU_ITEM_IS_THIS,
        question_text="Which menu item is this?",
        image_url=correct_item.menu_item_url,
        options=combine_and_shuffle_options([correct_option], selected_incorrect, rng),
        correct_answer_ids=[correct_option.id],
        is_single_choice=True,
    )


__all__ = [
    "FALSE_OPTION_ID",
    "MAX_OPTIONS",
    "TRUE_OPTION_ID",
    "generate_ingredient_contains_allergy_question",
    "generate_ingredient_or_menu_item_contains_allergy_question",
    "generate_ingredients_in_dish_question",
    "generate_ingredients_with_allergy_question",
    "generate_menu_item_contains_allergy_question",
    "generate_menu_item_contains_ingredient_question",
    "generate_single_ingredient_question",
    "generate_which_menu_item_is_this_question",
]
