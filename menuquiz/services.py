"""Quiz assembly scheduler and the quiz session workflow."""
from __future__ import annotations

import logging
import math
import random
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .builders import (
    generate_ingredient_contains_allergy_question,
    generate_ingredient_or_menu_item_contains_allergy_question,
    generate_ingredients_in_dish_question,
    generate_ingredients_with_allergy_question,
    generate_menu_item_contains_allergy_question,
    generate_menu_item_contains_ingredient_question,
    generate_single_ingredient_question,
    generate_which_menu_item_is_this_question,
)
from .domain import ALLERGY_QUESTION_TYPES, MENU_ITEM_QUESTION_TYPES, GeneratorConfig
from .metrics import METRICS
from .models import (
    Allergy,
    AnswerOption,
    Difficulty,
    MenuItem,
    QuestionGeneratorResult,
    QuestionType,
    QuizConfiguration,
    QuizQuestion,
    QuizState,
    RestaurantData,
)
from .repositories import QuizStateRepository
from .resolver import ExpansionCache, IngredientResolver
from .sampling import create_answer_option, pick_one, random_source, shuffle_array
from .validators import ValidationError, validate_question

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_TYPES: Tuple[QuestionType, ...] = (
    QuestionType.INGREDIENTS_WITH_ALLERGY,
    QuestionType.INGREDIENTS_IN_DISH,
)

ALLERGY_BUCKET = "allergy"
MENU_ITEM_BUCKET = "menu_item"


@dataclass
class MenuItemEntry:
    """Menu item paired with answer options for its resolvable direct ingredients."""

    menu_item: MenuItem
    ingredients: List[AnswerOption]


def partition_menu_items(
    menu_items: Sequence[MenuItem], resolver: IngredientResolver
) -> Tuple[List[MenuItemEntry], List[MenuItemEntry]]:
    """Split menu items into multi-ingredient (>=2) and single-ingredient entries."""

    multi: List[MenuItemEntry] = []
    single: List[MenuItemEntry] = []
    for menu_item in menu_items:
        options: Dict[str, AnswerOption] = {}
        for ingredient_id in menu_item.menu_item_ingredients:
            ingredient = resolver.get(ingredient_id)
            if ingredient is not None:
                options.setdefault(
                    ingredient_id,
                    create_answer_option(ingredient.ingredient_id, ingredient.ingredient_name),
                )
        entry = MenuItemEntry(menu_item=menu_item, ingredients=list(options.values()))
        if len(entry.ingredients) >= 2:
            multi.append(entry)
        elif len(entry.ingredients) == 1:
            single.append(entry)
    return multi, single


class _GenerationPass:
    """Mutable state of one scheduler run over an immutable catalog."""

    def __init__(
        self,
        restaurant_data: RestaurantData,
        question_types: Sequence[QuestionType],
        difficulty: Difficulty,
        config: GeneratorConfig,
        rng: Optional[random.Random],
    ) -> None:
        self._data = restaurant_data
        self._difficulty = difficulty
        self._config = config
        self._rng = rng
        self._source = random_source(rng)
        self.resolver = IngredientResolver(
            restaurant_data.ingredients, cache=ExpansionCache(config.expansion_cache_size)
        )
        self.multi_items, self.single_items = partition_menu_items(
            restaurant_data.menu_items, self.resolver
        )
        self._allergy_pool: List[Allergy] = list(restaurant_data.allergies.values())

        enabled = set(question_types)
        self.allergy_types = [qt for qt in QuestionType if qt in enabled and qt in ALLERGY_QUESTION_TYPES]
        self.menu_item_types = [
            qt for qt in QuestionType if qt in enabled and qt in MENU_ITEM_QUESTION_TYPES
        ]

        self.questions: List[QuizQuestion] = []
        self.allergy_question_count = 0
        self.menu_item_question_count = 0
        self._used_allergy_ids: Set[str] = set()
        self._used_menu_item_ids: Set[str] = set()

    @property
    def allergy_enabled(self) -> bool:
        return bool(self.allergy_types and self._allergy_pool)

    @property
    def menu_item_enabled(self) -> bool:
        return bool(self.menu_item_types and (self.multi_items or self.single_items))

    def run(self, question_count: int) -> None:
        ratio = self._config.min_bucket_ratio
        min_allergy = math.floor(question_count * ratio) if self.allergy_enabled else 0
        min_menu_item = math.floor(question_count * ratio) if self.menu_item_enabled else 0
        max_attempts = question_count * self._config.max_attempts_per_question
        failure_limit = self._config.max_attempts_per_question
        failures = {ALLERGY_BUCKET: 0, MENU_ITEM_BUCKET: 0}

        attempts = 0
        while len(self.questions) < question_count and attempts < max_attempts:
            attempts += 1
            remaining = question_count - len(self.questions)
            allergy_needed = max(0, min_allergy - self.allergy_question_count)
            menu_item_needed = max(0, min_menu_item - self.menu_item_question_count)

            if allergy_needed and remaining <= allergy_needed:
                order = (ALLERGY_BUCKET, MENU_ITEM_BUCKET)
            elif menu_item_needed and remaining <= menu_item_needed:
                order = (MENU_ITEM_BUCKET,)
            elif len(self.questions) % 2 == 0:
                order = (ALLERGY_BUCKET, MENU_ITEM_BUCKET)
            else:
                order = (MENU_ITEM_BUCKET, ALLERGY_BUCKET)

            for bucket in order:
                if self._add_question(bucket):
                    failures[bucket] = 0
                    break
                failures[bucket] += 1

            # a bucket whose builders keep failing no longer holds slots back
            if failures[ALLERGY_BUCKET] >= failure_limit and min_allergy > self.allergy_question_count:
                logger.warning(
                    f"Allergy questions failed {failures[ALLERGY_BUCKET]} times in a row, "
                    f"dropping the allergy minimum of {min_allergy}"
                )
                min_allergy = self.allergy_question_count
            if (
                failures[MENU_ITEM_BUCKET] >= failure_limit
                and min_menu_item > self.menu_item_question_count
            ):
                logger.warning(
                    f"Menu item questions failed {failures[MENU_ITEM_BUCKET]} times in a row, "
                    f"dropping the menu item minimum of {min_menu_item}"
                )
                min_menu_item = self.menu_item_question_count

        logger.info(
            f"Generated {len(self.questions)}/{question_count} questions in {attempts} attempts "
            f"({self.allergy_question_count} allergy, {self.menu_item_question_count} menu item)"
        )

    def _add_question(self, bucket: str) -> bool:
        if bucket == ALLERGY_BUCKET:
            return self.allergy_enabled and self._add_allergy_question()
        return self.menu_item_enabled and self._add_menu_item_question()

    # region Allergy bucket
    def _allergy_candidates(self) -> List[Allergy]:
        unused = [a for a in self._allergy_pool if a.allergy_id not in self._used_allergy_ids]
        used = [a for a in self._allergy_pool if a.allergy_id in self._used_allergy_ids]
        return shuffle_array(unused, self._rng) + shuffle_array(used, self._rng)

    def _build_allergy_question(
        self, allergy: Allergy, question_type: QuestionType
    ) -> Optional[QuizQuestion]:
        ingredients = self._data.ingredients
        only_allergy = {allergy.allergy_id: allergy}
        if question_type == QuestionType.INGREDIENTS_WITH_ALLERGY:
            return generate_ingredients_with_allergy_question(
                allergy, ingredients, rng=self._rng, resolver=self.resolver
            )
        if question_type == QuestionType.INGREDIENT_CONTAINS_ALLERGY:
            return generate_ingredient_contains_allergy_question(
                ingredients, only_allergy, rng=self._rng, resolver=self.resolver
            )
        if question_type == QuestionType.MENU_ITEM_CONTAINS_ALLERGY:
            return generate_menu_item_contains_allergy_question(
                self._data.menu_items, ingredients, only_allergy, rng=self._rng, resolver=self.resolver
            )
        return generate_ingredient_or_menu_item_contains_allergy_question(
            ingredients, self._data.menu_items, only_allergy, rng=self._rng, resolver=self.resolver
        )

    def _add_allergy_question(self) -> bool:
        for allergy in self._allergy_candidates():
            question_type = pick_one(self.allergy_types, self._rng)
            question = self._build_allergy_question(allergy, question_type)
            if question is None:
                continue
            question = question.model_copy(
                update={"id": f"allergy_{allergy.allergy_id}_{len(self.questions)}"}
            )
            if not self._accept(question):
                continue
            self._used_allergy_ids.add(allergy.allergy_id)
            self.allergy_question_count += 1
            return True
        return False

    # endregion

    # region Menu item bucket
    def _next_menu_item(self) -> Optional[MenuItemEntry]:
        used = self._used_menu_item_ids
        unused_multi = [e for e in self.multi_items if e.menu_item.id not in used]
        unused_single = [e for e in self.single_items if e.menu_item.id not in used]
        preference = self._config.multi_ingredient_preference

        if unused_multi and unused_single:
            use_multi = self._source.random() < preference
        elif unused_multi or unused_single:
            use_multi = bool(unused_multi)
        elif self.multi_items and self.single_items:
            use_multi = self._source.random() < preference
        else:
            use_multi = bool(self.multi_items)

        bucket = self.multi_items if use_multi else self.single_items
        available = unused_multi if use_multi else unused_single
        if not available:
            label = "multi" if use_multi else "single"
            logger.debug(f"All {label}-ingredient menu items used, resetting for more questions")
            used.difference_update(entry.menu_item.id for entry in bucket)
            available = list(bucket)

        entry = pick_one(available, self._rng)
        if entry is not None:
            used.add(entry.menu_item.id)
        return entry

    def _build_menu_item_question(
        self, entry: MenuItemEntry, question_type: QuestionType
    ) -> Optional[QuizQuestion]:
        ingredients = self._data.ingredients
        if question_type == QuestionType.MENU_ITEM_CONTAINS_INGREDIENT:
            return generate_menu_item_contains_ingredient_question(
                entry.menu_item, ingredients, rng=self._rng, resolver=self.resolver
            )
        if question_type == QuestionType.WHICH_MENU_ITEM_IS_THIS:
            return generate_which_menu_item_is_this_question(
                self._data.menu_items, self._difficulty, rng=self._rng, target=entry.menu_item
            )
        if len(entry.ingredients) >= 2:
            return generate_ingredients_in_dish_question(
                entry.menu_item, entry.ingredients, ingredients, rng=self._rng, resolver=self.resolver
            )
        return generate_single_ingredient_question(
            entry.menu_item,
            entry.ingredients[0],
            ingredients,
            self._data.menu_items,
            rng=self._rng,
            resolver=self.resolver,
        )

    def _add_menu_item_question(self) -> bool:
        entry = self._next_menu_item()
        if entry is None:
            return False
        question_type = pick_one(self.menu_item_types, self._rng)
        question = self._build_menu_item_question(entry, question_type)
        if question is None:
            return False
        question = question.model_copy(update={"id": f"{entry.menu_item.id}_{len(self.questions)}"})
        if not self._accept(question):
            return False
        self.menu_item_question_count += 1
        return True

    # endregion

    def _accept(self, question: QuizQuestion) -> bool:
        try:
            validate_question(question)
        except ValidationError as exc:
            logger.warning(f"Discarding invalid question {question.id}: {exc}")
            METRICS.record_builder_fault("validation")
            return False
        self.questions.append(question)
        METRICS.record_question(question.type.value)
        return True


class QuizGenerator:
    """Builds balanced quizzes of an exact size from a restaurant catalog."""

    def __init__(
        self, config: Optional[GeneratorConfig] = None, rng: Optional[random.Random] = None
    ) -> None:
        self._config = config or GeneratorConfig()
        self._rng = rng

    def generate(
        self,
        restaurant_data: RestaurantData,
        question_count: int,
        question_types: Optional[Iterable[QuestionType]] = None,
        difficulty: Difficulty = Difficulty.MEDIUM,
    ) -> QuestionGeneratorResult:
        METRICS.record_generation_attempt()
        result = self._generate(
            restaurant_data,
            question_count,
            list(question_types) if question_types is not None else list(DEFAULT_QUESTION_TYPES),
            difficulty,
        )
        if result.questions:
            METRICS.record_generation_success(len(result.questions))
        else:
            METRICS.record_generation_failure(result.error or "unknown")
        return result

    def _generate(
        self,
        restaurant_data: RestaurantData,
        question_count: int,
        question_types: List[QuestionType],
        difficulty: Difficulty,
    ) -> QuestionGeneratorResult:
        if question_count <= 0:
            return QuestionGeneratorResult(error="Question count must be positive")
        if not restaurant_data.menu_items or not restaurant_data.ingredients:
            return QuestionGeneratorResult(error="Not enough data to generate questions")
        if not question_types:
            return QuestionGeneratorResult(error="No question types selected")

        generation = _GenerationPass(
            restaurant_data, question_types, difficulty, self._config, self._rng
        )
        logger.info(
            f"Generating {question_count} questions with difficulty {difficulty.value}: "
            f"{len(generation.multi_items)} multi-ingredient items, "
            f"{len(generation.single_items)} single-ingredient items, "
            f"{len(restaurant_data.allergies)} allergies"
        )
        if not generation.multi_items and not generation.single_items:
            return QuestionGeneratorResult(error="No menu items with ingredients to build questions from")
        if not generation.allergy_enabled and not generation.menu_item_enabled:
            return QuestionGeneratorResult(
                error="No valid question types available for this restaurant data"
            )

        generation.run(question_count)
        questions = shuffle_array(generation.questions, self._rng)

        if not questions:
            return QuestionGeneratorResult(error="No valid questions could be generated")
        if len(questions) < question_count:
            logger.warning(
                f"Attempt budget exhausted after {len(questions)} of {question_count} questions"
            )
            return QuestionGeneratorResult(
                questions=questions,
                error=f"Only generated {len(questions)} of {question_count} questions",
            )
        return QuestionGeneratorResult(questions=questions)


def generate_quiz_questions(
    restaurant_data: RestaurantData,
    question_count: int,
    question_types: Optional[Iterable[QuestionType]] = None,
    difficulty: Difficulty = Difficulty.MEDIUM,
    rng: Optional[random.Random] = None,
    config: Optional[GeneratorConfig] = None,
) -> QuestionGeneratorResult:
    """Generate exactly ``question_count`` questions when the catalog allows it."""

    generator = QuizGenerator(config=config, rng=rng)
    return generator.generate(restaurant_data, question_count, question_types, difficulty)


def filter_menu_items_by_sections(
    restaurant_data: RestaurantData, menu_section_ids: Sequence[str]
) -> RestaurantData:
    """Restrict the catalog to menu items listed in the selected sections."""

    if not menu_section_ids or not restaurant_data.menu_sections:
        return restaurant_data
    selected = set(menu_section_ids)
    allowed_ids = {
        item.menu_item_id
        for section in restaurant_data.menu_sections
        if section.id in selected
        for item in section.items
    }
    menu_items = [item for item in restaurant_data.menu_items if item.id in allowed_ids]
    return restaurant_data.model_copy(update={"menu_items": menu_items})


def is_answer_correct(selected_ids: Sequence[str], correct_ids: Sequence[str]) -> bool:
    """Exact set comparison; order does not matter, partial answers do."""

    return len(selected_ids) == len(correct_ids) and set(selected_ids) == set(correct_ids)


class QuizStateError(ValueError):
    """Raised when a session operation is not allowed in the current state."""


class QuizSessionService:
    """Drives the quiz lifecycle: idle, loading, in progress, completed."""

    def __init__(
        self, repository: QuizStateRepository, generator: Optional[QuizGenerator] = None
    ) -> None:
        self._repository = repository
        self._generator = generator or QuizGenerator()
        self._sessions: Dict[str, QuizState] = {}
        self._lock = threading.Lock()

    def get_state(self, session_id: str) -> QuizState:
        """Return the live state, restoring a persisted in-progress or completed quiz."""

        with self._lock:
            state = self._sessions.get(session_id)
        if state is not None:
            return state
        stored = self._repository.load(session_id)
        if stored is not None and (stored.in_progress or stored.completed):
            with self._lock:
                self._sessions[session_id] = stored
            return stored
        return QuizState()

    def start_quiz(
        self,
        session_id: str,
        restaurant_data: RestaurantData,
        configuration: Optional[QuizConfiguration] = None,
    ) -> QuizState:
        """Generate questions and enter the quiz; only idle, failed or completed sessions may start."""

        current = self.get_state(session_id)
        if current.in_progress or current.loading:
            raise QuizStateError(
                f"Session {session_id} already has a quiz in progress; reset it first"
            )
        configuration = configuration or QuizConfiguration()
        self._commit(
            session_id,
            QuizState(
                loading=True,
                total_questions=configuration.question_count,
                configuration=configuration,
            ),
        )

        catalog = filter_menu_items_by_sections(restaurant_data, configuration.menu_section_ids)
        logger.info(f"[{session_id}] Starting quiz with {len(catalog.menu_items)} menu items")
        try:
            result = self._generator.generate(
                catalog,
                configuration.question_count,
                configuration.question_types,
                configuration.difficulty,
            )
        except Exception as exc:  # pragma: no cover - defensive logging path
            logger.exception(f"[{session_id}] Quiz generation failed")
            result = QuestionGeneratorResult(error=str(exc) or "Failed to start quiz")

        if not result.questions:
            state = QuizState(
                error=result.error or "Failed to generate any questions",
                configuration=configuration,
            )
            logger.info(f"[{session_id}] Quiz not started: {state.error}")
        else:
            state = QuizState(
                questions=result.questions,
                total_questions=len(result.questions),
                in_progress=True,
                error=result.error,
                configuration=configuration,
            )
        self._commit(session_id, state)
        return state

    def answer_question(self, session_id: str, selected_answer_ids: Sequence[str]) -> QuizState:
        """Record the learner's selection for the current question without scoring it."""

        state = self._require_in_progress(session_id)
        answers = dict(state.user_answers)
        answers[state.current_question_index] = list(selected_answer_ids)
        state = state.model_copy(update={"user_answers": answers})
        self._commit(session_id, state)
        return state

    def submit_answer(self, session_id: str) -> Tuple[bool, QuizState]:
        """Score the current answer and advance, completing the quiz on the last question."""

        state = self._require_in_progress(session_id)
        index = state.current_question_index
        question = state.questions[index]
        selected = state.user_answers.get(index, [])
        correct = is_answer_correct(selected, question.correct_answer_ids)
        METRICS.record_answer(correct)

        update = {"score": state.score + (1 if correct else 0)}
        if index == len(state.questions) - 1:
            update.update(completed=True, in_progress=False)
        else:
            update["current_question_index"] = index + 1
        state = state.model_copy(update=update)
        self._commit(session_id, state)
        return correct, state

    def reset_quiz(self, session_id: str) -> QuizState:
        with self._lock:
            self._sessions.pop(session_id, None)
        self._repository.delete(session_id)
        return QuizState()

    def _require_in_progress(self, session_id: str) -> QuizState:
        state = self.get_state(session_id)
        if not state.in_progress or not state.questions:
            raise QuizStateError(f"No quiz in progress for session {session_id}")
        return state

    def _commit(self, session_id: str, state: QuizState) -> None:
        with self._lock:
            self._sessions[session_id] = state
        self._repository.save(session_id, state)


__all__ = [
    "DEFAULT_QUESTION_TYPES",
    "MenuItemEntry",
    "QuizGenerator",
    "QuizSessionService",
    "QuizStateError",
    "filter_menu_items_by_sections",
    "generate_quiz_questions",
    "is_answer_correct",
    "partition_menu_items",
]
