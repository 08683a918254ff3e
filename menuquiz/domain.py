"""Difficulty presets and tunables shared across the generator and services."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from .models import Difficulty, QuestionType, QuizConfiguration, QuizMode


@dataclass(frozen=True)
class DifficultySettings:
    total_choices: int
    min_correct: int
    max_correct: int


DIFFICULTY_SETTINGS: Dict[Difficulty, DifficultySettings] = {
    Difficulty.EASY: DifficultySettings(total_choices=2, min_correct=1, max_correct=1),
    Difficulty.MEDIUM: DifficultySettings(total_choices=4, min_correct=1, max_correct=3),
    Difficulty.HARD: DifficultySettings(total_choices=6, min_correct=1, max_correct=5),
}


@dataclass(frozen=True)
class QuizModeSettings:
    question_count: int
    difficulty: Difficulty
    question_types: List[QuestionType] = field(default_factory=list)


QUIZ_MODE_SETTINGS: Dict[QuizMode, QuizModeSettings] = {
    QuizMode.EASY: QuizModeSettings(
        question_count=5,
        difficulty=Difficulty.EASY,
        question_types=[
            QuestionType.MENU_ITEM_CONTAINS_INGREDIENT,
            QuestionType.INGREDIENTS_IN_DISH,
        ],
    ),
    QuizMode.MEDIUM: QuizModeSettings(
        question_count=10,
        difficulty=Difficulty.MEDIUM,
        question_types=[
            QuestionType.MENU_ITEM_CONTAINS_INGREDIENT,
            QuestionType.INGREDIENTS_IN_DISH,
            QuestionType.INGREDIENT_CONTAINS_ALLERGY,
        ],
    ),
    QuizMode.HARD: QuizModeSettings(
        question_count=20,
        difficulty=Difficulty.HARD,
        question_types=list(QuestionType),
    ),
}

ALLERGY_QUESTION_TYPES: FrozenSet[QuestionType] = frozenset(
    {
        QuestionType.INGREDIENTS_WITH_ALLERGY,
        QuestionType.INGREDIENT_CONTAINS_ALLERGY,
        QuestionType.MENU_ITEM_CONTAINS_ALLERGY,
        QuestionType.INGREDIENT_OR_MENU_ITEM_CONTAINS_ALLERGY,
    }
)
MENU_ITEM_QUESTION_TYPES: FrozenSet[QuestionType] = frozenset(
    {
        QuestionType.INGREDIENTS_IN_DISH,
        QuestionType.MENU_ITEM_CONTAINS_INGREDIENT,
        QuestionType.WHICH_MENU_ITEM_IS_THIS,
    }
)

TRUE_FALSE_QUESTION_TYPES: FrozenSet[QuestionType] = frozenset(
    {
        QuestionType.INGREDIENT_CONTAINS_ALLERGY,
        QuestionType.MENU_ITEM_CONTAINS_ALLERGY,
        QuestionType.INGREDIENT_OR_MENU_ITEM_CONTAINS_ALLERGY,
        QuestionType.MENU_ITEM_CONTAINS_INGREDIENT,
    }
)


def configuration_for_mode(mode: QuizMode, **overrides) -> QuizConfiguration:
    """Build a quiz configuration from one of the preset modes."""

    if mode == QuizMode.CUSTOM:
        return QuizConfiguration(mode=mode, **overrides)
    preset = QUIZ_MODE_SETTINGS[mode]
    values = {
        "question_count": preset.question_count,
        "difficulty": preset.difficulty,
        "question_types": list(preset.question_types),
    }
    values.update(overrides)
    return QuizConfiguration(mode=mode, **values)


@dataclass
class GeneratorConfig:
    """Tunable configuration for the quiz assembly scheduler."""

    min_bucket_ratio: float = 0.4
    multi_ingredient_preference: float = 0.7
    max_attempts_per_question: int = 25
    expansion_cache_size: int = 1024

    @classmethod
    def from_env(cls) -> "GeneratorConfig":
        return cls(
            min_bucket_ratio=float(os.getenv("MENUQUIZ_MIN_BUCKET_RATIO", "0.4")),
            multi_ingredient_preference=float(
                os.getenv("MENUQUIZ_MULTI_INGREDIENT_PREFERENCE", "0.7")
            ),
            max_attempts_per_question=int(os.getenv("MENUQUIZ_MAX_ATTEMPTS_PER_QUESTION", "25")),
            expansion_cache_size=int(os.getenv("MENUQUIZ_EXPANSION_CACHE_SIZE", "1024")),
        )


__all__ = [
    "ALLERGY_QUESTION_TYPES",
    "DIFFICULTY_SETTINGS",
    "DifficultySettings",
    "GeneratorConfig",
    "MENU_ITEM_QUESTION_TYPES",
    "QUIZ_MODE_SETTINGS",
    "QuizModeSettings",
    "TRUE_FALSE_QUESTION_TYPES",
    "configuration_for_mode",
]
