"""Pydantic models for the menu quiz generator."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class QuestionType(str, Enum):
    INGREDIENTS_IN_DISH = "ingredients_in_dish"
    INGREDIENTS_WITH_ALLERGY = "ingredients_with_allergy"
    MENU_ITEM_CONTAINS_INGREDIENT = "menu_item_contains_ingredient"
    INGREDIENT_CONTAINS_ALLERGY = "ingredient_contains_allergy"
    MENU_ITEM_CONTAINS_ALLERGY = "menu_item_contains_allergy"
    INGREDIENT_OR_MENU_ITEM_CONTAINS_ALLERGY = "ingredient_or_menu_item_contains_allergy"
    WHICH_MENU_ITEM_IS_THIS = "which_menu_item_is_this"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuizMode(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    CUSTOM = "custom"


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _none_to_list(value):
    return [] if value is None else value


class Allergy(CamelModel):
    allergy_id: str
    allergy_name: str
    allergy_logo_url: Optional[str] = None


class Ingredient(CamelModel):
    """Catalog ingredient; ``sub_ingredients`` may form cycles."""

    ingredient_id: str
    ingredient_name: str
    ingredient_image_url: Optional[str] = None
    ingredient_allergies: List[str] = Field(default_factory=list)
    derived_allergies: List[str] = Field(default_factory=list)
    sub_ingredients: List[str] = Field(default_factory=list)

    @field_validator(
        "ingredient_allergies", "derived_allergies", "sub_ingredients", mode="before"
    )
    @classmethod
    def normalize_lists(cls, value):
        return _none_to_list(value)


class MenuItem(CamelModel):
    id: str
    menu_item_name: str
    menu_item_url: Optional[str] = None
    menu_item_ingredients: List[str] = Field(default_factory=list)

    @field_validator("menu_item_ingredients", mode="before")
    @classmethod
    def normalize_ingredients(cls, value):
        return _none_to_list(value)


class SectionItem(CamelModel):
    menu_item_id: str


class MenuSection(CamelModel):
    id: str
    title: Optional[str] = None
    items: List[SectionItem] = Field(default_factory=list)


class RestaurantData(CamelModel):
    """Read-only catalog snapshot for one generation pass."""

    menu_items: List[MenuItem] = Field(default_factory=list)
    ingredients: List[Ingredient] = Field(default_factory=list)
    allergies: Dict[str, Allergy] = Field(default_factory=dict)
    menu_sections: List[MenuSection] = Field(default_factory=list)


class AnswerOption(CamelModel):
    """Candidate answer; ``id`` is the underlying entity's natural ID."""

    id: str
    text: str


class QuizQuestion(CamelModel):
    id: str
    type: QuestionType
    question_text: str
    image_url: Optional[str] = None
    options: List[AnswerOption]
    correct_answer_ids: List[str]
    is_single_choice: bool = False


class QuestionGeneratorResult(CamelModel):
    questions: List[QuizQuestion] = Field(default_factory=list)
    error: Optional[str] = None


class QuizConfiguration(CamelModel):
    """Options chosen by the learner before a quiz starts."""

    mode: QuizMode = QuizMode.CUSTOM
    question_count: int = Field(default=10, ge=1)
    question_types: List[QuestionType] = Field(
        default_factory=lambda: [
            QuestionType.INGREDIENTS_WITH_ALLERGY,
            QuestionType.INGREDIENTS_IN_DISH,
        ]
    )
    menu_section_ids: List[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.MEDIUM


class QuizState(CamelModel):
    """Session snapshot persisted after every transition."""

    questions: List[QuizQuestion] = Field(default_factory=list)
    current_question_index: int = 0
    user_answers: Dict[int, List[str]] = Field(default_factory=dict)
    score: int = 0
    total_questions: int = 0
    in_progress: bool = False
    completed: bool = False
    loading: bool = False
    error: Optional[str] = None
    configuration: Optional[QuizConfiguration] = None


class QuizRequest(CamelModel):
    """Body for /v1/quiz/generate and /v1/quiz/sessions/{id}/start."""

    restaurant_data: RestaurantData
    configuration: QuizConfiguration = Field(default_factory=QuizConfiguration)


class AnswerQuestionRequest(CamelModel):
    selected_answer_ids: List[str]


class SubmitAnswerResponse(CamelModel):
    correct: bool
    state: QuizState


__all__ = [
    "Allergy",
    "AnswerOption",
    "AnswerQuestionRequest",
    "Difficulty",
    "Ingredient",
    "MenuItem",
    "MenuSection",
    "QuestionGeneratorResult",
    "QuestionType",
    "QuizConfiguration",
    "QuizMode",
    "QuizQuestion",
    "QuizState",
    "RestaurantData",
    "SectionItem",
    "QuizRequest",
    "SubmitAnswerResponse",
]
