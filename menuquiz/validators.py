"""Structural validation for generated quiz questions."""
from __future__ import annotations

from typing import Iterable

from .domain import TRUE_FALSE_QUESTION_TYPES
from .models import QuizQuestion

MIN_OPTIONS = 2
MAX_OPTIONS = 6
TRUE_FALSE_IDS = ("true", "false")


class ValidationError(ValueError):
    """Raised when a generated question breaks its structural invariants."""


def _assert_options(question: QuizQuestion) -> None:
    option_ids = [option.id for option in question.options]
    if not MIN_OPTIONS <= len(option_ids) <= MAX_OPTIONS:
        raise ValidationError(
            f"Question {question.id} has {len(option_ids)} options, expected {MIN_OPTIONS}-{MAX_OPTIONS}"
        )
    if len(set(option_ids)) != len(option_ids):
        raise ValidationError(f"Question {question.id} repeats an option identifier")
    for option in question.options:
        if not option.text.strip():
            raise ValidationError(f"Question {question.id} has an option without text")


def _assert_correct_answers(question: QuizQuestion) -> None:
    if not question.correct_answer_ids:
        raise ValidationError(f"Question {question.id} has no correct answer")
    option_ids = {option.id for option in question.options}
    missing = [answer for answer in question.correct_answer_ids if answer not in option_ids]
    if missing:
        raise ValidationError(
            f"Question {question.id} marks unknown options as correct: {', '.join(missing)}"
        )
    if question.is_single_choice and len(question.correct_answer_ids) != 1:
        raise ValidationError(f"Single choice question {question.id} must have exactly one answer")


def _assert_true_false_shape(question: QuizQuestion) -> None:
    if question.type not in TRUE_FALSE_QUESTION_TYPES:
        return
    if tuple(option.id for option in question.options) != TRUE_FALSE_IDS:
        raise ValidationError(f"True/false question {question.id} must offer exactly true and false")


def validate_question(question: QuizQuestion) -> None:
    """Validate a single generated question."""

    if not question.id.strip():
        raise ValidationError("Quiz questions must have an identifier")
    if not question.question_text.strip():
        raise ValidationError(f"Question {question.id} has empty text")
    _assert_options(question)
    _assert_correct_answers(question)
    _assert_true_false_shape(question)


def validate_quiz_questions(questions: Iterable[QuizQuestion]) -> None:
    """Validate a full quiz, including identifier uniqueness across questions."""

    seen_ids = set()
    for question in questions:
        if question.id in seen_ids:
            raise ValidationError(f"Duplicate quiz question identifier detected: {question.id}")
        seen_ids.add(question.id)
        validate_question(question)


__all__ = ["ValidationError", "validate_question", "validate_quiz_questions"]
