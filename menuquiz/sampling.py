"""Unbiased shuffling and subset selection for answer options."""
from __future__ import annotations

import random
from typing import List, Optional, Sequence, TypeVar

from .models import AnswerOption

T = TypeVar("T")


def random_source(rng: Optional[random.Random]):
    return rng if rng is not None else random


def shuffle_array(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Runs a Fisher–Yates shuffle on a copy of ``items``."""

    source = random_source(rng)
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = source.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def get_random_subset(
    items: Sequence[T], count: int, rng: Optional[random.Random] = None
) -> List[T]:
    """Return ``count`` distinct elements, or every element when there are fewer."""

    if not items or count <= 0:
        return []
    shuffled = shuffle_array(items, rng)
    return shuffled[:count]


def pick_one(items: Sequence[T], rng: Optional[random.Random] = None) -> Optional[T]:
    subset = get_random_subset(items, 1, rng)
    return subset[0] if subset else None


def create_answer_option(option_id: str, text: str) -> AnswerOption:
    return AnswerOption(id=option_id, text=text)


def combine_and_shuffle_options(
    correct: Sequence[AnswerOption],
    incorrect: Sequence[AnswerOption],
    rng: Optional[random.Random] = None,
) -> List[AnswerOption]:
    return shuffle_array([*correct, *incorrect], rng)


__all__ = [
    "combine_and_shuffle_options",
    "create_answer_option",
    "get_random_subset",
    "pick_one",
    "random_source",
    "shuffle_array",
]
