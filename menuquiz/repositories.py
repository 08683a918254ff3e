"""Repository interfaces for persisted quiz session state."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .models import QuizState


class QuizStateRepository(ABC):
    """Persist and retrieve the quiz state of a learner session."""

    @abstractmethod
    def load(self, session_id: str) -> Optional[QuizState]:
        """Return the stored state snapshot, if present."""

    @abstractmethod
    def save(self, session_id: str, state: QuizState) -> None:
        """Persist the full state snapshot."""

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Forget any stored state for the session."""


__all__ = ["QuizStateRepository"]
