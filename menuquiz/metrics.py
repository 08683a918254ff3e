"""Simple in-process metrics registry for generator and session instrumentation."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List


@dataclass
class MetricsRegistry:
    """Holds counters and histograms exposed by the application."""

    generation_attempts: int = 0
    generation_successes: int = 0
    generation_failures: int = 0
    generation_failure_reasons: Counter = field(default_factory=Counter)
    generated_question_counts: List[int] = field(default_factory=list)
    question_type_counts: Counter = field(default_factory=Counter)
    builder_empty_results: Counter = field(default_factory=Counter)
    builder_faults: Counter = field(default_factory=Counter)
    answers_submitted: int = 0
    answers_correct: int = 0

    def record_generation_attempt(self) -> None:
        self.generation_attempts += 1

    def record_generation_success(self, question_count: int) -> None:
        self.generation_successes += 1
        self.generated_question_counts.append(question_count)

    def record_generation_failure(self, reason: str) -> None:
        self.generation_failures += 1
        self.generation_failure_reasons[reason] += 1

    def record_question(self, question_type: str) -> None:
        self.question_type_counts[question_type] += 1

    def record_builder_empty(self, builder_name: str) -> None:
        """Count a builder returning no question for lack of data."""

        self.builder_empty_results[builder_name] += 1

    def record_builder_fault(self, builder_name: str) -> None:
        self.builder_faults[builder_name] += 1

    def record_answer(self, correct: bool) -> None:
        self.answers_submitted += 1
        if correct:
            self.answers_correct += 1

    def reset(self) -> None:
        self.__init__()

    @property
    def generation_success_rate(self) -> float:
        if self.generation_attempts == 0:
            return 0.0
        return self.generation_successes / self.generation_attempts

    @property
    def answer_accuracy(self) -> float:
        if self.answers_submitted == 0:
            return 0.0
        return self.answers_correct / self.answers_submitted

    def snapshot(self) -> dict:
        return {
            "generation_attempts": self.generation_attempts,
            "generation_successes": self.generation_successes,
            "generation_failures": self.generation_failures,
            "generation_failure_reasons": dict(self.generation_failure_reasons),
            "generation_success_rate": self.generation_success_rate,
            "question_type_counts": dict(self.question_type_counts),
            "builder_empty_results": dict(self.builder_empty_results),
            "builder_faults": dict(self.builder_faults),
            "answers_submitted": self.answers_submitted,
            "answer_accuracy": self.answer_accuracy,
        }


METRICS = MetricsRegistry()

__all__ = ["METRICS", "MetricsRegistry"]
