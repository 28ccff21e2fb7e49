"""Exam scoring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence


@dataclass(frozen=True)
class ExamQuestion:
    id: int
    correct_answer: Optional[str] = None


def calculate_exam_score(questions: Sequence[ExamQuestion], answers: Mapping[int, str]) -> Optional[float]:
    """Percentage of questions answered correctly, or ``None`` when there are no questions.

    A question without a correct answer never matches, and an unanswered
    question counts as wrong.
    """

    if not questions:
        return None
    correct = sum(
        1
        for question in questions
        if question.correct_answer is not None and answers.get(question.id) == question.correct_answer
    )
    return correct / len(questions) * 100


__all__ = ["ExamQuestion", "calculate_exam_score"]
