from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from celpip_prep.schemas.practice_set import Question, QuestionType, SectionType

MAX_BAND = 12
AUTO_GRADED_SECTIONS = {SectionType.READING.value, SectionType.LISTENING.value}
GRADED_QUESTION_TYPES = {QuestionType.MCQ, QuestionType.CLOZE}

# Speaking has no automatic or AI scoring path; every speaking section gets this
SPEAKING_PLACEHOLDER_SCORE = 0.0


@dataclass
class ScoreResult:
    section_scores: Dict[str, float] = field(default_factory=dict)
    total_correct: int = 0
    total_possible: int = 0

    @property
    def band_score(self) -> int:
        return band_score(self.total_correct, self.total_possible)


@dataclass
class QuestionGrade:
    question_id: str
    submitted: Optional[str]
    correct_answer: str
    weight: int
    is_correct: bool


@dataclass
class SectionGrade:
    section_id: str
    earned: int = 0
    possible: int = 0
    questions: List[QuestionGrade] = field(default_factory=list)


def iter_part_questions(part: Any) -> Iterator[Question]:
    """Direct questions first, then each segment's questions in order."""
    yield from getattr(part, "questions", [])
    for segment in getattr(part, "segments", []):
        yield from segment.questions


def iter_section_questions(section: Any) -> Iterator[Question]:
    for part in section.parts:
        yield from iter_part_questions(part)


def is_graded(question: Question) -> bool:
    return question.type in GRADED_QUESTION_TYPES and question.correct_answer is not None


def grade_section(section: Any, answers: Mapping[str, Any]) -> SectionGrade:
    """
    Per-question report for one section. Exact value match only:
    no trimming, no case folding. Unanswered counts as wrong.
    """
    grade = SectionGrade(section_id=section.id)
    for q in iter_section_questions(section):
        if not is_graded(q):
            continue
        submitted = answers.get(q.id)
        ok = submitted == q.correct_answer
        grade.possible += q.weight
        if ok:
            grade.earned += q.weight
        grade.questions.append(QuestionGrade(
            question_id=q.id,
            submitted=submitted,
            correct_answer=q.correct_answer,
            weight=q.weight,
            is_correct=ok,
        ))
    return grade


def score(sections: Iterable[Any], answers: Mapping[str, Any]) -> ScoreResult:
    """
    Auto-grades READING and LISTENING sections.
    WRITING/SPEAKING are left out of section_scores; completion fills them in.
    """
    result = ScoreResult()
    for section in sections:
        if section.type not in AUTO_GRADED_SECTIONS:
            continue
        grade = grade_section(section, answers)
        result.section_scores[section.id] = float(grade.earned)
        result.total_correct += grade.earned
        result.total_possible += grade.possible
    return result


def band_score(total_correct: int, total_possible: int) -> int:
    # Rough mapping onto the 0..12 CELPIP scale; half rounds up
    if total_possible <= 0:
        return 0
    raw = math.floor(total_correct / total_possible * MAX_BAND + 0.5)
    return max(0, min(MAX_BAND, raw))


def average_scores(values: Iterable[Optional[float]]) -> float:
    """Mean of per-part scores; a missing score counts as 0."""
    vals = [float(v) if v is not None else 0.0 for v in values]
    if not vals:
        return 0.0
    return round(sum(vals) / len(vals), 2)
