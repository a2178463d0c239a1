from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Set

from celpip_prep.delivery.cloze import find_placeholders
from celpip_prep.schemas.practice_set import (
    SEGMENTED_SECTIONS,
    PracticeSet,
    Question,
    QuestionType,
    SectionType,
)


@dataclass(frozen=True)
class ContentIssue:
    severity: Literal["error", "warning"]
    location: str
    message: str

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


def _check_ids(practice_set: PracticeSet, issues: List[ContentIssue]) -> None:
    seen: Set[str] = set()

    def visit(kind: str, node_id: str) -> None:
        if node_id in seen:
            issues.append(ContentIssue("error", f"{kind} {node_id}", "duplicate id"))
        seen.add(node_id)

    for section in practice_set.sections:
        visit("section", section.id)
        for part in section.parts:
            visit("part", part.id)
            for segment in getattr(part, "segments", []):
                visit("segment", segment.id)
                for q in segment.questions:
                    visit("question", q.id)
            for q in getattr(part, "questions", []):
                visit("question", q.id)


def _check_container(location: str, content_text: str, questions: List[Question], issues: List[ContentIssue]) -> None:
    """One screen's worth of questions plus the text their blanks live in."""
    referenced: Set[str] = set(find_placeholders(content_text))
    for q in questions:
        if q.type == QuestionType.PASSAGE:
            referenced.update(find_placeholders(q.text))

    cloze_keys = {q.text.strip() for q in questions if q.type == QuestionType.CLOZE}
    for placeholder in sorted(referenced - cloze_keys):
        issues.append(ContentIssue("warning", location, f"[[{placeholder}]] has no CLOZE question"))

    for q in questions:
        where = f"{location} question {q.id}"
        if q.type == QuestionType.CLOZE and q.text.strip() not in referenced:
            issues.append(ContentIssue("warning", where, f"CLOZE '{q.text}' is never referenced"))
        if q.type in (QuestionType.MCQ, QuestionType.CLOZE):
            if not q.options:
                issues.append(ContentIssue("warning", where, "no options"))
            elif q.correct_answer is not None and q.correct_answer not in q.options:
                issues.append(ContentIssue("warning", where, "correct answer is not one of the options"))


def _iter_containers(section: Any) -> Iterable[tuple]:
    for part in section.parts:
        if section.type in SEGMENTED_SECTIONS:
            for segment in part.segments:
                yield f"segment {segment.id}", segment.content_text or part.content_text, segment.questions
        else:
            yield f"part {part.id}", part.content_text, part.questions


def validate_practice_set(practice_set: PracticeSet) -> List[ContentIssue]:
    """
    Authoring checks for a practice set.

    Errors make the set unusable (ids collide in the answer map); warnings
    are things the delivery screen copes with but an author should fix.
    """
    issues: List[ContentIssue] = []
    _check_ids(practice_set, issues)

    for section in practice_set.sections:
        if section.type in SEGMENTED_SECTIONS:
            for part in section.parts:
                if not part.segments:
                    issues.append(ContentIssue("warning", f"part {part.id}", "no segments"))

        for location, text, questions in _iter_containers(section):
            _check_container(location, text, list(questions), issues)

            if section.type != SectionType.LISTENING:
                for q in questions:
                    if q.timer_seconds:
                        issues.append(ContentIssue(
                            "warning",
                            f"{location} question {q.id}",
                            f"per-question timer is ignored in {section.type}",
                        ))
    return issues


def error_issues(issues: Iterable[ContentIssue]) -> List[ContentIssue]:
    return [i for i in issues if i.severity == "error"]


def warning_issues(issues: Iterable[ContentIssue]) -> List[ContentIssue]:
    return [i for i in issues if i.severity == "warning"]
