from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from loguru import logger

from celpip_prep.delivery.state import DeliveryState
from celpip_prep.schemas.attempt import Attempt, WritingEvaluation
from celpip_prep.schemas.practice_set import PracticeSet, SectionType
from celpip_prep.utils.gateway import Gateway
from celpip_prep.utils.scoring import (
    SPEAKING_PLACEHOLDER_SCORE,
    average_scores,
    score,
)


@dataclass
class CompletionResult:
    attempt: Attempt
    total_correct: int
    total_possible: int
    writing_feedback: Dict[str, WritingEvaluation] = field(default_factory=dict)


def writing_prompt(part) -> str:
    return "\n\n".join(t for t in (part.instructions, part.content_text) if t)


async def evaluate_writing_section(section, writing_inputs, gateway: Gateway) -> tuple:
    """
    One AI call per part, awaited in order. A blank response or an
    unavailable evaluation scores that part 0; the section gets the mean.
    """
    scores: List[Optional[float]] = []
    feedback: Dict[str, WritingEvaluation] = {}
    for part in section.parts:
        response = (writing_inputs.get(part.id) or "").strip()
        if not response:
            scores.append(None)
            continue
        evaluation = await gateway.evaluate_writing(writing_prompt(part), response)
        if evaluation is None:
            logger.warning("No writing evaluation for part {}; scoring it 0", part.id)
            scores.append(None)
            continue
        feedback[part.id] = evaluation
        scores.append(evaluation.band_score)
    return average_scores(scores), feedback


async def finish_test(
    practice_set: PracticeSet,
    state: DeliveryState,
    user_id: str,
    gateway: Gateway,
) -> CompletionResult:
    graded = score(practice_set.sections, state.answers)
    section_scores: Dict[str, float] = dict(graded.section_scores)
    feedback: Dict[str, WritingEvaluation] = {}

    for section in practice_set.sections:
        if section.type == SectionType.WRITING:
            section_scores[section.id], part_feedback = await evaluate_writing_section(
                section, state.writing_inputs, gateway
            )
            feedback.update(part_feedback)
        elif section.type == SectionType.SPEAKING:
            section_scores[section.id] = SPEAKING_PLACEHOLDER_SCORE

    attempt = Attempt(
        id=f"att-{uuid4().hex}",
        user_id=user_id,
        set_id=practice_set.id,
        set_title=practice_set.title,
        date=datetime.now(timezone.utc).isoformat(timespec="microseconds"),
        section_scores=section_scores,
        band_score=graded.band_score,
        ai_feedback=feedback,
    )
    await gateway.save_attempt(attempt)
    logger.info(
        "Test {} finished by {}: {}/{} correct, band {}",
        practice_set.id, user_id, graded.total_correct, graded.total_possible, attempt.band_score,
    )
    return CompletionResult(
        attempt=attempt,
        total_correct=graded.total_correct,
        total_possible=graded.total_possible,
        writing_feedback=feedback,
    )
