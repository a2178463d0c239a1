from __future__ import annotations

from typing import List, Mapping, Optional

from markupsafe import Markup

from celpip_prep.delivery.cloze import BrokenPlaceholder, ClozeSlot, render_cloze, render_cloze_html
from celpip_prep.delivery.machine import locate, next_outcome
from celpip_prep.delivery.state import DeliveryState, Phase, ViewState
from celpip_prep.schemas.attempt import Attempt
from celpip_prep.schemas.practice_set import PracticeSet, Question, QuestionType, SectionType
from celpip_prep.schemas.session import (
    FragmentOut,
    QuestionView,
    ReviewItem,
    ReviewView,
    ScreenSnapshot,
)
from celpip_prep.utils.scoring import grade_section


def format_time(seconds: int) -> str:
    m, s = divmod(max(0, int(seconds)), 60)
    return f"{m}:{s:02d}"


def fragments_out(text: str, questions: List[Question], answers: Mapping[str, str]) -> List[FragmentOut]:
    out: List[FragmentOut] = []
    for f in render_cloze(text, questions):
        if isinstance(f, ClozeSlot):
            out.append(FragmentOut(
                kind="slot",
                placeholder=f.placeholder,
                question_id=f.question_id,
                options=f.options,
                selected=answers.get(f.question_id),
            ))
        elif isinstance(f, BrokenPlaceholder):
            out.append(FragmentOut(kind="broken", placeholder=f.placeholder))
        else:
            out.append(FragmentOut(kind="text", text=f.text))
    return out


def number_questions(questions: List[Question], answers: Mapping[str, str]) -> List[QuestionView]:
    """PASSAGE blocks carry no number; everything else counts 1, 2, 3 ..."""
    views: List[QuestionView] = []
    counter = 0
    for q in questions:
        num = None
        if q.type != QuestionType.PASSAGE:
            counter += 1
            num = counter
        views.append(QuestionView(
            id=q.id,
            type=q.type.value,
            display_num=num,
            text=q.text,
            options=list(q.options),
            selected=answers.get(q.id),
            audio_data=q.audio_data,
            fragments=fragments_out(q.text, questions, answers) if q.type == QuestionType.PASSAGE else [],
        ))
    return views


def _next_label(practice_set: PracticeSet, state: DeliveryState) -> str:
    outcome = next_outcome(practice_set, state)
    last_section = state.section_index == len(practice_set.sections) - 1
    if outcome == ViewState.COMPLETE or (outcome == ViewState.REVIEW and last_section):
        return "Finish Test"
    if outcome in (ViewState.REVIEW, ViewState.INTRO):
        return "Finish Section"
    if state.view == ViewState.INTRO:
        return "Start Section"
    return "Next"


def build_snapshot(
    practice_set: PracticeSet,
    state: DeliveryState,
    session_id: Optional[str] = None,
    analyzing: bool = False,
    capture_degraded: bool = False,
    attempt: Optional[Attempt] = None,
) -> ScreenSnapshot:
    section, part, segment = locate(practice_set, state)
    snap = ScreenSnapshot(
        session_id=session_id,
        set_title=practice_set.title,
        view=state.view.value,
        section_count=len(practice_set.sections),
        phase=state.phase.value if state.phase else None,
        time_left=state.time_left,
        timer_display=format_time(state.time_left),
        analyzing=analyzing,
        capture_degraded=capture_degraded,
        attempt=attempt,
    )
    if state.is_finished or section is None:
        return snap

    snap.section_type = section.type
    snap.section_title = section.title
    snap.section_number = state.section_index + 1
    snap.part_count = len(section.parts)
    snap.next_label = _next_label(practice_set, state)

    if state.view == ViewState.REVIEW:
        grade = grade_section(section, state.answers)
        snap.review = ReviewView(
            earned=grade.earned,
            possible=grade.possible,
            items=[
                ReviewItem(
                    question_id=g.question_id,
                    submitted=g.submitted,
                    correct_answer=g.correct_answer,
                    is_correct=g.is_correct,
                )
                for g in grade.questions
            ],
        )
        return snap

    if state.view == ViewState.INTRO or part is None:
        if section.parts:
            snap.instructions = section.parts[0].instructions
        return snap

    snap.part_number = state.part_index + 1
    snap.instructions = part.instructions
    snap.image_data = part.image_data

    if segment is None:
        questions = list(getattr(part, "questions", []))
        snap.content_fragments = fragments_out(part.content_text, questions, state.answers)
        snap.questions = number_questions(questions, state.answers)
        if section.type == SectionType.WRITING:
            snap.writing_response = state.writing_inputs.get(part.id, "")
        return snap

    snap.segment_number = state.segment_index + 1
    snap.segment_count = len(part.segments)
    snap.listening_step = state.listening_step
    questions = list(segment.questions)
    snap.content_fragments = fragments_out(segment.content_text or part.content_text, questions, state.answers)

    if section.type == SectionType.LISTENING:
        if state.phase == Phase.PREP:
            return snap
        views = number_questions(questions, state.answers)
        if isinstance(state.listening_step, int):
            views = [views[state.listening_step]]
        snap.questions = views
    else:
        snap.questions = number_questions(questions, state.answers)
    return snap


def html_blocks(practice_set: PracticeSet, state: DeliveryState) -> dict:
    """Server-rendered passage HTML for the current screen, blanks as dropdowns."""
    _, part, segment = locate(practice_set, state)
    if part is None or state.view != ViewState.TEST:
        return {"content": Markup(""), "passages": {}}
    container = segment if segment is not None else part
    questions = list(getattr(container, "questions", []))
    text = (segment.content_text if segment is not None else "") or part.content_text
    return {
        "content": render_cloze_html(text, questions, state.answers),
        "passages": {
            q.id: render_cloze_html(q.text, questions, state.answers)
            for q in questions
            if q.type == QuestionType.PASSAGE
        },
    }
