"""
Test-delivery state machine.

``transition`` is a pure reducer: it never touches audio, the microphone or
the network. Everything with a side effect comes back as an effect value in
the returned ``Transition`` and is carried out by the runner in order.

Walk order inside a section:

    READING / WRITING   part -> part -> ... -> REVIEW (reading) | next INTRO
    LISTENING           segment: PREP -> WORKING [-> step 0 -> step 1 ...]
    SPEAKING            segment: PREP -> RECORDING
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Optional, Tuple

from celpip_prep.delivery.state import (
    DEFAULT_PART_SECONDS,
    MAIN_AUDIO,
    Answer,
    BeginSection,
    CompleteTest,
    ContinueReview,
    DeliveryState,
    Effect,
    Event,
    Exit,
    ExitTest,
    Next,
    Phase,
    PlayAudio,
    StartRecording,
    StopAudio,
    StopRecording,
    Tick,
    Transition,
    ViewState,
    WriteResponse,
)
from celpip_prep.schemas.practice_set import SEGMENTED_SECTIONS, PracticeSet, SectionType
from celpip_prep.utils.scoring import AUTO_GRADED_SECTIONS


def initial_state() -> DeliveryState:
    return DeliveryState()


def transition(practice_set: PracticeSet, state: DeliveryState, event: Event) -> Transition:
    if state.is_finished:
        return Transition(state)

    effects: List[Effect] = []

    if isinstance(event, Exit):
        new = _exit(state, effects)
    elif isinstance(event, Answer):
        new = _record_answer(state, event)
    elif isinstance(event, WriteResponse):
        new = _record_writing(state, event)
    elif isinstance(event, Tick):
        new = _tick(practice_set, state, effects)
    elif isinstance(event, Next):
        if state.view == ViewState.INTRO:
            new = _begin_section(practice_set, state, effects)
        elif state.view == ViewState.TEST:
            new = _advance(practice_set, state, effects)
        else:
            new = _next_section(practice_set, state, effects)
    elif isinstance(event, BeginSection):
        new = _begin_section(practice_set, state, effects) if state.view == ViewState.INTRO else state
    elif isinstance(event, ContinueReview):
        new = _next_section(practice_set, state, effects) if state.view == ViewState.REVIEW else state
    else:
        raise TypeError(f"Unknown delivery event: {event!r}")

    return Transition(new, tuple(effects))


def locate(practice_set: PracticeSet, state: DeliveryState) -> Tuple[Optional[Any], Optional[Any], Optional[Any]]:
    """(section, part, segment) under the cursor; missing levels are None."""
    sections = practice_set.sections
    if state.section_index >= len(sections):
        return None, None, None
    section = sections[state.section_index]
    if state.part_index >= len(section.parts):
        return section, None, None
    part = section.parts[state.part_index]
    segments = getattr(part, "segments", None)
    if not segments or state.segment_index >= len(segments):
        return section, part, None
    return section, part, segments[state.segment_index]


def next_outcome(practice_set: PracticeSet, state: DeliveryState) -> ViewState:
    """Where a manual Next would land, for button labels."""
    return transition(practice_set, state, Next()).state.view


# ---------------------------------------------------------------- answers

def _record_answer(state: DeliveryState, event: Answer) -> DeliveryState:
    if state.view != ViewState.TEST:
        return state
    return replace(state, answers={**state.answers, event.question_id: event.value})


def _record_writing(state: DeliveryState, event: WriteResponse) -> DeliveryState:
    if state.view != ViewState.TEST:
        return state
    return replace(state, writing_inputs={**state.writing_inputs, event.part_id: event.text})


# ---------------------------------------------------------------- timer

def _tick(practice_set: PracticeSet, state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    if state.view != ViewState.TEST or state.time_left <= 0:
        return state
    state = replace(state, time_left=state.time_left - 1)
    if state.time_left == 0:
        return _advance(practice_set, state, effects)
    return state


# ---------------------------------------------------------------- navigation

def _exit(state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    _release_media(state, effects)
    effects.append(ExitTest())
    return replace(state, view=ViewState.EXITED, phase=None, time_left=0)


def _release_media(state: DeliveryState, effects: List[Effect]) -> None:
    effects.append(StopAudio())
    if state.phase == Phase.RECORDING:
        effects.append(StopRecording())


def _begin_section(practice_set: PracticeSet, state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    if state.section_index >= len(practice_set.sections):
        return _complete(state, effects)
    return _enter_unit(practice_set, state, state.section_index, 0, 0, effects)


def _advance(practice_set: PracticeSet, state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    section, part, segment = locate(practice_set, state)
    _release_media(state, effects)

    if section.type not in SEGMENTED_SECTIONS or segment is None:
        return _enter_unit(practice_set, state, state.section_index, state.part_index + 1, 0, effects)

    if section.type == SectionType.LISTENING:
        if state.phase == Phase.PREP:
            return _enter_active(state, section, part, segment, effects)
        step = state.listening_step
        if isinstance(step, int) and step + 1 < len(segment.questions):
            return _enter_step(state, part, segment, step + 1, effects)
        return _next_segment(practice_set, state, effects)

    # SPEAKING
    if state.phase == Phase.PREP:
        return _enter_active(state, section, part, segment, effects)
    return _next_segment(practice_set, state, effects)


def _next_segment(practice_set: PracticeSet, state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    _, part, _ = locate(practice_set, state)
    if state.segment_index + 1 < len(part.segments):
        return _enter_unit(practice_set, state, state.section_index, state.part_index, state.segment_index + 1, effects)
    return _enter_unit(practice_set, state, state.section_index, state.part_index + 1, 0, effects)


def _enter_unit(
    practice_set: PracticeSet,
    state: DeliveryState,
    section_index: int,
    part_index: int,
    segment_index: int,
    effects: List[Effect],
) -> DeliveryState:
    section = practice_set.sections[section_index]
    state = replace(
        state,
        section_index=section_index,
        part_index=part_index,
        segment_index=segment_index,
        listening_step=MAIN_AUDIO,
    )
    if part_index >= len(section.parts):
        return _end_section(practice_set, state, effects)

    part = section.parts[part_index]
    state = replace(state, view=ViewState.TEST)

    if section.type not in SEGMENTED_SECTIONS:
        if part.audio_data:
            effects.append(PlayAudio(part.audio_data, part.id))
        return replace(state, phase=None, time_left=part.timer_seconds or DEFAULT_PART_SECONDS)

    if segment_index >= len(part.segments):
        # container with nothing to deliver
        return _enter_unit(practice_set, state, section_index, part_index + 1, 0, effects)

    segment = part.segments[segment_index]
    main_audio = _main_audio(part, segment, segment_index)
    if segment.prep_time_seconds > 0:
        if main_audio:
            effects.append(PlayAudio(main_audio, segment.id))
        return replace(state, phase=Phase.PREP, time_left=segment.prep_time_seconds)
    return _enter_active(state, section, part, segment, effects, main_audio=main_audio)


def _enter_active(
    state: DeliveryState,
    section: Any,
    part: Any,
    segment: Any,
    effects: List[Effect],
    main_audio: Optional[str] = None,
) -> DeliveryState:
    if section.type == SectionType.SPEAKING:
        effects.append(StartRecording(segment.id))
        return replace(state, phase=Phase.RECORDING, time_left=_segment_seconds(part, segment))

    if segment.has_sequential and segment.questions:
        return _enter_step(state, part, segment, 0, effects, main_audio=main_audio)
    if main_audio:
        effects.append(PlayAudio(main_audio, segment.id))
    return replace(state, phase=Phase.WORKING, listening_step=MAIN_AUDIO, time_left=_segment_seconds(part, segment))


def _enter_step(
    state: DeliveryState,
    part: Any,
    segment: Any,
    step: int,
    effects: List[Effect],
    main_audio: Optional[str] = None,
) -> DeliveryState:
    question = segment.questions[step]
    source = question.audio_data or main_audio
    if source:
        effects.append(PlayAudio(source, question.id))
    seconds = question.timer_seconds or _segment_seconds(part, segment)
    return replace(state, phase=Phase.WORKING, listening_step=step, time_left=seconds)


def _end_section(practice_set: PracticeSet, state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    section = practice_set.sections[state.section_index]
    if section.type in AUTO_GRADED_SECTIONS:
        return replace(state, view=ViewState.REVIEW, phase=None, listening_step=MAIN_AUDIO, time_left=0)
    return _next_section(practice_set, state, effects)


def _next_section(practice_set: PracticeSet, state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    if state.section_index + 1 < len(practice_set.sections):
        return replace(
            state,
            section_index=state.section_index + 1,
            part_index=0,
            segment_index=0,
            view=ViewState.INTRO,
            phase=None,
            listening_step=MAIN_AUDIO,
            time_left=0,
        )
    return _complete(state, effects)


def _complete(state: DeliveryState, effects: List[Effect]) -> DeliveryState:
    effects.append(CompleteTest())
    return replace(state, view=ViewState.COMPLETE, phase=None, listening_step=MAIN_AUDIO, time_left=0)


def _main_audio(part: Any, segment: Any, segment_index: int) -> Optional[str]:
    # a part-level track belongs to the first screen of the part
    if segment.audio_data:
        return segment.audio_data
    return part.audio_data if segment_index == 0 else None


def _segment_seconds(part: Any, segment: Any) -> int:
    return segment.timer_seconds or part.timer_seconds or DEFAULT_PART_SECONDS
