from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Tuple, Union


class ViewState(str, Enum):
    INTRO = "INTRO"
    TEST = "TEST"
    REVIEW = "REVIEW"
    COMPLETE = "COMPLETE"
    EXITED = "EXITED"


TERMINAL_VIEWS = {ViewState.COMPLETE, ViewState.EXITED}


class Phase(str, Enum):
    PREP = "PREP"
    WORKING = "WORKING"
    RECORDING = "RECORDING"


MAIN_AUDIO = "MAIN_AUDIO"
DEFAULT_PART_SECONDS = 600

ListeningStep = Union[str, int]


@dataclass(frozen=True)
class DeliveryState:
    section_index: int = 0
    part_index: int = 0
    segment_index: int = 0
    view: ViewState = ViewState.INTRO
    phase: Optional[Phase] = None
    listening_step: ListeningStep = MAIN_AUDIO
    time_left: int = 0
    answers: Mapping[str, str] = field(default_factory=dict)
    writing_inputs: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_finished(self) -> bool:
        return self.view in TERMINAL_VIEWS


# ---------------------------------------------------------------- events

@dataclass(frozen=True)
class BeginSection:
    """Leave the section INTRO screen."""


@dataclass(frozen=True)
class Tick:
    """One elapsed second."""


@dataclass(frozen=True)
class Next:
    """Manual Next / Finish click."""


@dataclass(frozen=True)
class ContinueReview:
    pass


@dataclass(frozen=True)
class Answer:
    question_id: str
    value: str


@dataclass(frozen=True)
class WriteResponse:
    part_id: str
    text: str


@dataclass(frozen=True)
class Exit:
    pass


Event = Union[BeginSection, Tick, Next, ContinueReview, Answer, WriteResponse, Exit]


# ---------------------------------------------------------------- effects

@dataclass(frozen=True)
class PlayAudio:
    source: str
    owner_id: str


@dataclass(frozen=True)
class StopAudio:
    pass


@dataclass(frozen=True)
class StartRecording:
    segment_id: str


@dataclass(frozen=True)
class StopRecording:
    pass


@dataclass(frozen=True)
class CompleteTest:
    pass


@dataclass(frozen=True)
class ExitTest:
    pass


Effect = Union[PlayAudio, StopAudio, StartRecording, StopRecording, CompleteTest, ExitTest]


@dataclass(frozen=True)
class Transition:
    state: DeliveryState
    effects: Tuple[Effect, ...] = ()
