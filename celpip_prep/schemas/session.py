from typing import Any, Dict, List, Literal, Optional, Union

from celpip_prep.schemas.attempt import Attempt
from celpip_prep.schemas.practice_set import CamelModel


class StartSessionRequest(CamelModel):
    set_id: str
    user_id: str
    section_ids: Optional[List[str]] = None
    server_timer: bool = False


class SessionEventIn(CamelModel):
    type: Literal["begin", "next", "tick", "answer", "write", "continue", "exit", "media_error"]
    question_id: Optional[str] = None
    part_id: Optional[str] = None
    value: Optional[str] = None
    kind: Optional[Literal["microphone", "audio"]] = None
    detail: Optional[str] = None


class FragmentOut(CamelModel):
    kind: Literal["text", "slot", "broken"]
    text: Optional[str] = None
    placeholder: Optional[str] = None
    question_id: Optional[str] = None
    options: List[str] = []
    selected: Optional[str] = None


class QuestionView(CamelModel):
    id: str
    type: str
    display_num: Optional[int] = None
    text: str = ""
    options: List[str] = []
    selected: Optional[str] = None
    audio_data: Optional[str] = None
    fragments: List[FragmentOut] = []


class ReviewItem(CamelModel):
    question_id: str
    submitted: Optional[str] = None
    correct_answer: str
    is_correct: bool


class ReviewView(CamelModel):
    earned: int
    possible: int
    items: List[ReviewItem] = []


class ScreenSnapshot(CamelModel):
    session_id: Optional[str] = None
    set_title: str
    view: str
    section_type: Optional[str] = None
    section_title: Optional[str] = None
    section_number: int = 0
    section_count: int = 0
    part_number: int = 0
    part_count: int = 0
    segment_number: int = 0
    segment_count: int = 0
    phase: Optional[str] = None
    listening_step: Union[str, int, None] = None
    time_left: int = 0
    timer_display: str = "0:00"
    instructions: Optional[str] = None
    content_fragments: List[FragmentOut] = []
    image_data: Optional[str] = None
    questions: List[QuestionView] = []
    writing_response: Optional[str] = None
    next_label: str = "Next"
    review: Optional[ReviewView] = None
    analyzing: bool = False
    capture_degraded: bool = False
    attempt: Optional[Attempt] = None


class SessionEventResponse(CamelModel):
    snapshot: ScreenSnapshot
    media: List[Dict[str, Any]] = []
