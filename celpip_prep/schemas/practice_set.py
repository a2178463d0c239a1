from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SectionType(str, Enum):
    READING = "READING"
    WRITING = "WRITING"
    LISTENING = "LISTENING"
    SPEAKING = "SPEAKING"


class QuestionType(str, Enum):
    MCQ = "MCQ"
    CLOZE = "CLOZE"
    PASSAGE = "PASSAGE"


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Question(CamelModel):
    id: str
    part_id: str = ""
    segment_id: Optional[str] = None
    type: QuestionType
    # MCQ: the prompt; CLOZE: placeholder id; PASSAGE: rich-text block
    text: str = ""
    options: List[str] = Field(default_factory=list)
    correct_answer: Optional[str] = None
    weight: int = Field(default=1, ge=1)
    audio_data: Optional[str] = None
    timer_seconds: Optional[int] = Field(default=None, ge=0)


class Segment(CamelModel):
    id: str
    part_id: str = ""
    content_text: str = ""
    audio_data: Optional[str] = None
    prep_time_seconds: int = Field(default=0, ge=0)
    timer_seconds: int = Field(default=0, ge=0)
    questions: List[Question] = Field(default_factory=list)

    @property
    def has_sequential(self) -> bool:
        return any(q.timer_seconds for q in self.questions)


class PartBase(CamelModel):
    id: str
    section_id: str = ""
    instructions: Optional[str] = None
    content_text: str = ""
    image_data: Optional[str] = None
    audio_data: Optional[str] = None
    timer_seconds: int = Field(default=600, ge=0)


class QuestionPart(PartBase):
    """Reading/Writing screen: content on the left, direct questions on the right."""
    questions: List[Question] = Field(default_factory=list)


class SegmentPart(PartBase):
    """Listening/Speaking container; each segment is its own timed screen."""
    segments: List[Segment] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _promote_direct_questions(cls, data: Any) -> Any:
        # Older payloads stored listening questions directly on the part
        if not isinstance(data, dict):
            return data
        if data.get("segments") or not data.get("questions"):
            return data
        data = dict(data)
        part_id = data.get("id", "")
        data["segments"] = [{
            "id": f"{part_id}-seg-1",
            "partId": part_id,
            "contentText": data.get("contentText", data.get("content_text", "")),
            "audioData": data.get("audioData", data.get("audio_data")),
            "prepTimeSeconds": 0,
            "timerSeconds": data.get("timerSeconds", data.get("timer_seconds", 0)),
            "questions": data["questions"],
        }]
        data.pop("questions")
        return data


class SectionBase(CamelModel):
    id: str
    set_id: str = ""
    title: str = ""


class ReadingSection(SectionBase):
    type: Literal["READING"] = "READING"
    parts: List[QuestionPart] = Field(default_factory=list)


class WritingSection(SectionBase):
    type: Literal["WRITING"] = "WRITING"
    parts: List[QuestionPart] = Field(default_factory=list)


class ListeningSection(SectionBase):
    type: Literal["LISTENING"] = "LISTENING"
    parts: List[SegmentPart] = Field(default_factory=list)


class SpeakingSection(SectionBase):
    type: Literal["SPEAKING"] = "SPEAKING"
    parts: List[SegmentPart] = Field(default_factory=list)


Section = Annotated[
    Union[ReadingSection, WritingSection, ListeningSection, SpeakingSection],
    Field(discriminator="type"),
]

SEGMENTED_SECTIONS = {SectionType.LISTENING.value, SectionType.SPEAKING.value}


class PracticeSet(CamelModel):
    id: str
    title: str
    description: str = ""
    is_published: bool = False
    sections: List[Section] = Field(default_factory=list)

    @model_validator(mode="after")
    def _link_parents(self) -> "PracticeSet":
        # Parent ids are derivable from the tree; fill the ones authors leave out
        for section in self.sections:
            section.set_id = section.set_id or self.id
            for part in section.parts:
                part.section_id = part.section_id or section.id
                for question in getattr(part, "questions", []):
                    question.part_id = question.part_id or part.id
                for segment in getattr(part, "segments", []):
                    segment.part_id = segment.part_id or part.id
                    for question in segment.questions:
                        question.part_id = question.part_id or part.id
                        question.segment_id = question.segment_id or segment.id
        return self


class SaveSetResponse(BaseModel):
    success: bool
    warnings: List[str] = []
