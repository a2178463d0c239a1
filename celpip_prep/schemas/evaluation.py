from pydantic import BaseModel, Field

from celpip_prep.schemas.practice_set import CamelModel


class EvaluateWritingRequest(CamelModel):
    question_text: str
    user_response: str = Field(min_length=1)


class SpeechRequest(BaseModel):
    text: str = Field(min_length=1)


class SpeechResponse(CamelModel):
    audio_data: str
