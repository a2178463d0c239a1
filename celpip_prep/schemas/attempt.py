from __future__ import annotations

from typing import Dict, Optional

from pydantic import Field

from celpip_prep.schemas.practice_set import CamelModel


class CriterionScores(CamelModel):
    content: float = 0
    vocabulary: float = 0
    readability: float = 0
    task_fulfillment: float = 0


class WritingEvaluation(CamelModel):
    band_score: int = Field(ge=0, le=12)
    feedback: str = ""
    corrections: str = ""
    scores: Optional[CriterionScores] = None
    error: Optional[str] = None


class Attempt(CamelModel):
    id: str
    user_id: str
    set_id: str
    set_title: str = ""
    date: str = ""
    section_scores: Dict[str, float] = Field(default_factory=dict)
    band_score: int = Field(default=0, ge=0, le=12)
    ai_feedback: Dict[str, WritingEvaluation] = Field(default_factory=dict)
