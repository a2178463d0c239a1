from celpip_prep.models.user import User
from celpip_prep.models.practice_set import PracticeSet, Section, Part, Segment, Question
from celpip_prep.models.attempt import Attempt

__all__ = ["User", "PracticeSet", "Section", "Part", "Segment", "Question", "Attempt"]
