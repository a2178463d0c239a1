from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from celpip_prep.database import Base
from datetime import datetime, timezone


class Attempt(Base):
    """A finished test. Written once at completion and never updated."""
    __tablename__ = "attempts"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    user = relationship("User", back_populates="attempts")

    # no FK: attempts outlive the set they were taken from
    set_id = Column(String, nullable=False, index=True)
    set_title = Column(String, nullable=True)

    section_scores = Column(JSON, nullable=False, default=dict)
    band_score = Column(Integer, nullable=False, default=0)
    ai_feedback = Column(JSON, nullable=True)

    completed_at = Column(DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None), nullable=False)
    # save order within a user; breaks ties on completed_at
    seq = Column(Integer, nullable=False, default=0)
