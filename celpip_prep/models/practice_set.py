from sqlalchemy import Column, String, Integer, Boolean, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from celpip_prep.database import Base


class PracticeSet(Base):
    __tablename__ = "practice_sets"

    id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    is_published = Column(Boolean, nullable=False, default=False)

    sections = relationship(
        "Section",
        back_populates="practice_set",
        cascade="all, delete-orphan",
        order_by="Section.order_index",
    )


class Section(Base):
    __tablename__ = "sections"

    id = Column(String, primary_key=True)
    set_id = Column(String, ForeignKey("practice_sets.id", ondelete="CASCADE"), nullable=False, index=True)
    practice_set = relationship("PracticeSet", back_populates="sections")

    type = Column(String, nullable=False)   # READING | WRITING | LISTENING | SPEAKING
    title = Column(String, nullable=False, default="")
    order_index = Column(Integer, nullable=False, default=0)

    parts = relationship(
        "Part",
        back_populates="section",
        cascade="all, delete-orphan",
        order_by="Part.order_index",
    )


class Part(Base):
    __tablename__ = "parts"

    id = Column(String, primary_key=True)
    section_id = Column(String, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True)
    section = relationship("Section", back_populates="parts")

    instructions = Column(Text, nullable=True)
    content_text = Column(Text, nullable=False, default="")
    image_data = Column(Text, nullable=True)
    audio_data = Column(Text, nullable=True)
    timer_seconds = Column(Integer, nullable=False, default=600)
    order_index = Column(Integer, nullable=False, default=0)

    segments = relationship(
        "Segment",
        back_populates="part",
        cascade="all, delete-orphan",
        order_by="Segment.order_index",
    )
    # direct questions only; segment questions hang off Segment
    questions = relationship(
        "Question",
        primaryjoin="and_(Question.part_id == Part.id, Question.segment_id.is_(None))",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )


class Segment(Base):
    __tablename__ = "segments"

    id = Column(String, primary_key=True)
    part_id = Column(String, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    part = relationship("Part", back_populates="segments")

    content_text = Column(Text, nullable=False, default="")
    audio_data = Column(Text, nullable=True)
    prep_time_seconds = Column(Integer, nullable=False, default=0)
    timer_seconds = Column(Integer, nullable=False, default=0)
    order_index = Column(Integer, nullable=False, default=0)

    questions = relationship(
        "Question",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )


class Question(Base):
    __tablename__ = "questions"

    id = Column(String, primary_key=True)
    part_id = Column(String, ForeignKey("parts.id", ondelete="CASCADE"), nullable=False, index=True)
    segment_id = Column(String, ForeignKey("segments.id", ondelete="CASCADE"), nullable=True, index=True)

    type = Column(String, nullable=False)   # MCQ | CLOZE | PASSAGE
    question_text = Column(Text, nullable=False, default="")
    options = Column(JSON, nullable=False, default=list)
    correct_answer = Column(Text, nullable=True)
    weight = Column(Integer, nullable=False, default=1)
    audio_data = Column(Text, nullable=True)
    timer_seconds = Column(Integer, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
