from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from celpip_prep.models.attempt import Attempt as AttemptRow
from celpip_prep.models.practice_set import PracticeSet as SetRow
from celpip_prep.schemas.attempt import Attempt

UNKNOWN_SET_TITLE = "Unknown Set"


class AttemptExists(Exception):
    """Attempts are append-only; an id may be written once."""


def _completed_at(attempt: Attempt) -> datetime:
    """Naive UTC timestamp for the row; a bare day means midnight."""
    now = datetime.now(timezone.utc)
    if not attempt.date:
        return now.replace(tzinfo=None)
    try:
        stamp = datetime.fromisoformat(attempt.date)
    except ValueError:
        logger.warning("Attempt {} has unparseable date {!r}; using now", attempt.id, attempt.date)
        return now.replace(tzinfo=None)
    if stamp.tzinfo is not None:
        return stamp.astimezone(timezone.utc).replace(tzinfo=None)
    return stamp


def save_attempt(db: Session, attempt: Attempt) -> None:
    if db.get(AttemptRow, attempt.id):
        raise AttemptExists(attempt.id)
    completed_at = _completed_at(attempt)
    last_seq = db.query(func.max(AttemptRow.seq)).filter(AttemptRow.user_id == attempt.user_id).scalar()
    row = AttemptRow(
        id=attempt.id,
        user_id=attempt.user_id,
        set_id=attempt.set_id,
        set_title=attempt.set_title or None,
        section_scores=dict(attempt.section_scores),
        band_score=attempt.band_score,
        ai_feedback={k: v.model_dump(by_alias=True) for k, v in attempt.ai_feedback.items()},
        completed_at=completed_at,
        seq=(last_seq or 0) + 1,
    )
    db.add(row)
    db.commit()
    logger.info("Stored attempt {} for user {} (band {})", attempt.id, attempt.user_id, attempt.band_score)


def list_attempts(db: Session, user_id: str) -> List[Attempt]:
    rows = (
        db.query(AttemptRow, SetRow.title)
        .outerjoin(SetRow, SetRow.id == AttemptRow.set_id)
        .filter(AttemptRow.user_id == user_id)
        .order_by(AttemptRow.completed_at.desc(), AttemptRow.seq.desc())
        .all()
    )
    return [
        Attempt.model_validate({
            "id": row.id,
            "userId": row.user_id,
            "setId": row.set_id,
            "setTitle": current_title or row.set_title or UNKNOWN_SET_TITLE,
            "date": row.completed_at.date().isoformat() if row.completed_at else "",
            "sectionScores": row.section_scores or {},
            "bandScore": row.band_score or 0,
            "aiFeedback": row.ai_feedback or {},
        })
        for row, current_title in rows
    ]
