from __future__ import annotations

from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.orm import Session

from celpip_prep.models import practice_set as orm
from celpip_prep.schemas.practice_set import PracticeSet


def _question_dict(q: orm.Question) -> Dict[str, Any]:
    return {
        "id": q.id,
        "partId": q.part_id,
        "segmentId": q.segment_id,
        "text": q.question_text,
        "type": q.type,
        "options": list(q.options or []),
        "correctAnswer": q.correct_answer,
        "weight": q.weight,
        "audioData": q.audio_data,
        "timerSeconds": q.timer_seconds,
    }


def _part_dict(p: orm.Part, segmented: bool) -> Dict[str, Any]:
    data = {
        "id": p.id,
        "sectionId": p.section_id,
        "instructions": p.instructions,
        "contentText": p.content_text,
        "imageData": p.image_data,
        "audioData": p.audio_data,
        "timerSeconds": p.timer_seconds if p.timer_seconds is not None else 600,
    }
    if segmented:
        data["segments"] = [
            {
                "id": s.id,
                "partId": s.part_id,
                "contentText": s.content_text,
                "audioData": s.audio_data,
                "prepTimeSeconds": s.prep_time_seconds,
                "timerSeconds": s.timer_seconds,
                "questions": [_question_dict(q) for q in s.questions],
            }
            for s in p.segments
        ]
        if p.questions and not p.segments:
            # legacy rows: let the schema promote them to a segment
            data["questions"] = [_question_dict(q) for q in p.questions]
    else:
        data["questions"] = [_question_dict(q) for q in p.questions]
    return data


def to_schema(row: orm.PracticeSet) -> PracticeSet:
    return PracticeSet.model_validate({
        "id": row.id,
        "title": row.title,
        "description": row.description or "",
        "isPublished": bool(row.is_published),
        "sections": [
            {
                "id": sec.id,
                "setId": sec.set_id,
                "type": sec.type,
                "title": sec.title,
                "parts": [_part_dict(p, sec.type in ("LISTENING", "SPEAKING")) for p in sec.parts],
            }
            for sec in row.sections
        ],
    })


def _question_row(q, part_id: str, segment_id: Optional[str], order: int) -> orm.Question:
    return orm.Question(
        id=q.id,
        part_id=part_id,
        segment_id=segment_id,
        type=q.type.value,
        question_text=q.text,
        options=list(q.options),
        correct_answer=q.correct_answer,
        weight=q.weight,
        audio_data=q.audio_data,
        timer_seconds=q.timer_seconds,
        order_index=order,
    )


def _to_rows(practice_set: PracticeSet) -> orm.PracticeSet:
    row = orm.PracticeSet(
        id=practice_set.id,
        title=practice_set.title,
        description=practice_set.description,
        is_published=practice_set.is_published,
    )
    for s_idx, sec in enumerate(practice_set.sections):
        sec_row = orm.Section(id=sec.id, type=sec.type, title=sec.title, order_index=s_idx)
        for p_idx, part in enumerate(sec.parts):
            part_row = orm.Part(
                id=part.id,
                instructions=part.instructions,
                content_text=part.content_text,
                image_data=part.image_data,
                audio_data=part.audio_data,
                timer_seconds=part.timer_seconds,
                order_index=p_idx,
            )
            for q_idx, q in enumerate(getattr(part, "questions", [])):
                part_row.questions.append(_question_row(q, part.id, None, q_idx))
            for g_idx, seg in enumerate(getattr(part, "segments", [])):
                seg_row = orm.Segment(
                    id=seg.id,
                    content_text=seg.content_text,
                    audio_data=seg.audio_data,
                    prep_time_seconds=seg.prep_time_seconds,
                    timer_seconds=seg.timer_seconds,
                    order_index=g_idx,
                )
                for q_idx, q in enumerate(seg.questions):
                    seg_row.questions.append(_question_row(q, part.id, seg.id, q_idx))
                part_row.segments.append(seg_row)
            sec_row.parts.append(part_row)
        row.sections.append(sec_row)
    return row


def list_sets(db: Session, published_only: bool = False) -> List[PracticeSet]:
    query = db.query(orm.PracticeSet)
    if published_only:
        query = query.filter(orm.PracticeSet.is_published.is_(True))
    return [to_schema(r) for r in query.order_by(orm.PracticeSet.title).all()]


def get_set(db: Session, set_id: str) -> Optional[PracticeSet]:
    row = db.get(orm.PracticeSet, set_id)
    return to_schema(row) if row else None


def save_set(db: Session, practice_set: PracticeSet) -> None:
    """Upsert by id: the old tree is dropped and the new one written in one transaction."""
    try:
        existing = db.get(orm.PracticeSet, practice_set.id)
        if existing:
            db.delete(existing)
            db.flush()
        db.add(_to_rows(practice_set))
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Saved practice set {} ({} sections)", practice_set.id, len(practice_set.sections))


def delete_set(db: Session, set_id: str) -> bool:
    row = db.get(orm.PracticeSet, set_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    logger.info("Deleted practice set {}", set_id)
    return True
