from typing import List

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from celpip_prep.database import get_db
from celpip_prep.schemas.practice_set import PracticeSet, SaveSetResponse
from celpip_prep.utils import set_store
from celpip_prep.utils.content_validation import error_issues, validate_practice_set, warning_issues

router = APIRouter(prefix="/api", tags=["sets"])


@router.get("/sets", response_model=List[PracticeSet], response_model_by_alias=True)
def get_sets(published: bool = False, db: Session = Depends(get_db)):
    return set_store.list_sets(db, published_only=published)


@router.post("/sets/validate", response_model=SaveSetResponse)
def validate_set(payload: PracticeSet):
    issues = validate_practice_set(payload)
    return SaveSetResponse(success=not error_issues(issues), warnings=[str(i) for i in issues])


@router.post("/sets", response_model=SaveSetResponse)
def save_set(payload: PracticeSet, db: Session = Depends(get_db)):
    issues = validate_practice_set(payload)
    bad = error_issues(issues)
    if bad:
        raise HTTPException(status_code=422, detail=[str(i) for i in bad])
    notes = [str(i) for i in warning_issues(issues)]
    for note in notes:
        logger.warning("Set {}: {}", payload.id, note)
    try:
        set_store.save_set(db, payload)
    except SQLAlchemyError as e:
        logger.exception("Saving set {} failed", payload.id)
        raise HTTPException(status_code=500, detail=f"Could not save set: {e.__class__.__name__}")
    return SaveSetResponse(success=True, warnings=notes)


@router.delete("/sets/{set_id}")
def delete_set(set_id: str, db: Session = Depends(get_db)):
    if not set_store.delete_set(db, set_id):
        raise HTTPException(status_code=404, detail="Practice set not found")
    return {"success": True}
