from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from celpip_prep.database import get_db
from celpip_prep.schemas.attempt import Attempt
from celpip_prep.utils.attempt_store import AttemptExists, list_attempts, save_attempt

router = APIRouter(prefix="/api", tags=["attempts"])


@router.post("/attempts")
def create_attempt(payload: Attempt, db: Session = Depends(get_db)):
    try:
        save_attempt(db, payload)
    except AttemptExists:
        raise HTTPException(status_code=409, detail="Attempt already recorded")
    return {"success": True}


@router.get("/attempts/{user_id}", response_model=List[Attempt], response_model_by_alias=True)
def get_attempts(user_id: str, db: Session = Depends(get_db)):
    """Newest first."""
    return list_attempts(db, user_id)
