from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from celpip_prep.database import get_db
from celpip_prep.models.user import User
from celpip_prep.schemas.user import LoginRequest, ProfileOut, SignupRequest, UserOut
from celpip_prep.utils.auth import authenticate, get_current_user, register

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login", response_model=UserOut)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return user


@router.post("/signup", response_model=UserOut)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    user = register(db, payload.email, payload.password, payload.name)
    if not user:
        raise HTTPException(status_code=400, detail="Email already registered")
    return user


@router.post("/token")
def token(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Simplified bearer auth: the token is the user id.
    """
    user = authenticate(db, form.username, form.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return {"access_token": user.id, "token_type": "bearer"}


@router.get("/me", response_model=ProfileOut)
def me(user: User = Depends(get_current_user)):
    return user
