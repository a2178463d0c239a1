from typing import Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from celpip_prep.database import get_db
from celpip_prep.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/token")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def is_hashed(password_hash: str) -> bool:
    # bcrypt hashes always start with "$2b$" (or the older $2a$/$2y$)
    return (password_hash or "").startswith(("$2a$", "$2b$", "$2y$"))


def _norm_email(email: str) -> str:
    return (email or "").strip().lower()


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == _norm_email(email)).first()
    if not user or not is_hashed(user.password_hash):
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def register(db: Session, email: str, password: str, name: str, role: str = "user") -> Optional[User]:
    """Creates a user; None when the email is already taken."""
    email = _norm_email(email)
    if db.query(User).filter(User.email == email).first():
        return None
    user = User(
        id=f"user-{uuid4().hex[:12]}",
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        name=name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def rehash_plaintext_passwords(db: Session) -> int:
    """Older deployments stored raw passwords; hash any still lying around."""
    updated = 0
    for u in db.query(User).all():
        if not is_hashed(u.password_hash):
            logger.info("Hashing stored plaintext password for {}", u.email)
            u.password_hash = get_password_hash(u.password_hash)
            updated += 1
    if updated:
        db.commit()
        logger.info("Re-hashed {} password(s)", updated)
    return updated


def ensure_default_admin(db: Session, email: Optional[str], password: Optional[str]) -> Optional[User]:
    if not email or not password:
        return None
    existing = db.query(User).filter(User.email == _norm_email(email)).first()
    if existing:
        return existing
    logger.info("Creating default admin {}", email)
    return register(db, email, password, name="Administrator", role="admin")


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    # token is the user id (simplified bearer scheme)
    user = db.get(User, token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user
