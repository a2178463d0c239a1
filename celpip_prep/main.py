import os

from fastapi import FastAPI
from loguru import logger
from sqlalchemy.orm import Session

from celpip_prep import models  # noqa: F401  (registers the tables)
from celpip_prep.database import Base, engine
from celpip_prep.routers import ai as ai_router
from celpip_prep.routers import attempts as attempts_router
from celpip_prep.routers import auth as auth_router
from celpip_prep.routers import session as session_router
from celpip_prep.routers import sets as sets_router
from celpip_prep.utils.auth import ensure_default_admin, rehash_plaintext_passwords
from celpip_prep.utils.set_loader import import_all

app = FastAPI(title="CELPIP Prep")


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=engine)
    with Session(engine) as db:
        rehash_plaintext_passwords(db)
        ensure_default_admin(db, os.getenv("ADMIN_EMAIL"), os.getenv("ADMIN_PASSWORD"))
        import_all(db, overwrite=False)
    logger.info("CELPIP Prep ready")


app.include_router(auth_router.router)
app.include_router(sets_router.router)
app.include_router(attempts_router.router)
app.include_router(ai_router.router)
app.include_router(session_router.router)
app.include_router(session_router.pages)


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("celpip_prep.main:app", host="127.0.0.1", port=8000, reload=True)
