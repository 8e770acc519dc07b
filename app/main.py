import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.api import api_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.db.database import Base, SessionLocal, engine
from app.services.dependencies import build_blob_store
from app.services.file_sweeper import OrphanFileSweeper
from app.utils.logger import setup_logging

# register every table on Base.metadata
from app.models.reference_models import Department, Faculty  # noqa: F401
from app.models.user_models import Instructor, Student, User  # noqa: F401
from app.models.file_models import File  # noqa: F401
from app.models.past_exam_models import PastExam  # noqa: F401
from app.models.class_note_models import ClassNote  # noqa: F401
from app.models.community_models import Community, CommunityParticipant  # noqa: F401
from app.models.chat_message_models import ChatMessage  # noqa: F401
from app.models.token_models import (  # noqa: F401
    EmailVerificationToken,
    PasswordResetToken,
    RefreshToken,
)

setup_logging()
logger = logging.getLogger("app")

settings = get_settings()

# Create tables if they do not exist (alembic owns real migrations)
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if settings.FILE_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = OrphanFileSweeper(
            SessionLocal,
            build_blob_store(settings.UPLOAD_DIR, settings.FILE_BASE_URL),
            grace=timedelta(minutes=settings.FILE_SWEEP_GRACE_MINUTES),
            interval=settings.FILE_SWEEP_INTERVAL_SECONDS,
        )
        sweeper.start()
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()


app = FastAPI(title="UniSphere Backend", version="1.0.0", lifespan=lifespan)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    settings.FRONTEND_BASE_URL,
]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
        ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%dms)", request.method, request.url.path, response.status_code, ms)
        return response
    except Exception:
        ms = int((time.time() - start) * 1000)
        logger.exception("Unhandled error %s %s (%dms)", request.method, request.url.path, ms)
        raise


app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys(origins)),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def root():
    return {"message": "UniSphere backend is running!"}
