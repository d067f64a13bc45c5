"""
Code Review API - application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import config
from app.schemas import (
    UserRegister,
    UserLogin,
    UserResponse,
    AuthResponse,
    ReviewSubmit,
    ReviewSubmitResponse,
    ReviewHistoryItem,
    ReviewDetail,
)
from app.core.database import engine, Base, get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import (
    InvalidSubmissionError,
    ReviewGenerationError,
    ReviewStorageError,
    UserAlreadyExistsError,
)
from app.core.models import User
from app.core.security import issue_token
from app.core.logging_config import setup_logging
from app.services import auth_service, review_archive, review_service
from app.services.llm_service import LLMService

# ============= GLOBALS =============

# LLM client (initialized in lifespan)
llm_service: Optional[LLMService] = None


# ===== LOGGING SETUP =====
setup_logging()
logger = logging.getLogger(__name__)


# ============= LIFESPAN EVENT =============

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Runs on application startup and shutdown.

    Code BEFORE yield runs on startup.
    Code AFTER yield runs on shutdown.
    """
    global llm_service

    # ===== STARTUP =====
    logger.info("Code Review API starting...")

    # Database must be reachable, otherwise the process stops here
    try:
        Base.metadata.create_all(bind=engine)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.critical("Database unavailable (%s): %s", config.DATABASE_URL, e)
        raise
    logger.info(f"Database: {config.DATABASE_URL}")

    try:
        llm_service = LLMService()
        logger.info(f"LLM client ready: {config.LLM_MODEL_NAME}")
    except ValueError as e:
        logger.error("LLM client not initialized: %s. Review submissions will fail.", e)

    logger.info(f"Docs: http://{config.API_HOST}:{config.API_PORT}/docs")
    logger.info("API ready!")

    yield  # Application is running

    # ===== SHUTDOWN =====
    logger.info("Shutting down...")
    if llm_service is not None:
        await llm_service.client.close()
        llm_service = None
    logger.info("Application stopped")


# ============= APPLICATION =============

app = FastAPI(
    title="Code Review API",
    description="AI-powered code review with per-user history",
    version="1.0.0",
    lifespan=lifespan
)


# ============= CORS =============

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_llm_service() -> Optional[LLMService]:
    """Dependency returning the shared LLM client, None when it is not configured"""
    return llm_service


# ============= HEALTH CHECK =============

@app.get("/", tags=["Health"])
async def root():
    """API is running"""
    return {
        "message": "Code Review API",
        "status": "healthy",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health(db: Session = Depends(get_db)):
    """State of the backing services"""
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as e:
        logger.error("Health check: database error: %s", e)
        database_ok = False

    return {
        "status": "ok" if database_ok else "degraded",
        "services": {
            "database": database_ok,
            "llm": get_llm_service() is not None,
        }
    }


# ============= AUTH ENDPOINTS =============

@app.post("/api/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED, tags=["Authentication"])
async def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a new user"""
    logger.info("Registration attempt: %s", user_data.username)

    try:
        user = auth_service.register_user(
            db,
            username=user_data.username,
            email=user_data.email,
            password=user_data.password,
        )
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        logger.error("Registration failed: %s", str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during registration"
        )

    return AuthResponse(id=user.id, username=user.username, email=user.email, token=issue_token(user.id))


@app.post("/api/auth/login", response_model=AuthResponse, tags=["Authentication"])
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Log in with email and password"""
    logger.info("Login attempt: %s", credentials.email)

    user = auth_service.authenticate(db, credentials.email, credentials.password)
    if user is None:
        logger.warning("Failed login: %s", credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    logger.info(f"User logged in: {user.username}")

    return AuthResponse(id=user.id, username=user.username, email=user.email, token=issue_token(user.id))


@app.get("/api/auth/me", response_model=UserResponse, tags=["Authentication"])
async def me(current_user: User = Depends(get_current_user)):
    """The user the bearer token belongs to"""
    return current_user


# ============= REVIEW ENDPOINTS =============

@app.post("/api/review/submit", response_model=ReviewSubmitResponse, status_code=status.HTTP_201_CREATED, tags=["Review"])
async def submit_review(
    submission: ReviewSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    llm: Optional[LLMService] = Depends(get_llm_service),
):
    """Submit code for AI review"""
    try:
        review, report = await review_service.submit_review(
            db, llm, current_user, submission.code, submission.language
        )
    except InvalidSubmissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ReviewGenerationError as e:
        logger.error("Review generation failed: %s", str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate AI review. API or parsing error."
        )
    except ReviewStorageError as e:
        # The report was generated, hand it over even though it is not in history
        unsaved = ReviewSubmitResponse(
            message="AI review generated but it could not be saved.",
            review_id=None,
            review_report=e.report,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=jsonable_encoder(unsaved, by_alias=True),
        )

    return ReviewSubmitResponse(
        message="Code submitted successfully. AI review generated.",
        review_id=review.id,
        review_report=report,
    )


@app.get("/api/review/history", response_model=List[ReviewHistoryItem], tags=["Review"])
async def review_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """All reviews of the logged-in user, newest first"""
    try:
        reviews = review_archive.list_reviews_by_user(db, current_user.id)
    except SQLAlchemyError as e:
        logger.error("Error fetching history: %s", str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal Server Error while fetching history."
        )

    return [
        ReviewHistoryItem(
            id=r.id,
            language=r.language,
            submission_date=r.submission_date,
            review_report={"overall_summary": r.review_report.get("overall_summary", "")},
        )
        for r in reviews
    ]


@app.get("/api/review/{review_id}", response_model=ReviewDetail, tags=["Review"])
async def review_detail(
    review_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """One review of the logged-in user, including the submitted code"""
    review = review_archive.get_review(db, current_user.id, review_id)
    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")

    return ReviewDetail(
        id=review.id,
        language=review.language,
        code=review.code,
        submission_date=review.submission_date,
        review_report=review.review_report,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=config.API_HOST, port=config.API_PORT)
