"""
Write-once storage of review records.

There are no update or delete operations, a review never changes after it is stored.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, defer

from app.core.exceptions import ReviewStorageError
from app.core.models import Review
from app.schemas import ReviewReport

logger = logging.getLogger(__name__)


def append_review(db: Session, user_id: int, code: str, language: str, report: ReviewReport) -> Review:
    """Inserts one review, wrapping any database error in ReviewStorageError"""
    review = Review(
        user_id=user_id,
        code=code,
        language=language,
        review_report=report.model_dump(),
    )
    try:
        db.add(review)
        db.commit()
        db.refresh(review)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to save review for user_id=%s: %s", user_id, e, exc_info=True)
        raise ReviewStorageError("Failed to save review record.", report=report) from e

    logger.info("Review %s stored for user_id=%s", review.id, user_id)
    return review


def list_reviews_by_user(db: Session, user_id: int) -> List[Review]:
    """
    All reviews of one user, newest first.
    The code column is not loaded.
    """
    return (
        db.query(Review)
        .options(defer(Review.code))
        .filter(Review.user_id == user_id)
        .order_by(Review.submission_date.desc(), Review.id.desc())
        .all()
    )


def get_review(db: Session, user_id: int, review_id: str) -> Optional[Review]:
    """One review of the user, None if it does not exist or belongs to someone else"""
    return (
        db.query(Review)
        .filter(Review.id == review_id, Review.user_id == user_id)
        .first()
    )
