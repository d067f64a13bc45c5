import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import UserAlreadyExistsError
from app.core.models import User
from app.core.security import hash_password, verify_password

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def find_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def register_user(db: Session, username: str, email: str, password: str) -> User:
    """
    Creates a user, storing only the bcrypt hash of the password.

    Raises UserAlreadyExistsError when the email or username is taken, also when
    a concurrent registration wins the race at the unique constraint.
    """
    email = normalize_email(email)
    username = username.strip()

    if find_by_email(db, email):
        logger.warning("Email already registered: %s", email)
        raise UserAlreadyExistsError("User already exists")

    if db.query(User).filter(User.username == username).first():
        logger.warning("Username already taken: %s", username)
        raise UserAlreadyExistsError("Username already taken")

    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
    )

    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent registration rejected: %s", email)
        raise UserAlreadyExistsError("User already exists")
    db.refresh(user)

    logger.info("User registered: %s (id=%s)", user.username, user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    """Returns the user when the email exists and the password matches"""
    user = find_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user
