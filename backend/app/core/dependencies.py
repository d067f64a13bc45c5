import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.exceptions import InvalidTokenError
from app.core.models import User
from app.core.security import verify_token
from app.services.auth_service import find_by_id

logger = logging.getLogger(__name__)

# auto_error=False so a missing header and a bad token get different messages
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency for protected endpoints.
    Verifies the bearer token on every call and returns the User it belongs to.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authorized, no token")

    try:
        user_id = verify_token(credentials.credentials)
    except InvalidTokenError as e:
        logger.warning("Token rejected: %s", e)
        raise _unauthorized("Not authorized, token failed")

    user = find_by_id(db, user_id)
    if user is None:
        logger.warning("Token for unknown user id=%s", user_id)
        raise _unauthorized("Not authorized, token failed")

    return user
