"""
Security helpers: password hashing and JWT tokens.
"""
from app import config
from datetime import datetime, timezone, timedelta
from typing import Optional
from passlib.context import CryptContext
from jose import JWTError, jwt

from app.core.exceptions import InvalidTokenError

# Password hashing context, bcrypt salts every hash on its own
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)


def hash_password(password: str) -> str:
    """Hashes a password"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Checks a password against its stored hash"""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a JWT.

    Args:
        data: Claims to embed in the token (usually {"sub": user_id})
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)

    return encoded_jwt


def issue_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Issues a bearer token for a user"""
    return create_access_token(data={"sub": str(user_id)}, expires_delta=expires_delta)


def decode_access_token(token: str) -> Optional[dict]:
    """Decodes a JWT, None if the signature is wrong, it is malformed or expired"""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        return payload
    except JWTError:
        return None


def verify_token(token: str) -> int:
    """Returns the user id carried by a valid token"""
    payload = decode_access_token(token)
    if payload is None:
        raise InvalidTokenError("Token signature invalid, malformed or expired")

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise InvalidTokenError("Token does not carry a user id")
