"""
Database connection setup.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app import config

connect_args = {}
if config.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}  # SQLite only
    if config.DATABASE_URL.startswith("sqlite:///") and ":memory:" not in config.DATABASE_URL:
        config.DATA_DIR.mkdir(parents=True, exist_ok=True)

# Database engine
engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """
    Dependency that yields a database session to endpoints.

    Usage:
        @app.post("/users")
        def create_user(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
