"""
Project management - CLI commands.

Usage:
    python manage.py check-db
    python manage.py reset-db
    python manage.py seed-db
    python manage.py create-tables
"""

import argparse
from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, engine
from app.core.exceptions import UserAlreadyExistsError
from app.core.models import Review, User
from app.services.auth_service import register_user


def check_db():
    """Inspect the database - list users with their review counts"""
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()

    try:
        users = db.query(User).all()
        counts = dict(
            db.query(Review.user_id, func.count(Review.id)).group_by(Review.user_id).all()
        )

        print(f"\nUsers in database: {len(users)}")
        print(f"Reviews in database: {sum(counts.values())}\n")
        print("=" * 60)

        if not users:
            print("Database is empty.")
            print("   Register a user via /api/auth/register\n")
            return

        for user in users:
            print(f"ID: {user.id}")
            print(f"Email: {user.email}")
            print(f"Username: {user.username}")
            print(f"Reviews: {counts.get(user.id, 0)}")
            print(f"Created: {user.created_at}")
            print("-" * 60)

    finally:
        db.close()


def reset_db():
    """Reset the database (drop all tables and create them again)"""
    print("WARNING: this deletes all users and reviews!")
    confirm = input("Continue? (yes/no): ")

    if confirm.lower() != "yes":
        print("Cancelled")
        return

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("Database reset\n")


def seed_db():
    """Fill the database with test users"""
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()

    test_users = [
        {"email": "user1@test.com", "username": "user1", "password": "password123"},
        {"email": "user2@test.com", "username": "user2", "password": "password123"},
        {"email": "admin@test.com", "username": "admin", "password": "admin12345"},
    ]

    try:
        for user_data in test_users:
            try:
                register_user(db, **user_data)
            except UserAlreadyExistsError:
                print(f"User {user_data['username']} already exists")
                continue
            print(f"Created user: {user_data['username']}")
    finally:
        db.close()

    print("\nTest data added\n")


def create_tables():
    """Create the tables (if they do not exist)"""
    Base.metadata.create_all(bind=engine)
    print("Tables created\n")


def main():
    """Parse the command and run it"""
    parser = argparse.ArgumentParser(
        description="Code Review API management"
    )

    parser.add_argument(
        "command",
        choices=["check-db", "reset-db", "seed-db", "create-tables"],
        help="Command to run"
    )

    args = parser.parse_args()

    commands = {
        "check-db": check_db,
        "reset-db": reset_db,
        "seed-db": seed_db,
        "create-tables": create_tables,
    }

    commands[args.command]()


if __name__ == "__main__":
    main()
