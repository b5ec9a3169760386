"""
Create an admin user, or promote an existing one to admin.

Usage:
    python scripts/create_admin.py --username admin --email admin@example.com --password secret123
    python scripts/create_admin.py --email someone@example.com --promote
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sqlalchemy import or_
from soundright.config import settings
from soundright.db import Base, SessionLocal, engine, ensure_sqlite_directory
from soundright.models.models import User
from soundright.auth.security import get_password_hash


def create_admin(username: str, email: str, password: str, first_name: str, last_name: str) -> int:
    db = SessionLocal()
    try:
        email = email.lower()
        existing = db.query(User).filter(or_(User.username == username, User.email == email)).first()
        if existing:
            print(f"[ERROR] User already exists with this email or username: {existing.username}")
            return 1
        user = User(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role="admin",
            is_active=True,
        )
        db.add(user)
        db.commit()
        print(f"[OK] Created admin {user.username} ({user.email})")
        return 0
    finally:
        db.close()


def promote(email: str) -> int:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            print(f"[ERROR] No user with email {email}")
            return 1
        user.role = "admin"
        user.is_active = True
        db.commit()
        print(f"[OK] {user.username} is now an admin")
        return 0
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--username")
    parser.add_argument("--password")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    parser.add_argument("--promote", action="store_true", help="Promote an existing user instead of creating one")
    args = parser.parse_args(argv)

    ensure_sqlite_directory(settings.database_url)
    Base.metadata.create_all(bind=engine)
    if args.promote:
        return promote(args.email)
    if not args.username or not args.password:
        parser.error("--username and --password are required when creating a user")
    if len(args.password) < 6:
        parser.error("--password must be at least 6 characters")
    return create_admin(args.username, args.email, args.password, args.first_name, args.last_name)


if __name__ == "__main__":
    sys.exit(main())
