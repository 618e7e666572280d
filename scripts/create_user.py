"""
Create a journal user (or reuse an existing one) and print an access token.

Usage: python -m scripts.create_user EMAIL [--minutes N]
"""
import argparse
from journal.api.auth import create_access_token
from journal.models.base import SessionLocal
from journal.models.users import User
from journal.models.positions import Position  # noqa: F401  registers the relationship target

def main():
    parser = argparse.ArgumentParser(description="Create a user and print a bearer token")
    parser.add_argument("email")
    parser.add_argument("--minutes", type=int, default=None, help="Token lifetime in minutes")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == args.email).first()
        if not user:
            user = User(email=args.email)
            db.add(user)
            db.commit()
            print(f"Created user {user.id} ({user.email})")
        else:
            print(f"Using existing user {user.id} ({user.email})")

        print(create_access_token(user.id, args.minutes))
    finally:
        db.close()

if __name__ == "__main__":
    main()
