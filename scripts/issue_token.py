#!/usr/bin/env python3
"""
Issue a bearer token for a user (local testing of the API).
Run from the project root: python -m scripts.issue_token <email>
"""
import sys

from smartlearn.db.session import SessionLocal
from smartlearn.models.user import User
from smartlearn.services.auth.identity import issue_token


def main():
    if len(sys.argv) != 2:
        print("Usage: python -m scripts.issue_token <email>")
        return 1
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == sys.argv[1]).one_or_none()
        if not user:
            print(f"No user with email {sys.argv[1]}")
            return 1
        print(f"{user.role} {user.id}\nAuthorization: Bearer {issue_token(user.id, user.role)}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
