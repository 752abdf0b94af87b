#!/usr/bin/env python3
"""
Create the SmartLearn tables in DATABASE_URL (local development).
Run from the project root: python -m scripts.init_db
"""
import smartlearn.models  # noqa: F401  (registers every table on Base.metadata)
from smartlearn.db.base import Base
from smartlearn.db.session import engine


def main():
    Base.metadata.create_all(bind=engine)
    print(f"Tables: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    main()
