"""CLI script to create the default quiz categories.
Usage: python scripts/seed_categories.py

Categories are attributed to the first admin account (or the first user
when no admin exists). Existing category names are skipped.
"""
import sys
import pathlib
# Ensure `backend/` is on sys.path so `quizcraft` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quizcraft.database import engine, create_db_and_tables
from quizcraft import repositories, services


def main():
    create_db_and_tables()
    with Session(engine) as session:
        users = repositories.UserRepository(session)
        owner = users.first_admin() or users.first()
        if owner is None:
            print('No users found; categories will have no creator')
        result = services.CategoryService(session).seed_defaults(owner)
        print(f"Created {result['created']} categories, skipped {result['skipped']} existing")


if __name__ == '__main__':
    main()
