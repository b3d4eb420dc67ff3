"""CLI script to import a question file into an existing quiz.
Usage: python scripts/import_questions.py QUIZ_ID FILE [--dry-run]

Supported files: JSON, CSV, TXT, PDF and DOCX. The import runs as the
quiz's creator; invalid items are reported and skipped.
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `quizcraft` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quizcraft.database import engine, create_db_and_tables
from quizcraft.errors import QuizCraftError
from quizcraft import repositories, services


def main(quiz_id: int, path: pathlib.Path, dry_run: bool = False) -> int:
    if not path.exists():
        print(f'File not found: {path}')
        return 1
    create_db_and_tables()
    with Session(engine) as session:
        svc = services.QuizService(session)
        try:
            quiz = svc.get(quiz_id)
            owner = repositories.UserRepository(session).get(quiz.created_by_id)
            if owner is None:
                print(f'Creator of quiz {quiz_id} no longer exists')
                return 1
            result = svc.import_questions(owner, quiz.id, path.read_bytes(), path.name, dry_run=dry_run)
        except QuizCraftError as e:
            print(f'Import failed: {e.message}')
            return 1
    for err in result['errors']:
        print(f"Item {err['index']}: {err['error']}")
    action = 'Would create' if dry_run else 'Created'
    print(f"{action} {result['created']} questions, {len(result['errors'])} errors")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('quiz_id', type=int, help='Quiz to append the questions to')
    parser.add_argument('file', type=pathlib.Path, help='Question file (json, csv, txt, pdf, docx)')
    parser.add_argument('--dry-run', action='store_true', help='Validate without saving')
    args = parser.parse_args()
    sys.exit(main(args.quiz_id, args.file, dry_run=args.dry_run))
