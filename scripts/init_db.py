#!/usr/bin/env python3
"""Create the booking tables in the configured database."""
import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from barberbook import create_app
from barberbook.extensions import db


def init_database(drop: bool = False) -> None:
    app = create_app()
    with app.app_context():
        if drop:
            db.drop_all()
            print("🗑  Dropped existing tables")
        db.create_all()
        tables = ", ".join(sorted(db.metadata.tables))
        print(f"✅ Tables ready in {app.config['SQLALCHEMY_DATABASE_URI']}: {tables}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--drop", action="store_true", help="drop every table before creating them")
    args = parser.parse_args()
    init_database(drop=args.drop)


if __name__ == "__main__":
    main()
