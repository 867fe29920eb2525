#!/usr/bin/env python3
"""Mark waitlist entries whose expiry has passed as expired.

Meant to run from cron, e.g. every hour.
"""
from __future__ import annotations

import sys
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from barberbook import create_app
from barberbook.extensions import db
from barberbook.waitlist import expire_stale_entries


def main() -> int:
    app = create_app()
    with app.app_context():
        try:
            expired = expire_stale_entries()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to expire waitlist entries", exc_info=exc)
            return 1
    print(f"Expired {expired} waitlist entries")
    return 0


if __name__ == "__main__":
    sys.exit(main())
