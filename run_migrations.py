#!/usr/bin/env python3
"""Database bootstrap: wait for the database, then run Alembic migrations.

- Always run `alembic upgrade head` on startup.
- If migrations fail, fail fast (don't start with an unknown schema).
"""

import os
import sys
import time
from dotenv import load_dotenv

load_dotenv()


def _get_alembic_config():
    """Load Alembic config for programmatic migrations."""
    from alembic.config import Config

    here = os.path.dirname(os.path.abspath(__file__))
    return Config(os.path.join(here, "alembic.ini"))


def alembic_upgrade_head() -> None:
    """Apply all pending migrations."""
    from alembic import command

    command.upgrade(_get_alembic_config(), "head")


def main(max_wait_s: int = 60) -> int:
    from core.database import check_db_connection

    deadline = time.time() + max_wait_s
    while not check_db_connection():
        if time.time() > deadline:
            print("Database not ready, giving up", file=sys.stderr)
            return 1
        print("Waiting for database...")
        time.sleep(2)

    alembic_upgrade_head()
    print("Migrations applied")
    return 0


if __name__ == "__main__":
    sys.exit(main())
