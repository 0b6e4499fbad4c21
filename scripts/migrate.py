"""Script to run database migrations."""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def run_migrations(revision: str = "head") -> None:
    """Upgrade the database to a revision, the latest by default."""
    alembic_cfg = Config(str(ALEMBIC_INI))

    try:
        print("Running database migrations...")
        command.upgrade(alembic_cfg, revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Create a new migration."""
    alembic_cfg = Config(str(ALEMBIC_INI))

    try:
        print(f"Creating migration: {message}")
        command.revision(alembic_cfg, message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


def rollback_migration(revision: str = "-1") -> None:
    """Downgrade the database, one revision by default."""
    alembic_cfg = Config(str(ALEMBIC_INI))

    try:
        print(f"Downgrading database to {revision}...")
        command.downgrade(alembic_cfg, revision)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        if sys.argv[1] == "create" and len(sys.argv) > 2:
            create_migration(" ".join(sys.argv[2:]))
        elif sys.argv[1] == "downgrade":
            rollback_migration(sys.argv[2] if len(sys.argv) > 2 else "-1")
        else:
            print("Usage: python scripts/migrate.py [create <message> | downgrade [revision]]")
    else:
        run_migrations()
