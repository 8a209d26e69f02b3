"""Script to run database migrations."""

import sys

from alembic import command
from alembic.config import Config


def run_migrations(revision: str = "head") -> None:
    """Run database migrations up to ``revision``."""
    alembic_cfg = Config("alembic.ini")

    try:
        print(f"Running database migrations to {revision}...")
        command.upgrade(alembic_cfg, revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def rollback(revision: str = "-1") -> None:
    """Roll the schema back to ``revision``."""
    alembic_cfg = Config("alembic.ini")

    try:
        print(f"Rolling back database migrations to {revision}...")
        command.downgrade(alembic_cfg, revision)
        print("✓ Rollback completed successfully!")
    except Exception as e:
        print(f"✗ Rollback failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Create a new migration."""
    alembic_cfg = Config("alembic.ini")

    try:
        print(f"Creating migration: {message}")
        command.revision(alembic_cfg, message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        if sys.argv[1] == "create" and len(sys.argv) > 2:
            create_migration(" ".join(sys.argv[2:]))
        elif sys.argv[1] == "downgrade":
            rollback(sys.argv[2] if len(sys.argv) > 2 else "-1")
        else:
            print("Usage: python scripts/migrate.py [create <message> | downgrade [revision]]")
    else:
        run_migrations()
