"""
Database migration utilities.
"""
import os

from sqlalchemy import text
from sqlalchemy.engine import Engine

from ..config import EMBED_DIM
from ..logging_config import logger


def run_sql_migrations(engine: Engine, migrations_dir: str = None, embed_dim: int = EMBED_DIM) -> int:
    """
    Run all SQL migration files in the migrations directory.

    Migration files should:
    - Be named with a sortable prefix (e.g., 001_init.sql, 002_add_columns.sql)
    - End with .sql extension
    - Be idempotent (safe to run multiple times)
    - Write the embedding width as {{EMBED_DIM}}

    Returns:
        Number of migration files executed

    Raises:
        Exception: If any migration fails
    """
    if migrations_dir is None:
        migrations_dir = os.path.join(os.path.dirname(__file__), "scripts")

    if not os.path.exists(migrations_dir):
        logger.warning("Migrations directory not found", path=migrations_dir)
        return 0

    migration_files = sorted(
        f for f in os.listdir(migrations_dir)
        if f.endswith(".sql")
    )

    if not migration_files:
        logger.info("No migration files found", path=migrations_dir)
        return 0

    with engine.begin() as conn:
        for filename in migration_files:
            filepath = os.path.join(migrations_dir, filename)
            logger.info("Running migration", file=filename)

            with open(filepath, "r", encoding="utf-8") as f:
                sql = f.read().replace("{{EMBED_DIM}}", str(int(embed_dim)))

            conn.execute(text(sql))

    logger.info("Migrations completed", count=len(migration_files))
    return len(migration_files)
