"""Unit tests for the SQL migration runner."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import text

import lexchat.db
from lexchat.db.migrations import run_sql_migrations


class TestRunSqlMigrations:

    def test_embedding_width_is_filled_in(self, engine, tmp_path):
        (tmp_path / "001_vectors.sql").write_text(
            "CREATE TABLE IF NOT EXISTS vecs (embedding VARCHAR({{EMBED_DIM}}))"
        )

        count = run_sql_migrations(engine, str(tmp_path), embed_dim=1536)

        with engine.connect() as conn:
            ddl = conn.execute(text("SELECT sql FROM sqlite_master WHERE name = 'vecs'")).scalar()
        assert count == 1
        assert "VARCHAR(1536)" in ddl

    def test_missing_directory_runs_nothing(self, engine, tmp_path):
        assert run_sql_migrations(engine, str(tmp_path / "absent")) == 0

    def test_shipped_schema_uses_the_width_placeholder(self):
        sql = (Path(lexchat.db.__file__).parent / "scripts" / "001_init.sql").read_text()
        assert "vector({{EMBED_DIM}})" in sql
