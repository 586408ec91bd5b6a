"""Tests for database connection."""

import pytest
from sqlalchemy import text

from dynarecord.core.connection import DatabaseConnection, _normalize_url
from dynarecord.exceptions import ConnectionError


class TestNormalizeUrl:
    """Driver selection for bare URLs."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgresql://u:p@localhost/db", "postgresql+psycopg://u:p@localhost/db"),
            ("mysql://u:p@localhost/db", "mysql+pymysql://u:p@localhost/db"),
            ("postgresql+psycopg2://localhost/db", "postgresql+psycopg2://localhost/db"),
            ("sqlite:///:memory:", "sqlite:///:memory:"),
        ],
    )
    def test_normalize_url(self, url, expected):
        assert _normalize_url(url) == expected


class TestDatabaseConnection:
    """Tests for DatabaseConnection class."""

    def test_sqlite_memory(self):
        """SQLite in-memory databases are supported."""
        conn = DatabaseConnection("sqlite:///:memory:")
        assert conn.test_connection() is True
        assert conn.dialect == "sqlite"
        conn.close()

    def test_memory_database_is_shared_between_sessions(self):
        """Every session sees the same in-memory database."""
        with DatabaseConnection("sqlite:///:memory:") as conn:
            with conn.get_session() as session:
                session.execute(text("CREATE TABLE t (x INTEGER)"))
                session.execute(text("INSERT INTO t VALUES (1)"))
                session.commit()
            with conn.get_session() as session:
                assert session.execute(text("SELECT x FROM t")).scalar() == 1

    def test_engine_created_lazily(self):
        """Engine is not created until accessed."""
        conn = DatabaseConnection("sqlite:///:memory:")
        assert conn._engine is None
        _ = conn.engine
        assert conn._engine is not None
        conn.close()

    def test_close_disposes_engine(self):
        """Closing disposes engine and session factory."""
        conn = DatabaseConnection("sqlite:///:memory:")
        _ = conn.engine
        _ = conn.session_factory
        conn.close()
        assert conn._engine is None
        assert conn._session_factory is None

    def test_sqlite_file(self, tmp_path):
        with DatabaseConnection(f"sqlite:///{tmp_path / 'meta.db'}") as conn:
            assert conn.test_connection() is True
        assert (tmp_path / "meta.db").exists()

    def test_invalid_url(self):
        """Invalid URL raises ConnectionError."""
        conn = DatabaseConnection("invalid://not-a-real-db")
        with pytest.raises(ConnectionError):
            conn.test_connection()

    def test_postgresql_connection(self, postgresql_url: str):
        """Can connect to PostgreSQL."""
        conn = DatabaseConnection(postgresql_url)
        assert conn.test_connection() is True
        assert conn.dialect == "postgresql"
        conn.close()
