# This project was developed with assistance from AI tools.
"""DatabaseService health check tests (no running PostgreSQL needed)."""

from unittest.mock import AsyncMock, MagicMock

from buddy_db.database import DatabaseService


def _engine_with_connection(conn):
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    engine = MagicMock()
    engine.connect.return_value = ctx
    return engine


async def test_health_check_ok():
    conn = AsyncMock()
    service = DatabaseService(_engine_with_connection(conn))

    assert await service.health_check() is True
    conn.execute.assert_awaited_once()


async def test_health_check_reports_failure():
    conn = AsyncMock()
    conn.execute.side_effect = OSError("connection refused")
    service = DatabaseService(_engine_with_connection(conn))

    assert await service.health_check() is False
