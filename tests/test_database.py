import logging

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from socialgraph.database import engine, get_session, is_unique_violation
from socialgraph.logging_config import LOGGING_CONFIG, setup_logging
from socialgraph.models import User


class TestUnitOfWork:
    """Session helper and store error classification."""

    @pytest.mark.asyncio
    async def test_get_session_commits_and_rolls_back(self, db_session):
        """Test get session commits and rolls back."""
        try:
            async with get_session() as session:
                session.add(User(username="kept", email="kept@example.com"))

            with pytest.raises(RuntimeError):
                async with get_session() as session:
                    session.add(User(username="dropped", email="dropped@example.com"))
                    await session.flush()
                    raise RuntimeError("boom")

            async with get_session() as session:
                result = await session.execute(select(User.username).order_by(User.username))
                assert list(result.scalars().all()) == ["kept"]
        finally:
            await engine.dispose()

    def test_unique_violation_detection(self):
        """Test unique violation detection."""
        sqlite_error = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed: subscriptions.follower_id")
        )
        postgres_error = IntegrityError(
            "INSERT", {}, Exception('duplicate key value violates unique constraint "uk_friendships_pair"')
        )
        fk_error = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

        assert is_unique_violation(sqlite_error)
        assert is_unique_violation(postgres_error)
        assert not is_unique_violation(fk_error)


class TestLogging:
    def test_setup_logging(self):
        """Test applying the logging configuration."""
        setup_logging()

        logger = logging.getLogger("socialgraph")
        assert logger.level == logging.getLevelName(LOGGING_CONFIG["loggers"]["socialgraph"]["level"])
        assert logger.handlers
