"""Database client used at startup, shutdown and by the health endpoint."""

from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from app.database.base import Base, engine
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DatabaseClient:
    """PostgreSQL connectivity checks and schema bootstrap."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._connected = False

    async def connect(self) -> bool:
        """Test database connection."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            self._connected = True
            LOGGER.info("Database connection successful")
            return True
        except Exception:
            self._connected = False
            LOGGER.error("Database connection failed", exc_info=True)
            raise

    async def disconnect(self) -> None:
        """Dispose of the connection pool."""
        await self.engine.dispose()
        self._connected = False
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create missing tables from the models. Alembic owns real migrations."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        LOGGER.info("Database tables created/verified successfully")

    async def health_check(self) -> Dict[str, Any]:
        """Check database health."""
        try:
            async with self.engine.connect() as conn:
                val = await conn.scalar(text("SELECT 1"))
            self._connected = True
            return {
                "status": "healthy",
                "connected": True,
                "database": "postgresql",
                "latency_test": "passed" if val == 1 else "failed",
            }
        except Exception as e:
            self._connected = False
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "error": str(e)}

    @property
    def is_connected(self) -> bool:
        return self._connected


db_client = DatabaseClient(engine)


async def init_database(create_tables: bool = False) -> None:
    """Verify connectivity and optionally create tables (local development)."""
    await db_client.connect()
    if create_tables:
        await db_client.create_tables()


async def close_database() -> None:
    await db_client.disconnect()
