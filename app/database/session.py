"""Database session dependencies for FastAPI."""

from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.base import CredentialMode, open_session


async def get_service_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a privileged session that bypasses row-level security.

    Yields:
        AsyncSession: Database session
    """
    async with open_session(CredentialMode.SERVICE) as session:
        yield session


async def session_for_claims(claims: Dict[str, Any]) -> AsyncGenerator[AsyncSession, None]:
    """Yield an RLS-enforced session acting as the holder of ``claims``."""
    async with open_session(CredentialMode.USER, claims=claims) as session:
        yield session
