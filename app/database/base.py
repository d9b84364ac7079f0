"""Engine, declarative base and the two credential modes.

``CredentialMode.SERVICE`` sessions connect with the privileged role and bypass
row-level security. ``CredentialMode.USER`` sessions switch to the RLS role and
publish the caller's JWT claims at the start of every transaction, so the
database policies see the same identity Supabase would.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session

from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class CredentialMode(str, Enum):
    """Which credential a session acts with."""

    SERVICE = "service"
    USER = "user"


class UserCredentialSession(Session):
    """Sync session class behind USER-mode async sessions."""

    pass


@event.listens_for(UserCredentialSession, "after_begin")
def _apply_rls_claims(session: Session, transaction: Any, connection: Any) -> None:
    """Assume the RLS role and expose JWT claims for the current transaction."""
    claims = session.info.get("rls_claims")
    if claims is None or connection.dialect.name != "postgresql":
        return

    role = connection.dialect.identifier_preparer.quote(settings.db.rls_role)
    connection.execute(text(f"SET LOCAL ROLE {role}"))
    connection.execute(
        text("SELECT set_config('request.jwt.claims', :claims, true)"),
        {"claims": json.dumps(claims, default=str)},
    )


engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    pool_pre_ping=True,
    # Disable prepared statement cache for PgBouncer compatibility
    connect_args={"statement_cache_size": 0},
)

service_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

user_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    sync_session_class=UserCredentialSession,
    expire_on_commit=False,
)


def open_session(mode: CredentialMode, claims: Optional[Dict[str, Any]] = None) -> AsyncSession:
    """Open a session for the given credential mode.

    Args:
        mode: SERVICE for privileged access, USER for RLS-enforced access
        claims: Verified JWT claims of the caller; required for USER mode

    Raises:
        ConfigurationError: If a USER session is requested without claims
    """
    if mode is CredentialMode.USER:
        if not claims:
            raise ConfigurationError("User-credential sessions require the caller's JWT claims")
        return user_session_maker(info={"rls_claims": claims})
    return service_session_maker()
