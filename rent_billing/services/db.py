"""Database connection and session management."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from rent_billing.config import get_settings


def create_session_factory(
    database_url: str | None = None,
    echo: bool | None = None,
) -> sessionmaker[Session]:
    """Build an engine and session factory.

    Args:
        database_url: SQLAlchemy URL (default: Settings.database_url)
        echo: Log SQL statements (default: Settings.database_echo)

    Returns:
        Session factory bound to the engine
    """
    settings = get_settings()
    url = database_url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    # SQLite uses StaticPool for simplicity in dev/test
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, echo=echo, pool_pre_ping=True)

    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Yield a database session and always close it.

    Example:
        ```python
        for db in get_db(create_session_factory()):
            leases = db.query(Lease).all()
        ```
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


__all__ = ["create_session_factory", "get_db"]
