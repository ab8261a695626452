"""
Database Configuration and Session Management

SQLAlchemy setup with connection pooling. Tenant isolation is not handled
here: every query in the API layer filters by the tenant resolved by
TenantMiddleware.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from bizos.config import get_settings
import logging

logger = logging.getLogger(__name__)

settings = get_settings()

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

if _is_sqlite:
    # SQLite is used for local runs and the test suite; the pool options
    # below are PostgreSQL-only.
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=settings.DEBUG,
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )

# expire_on_commit=False lets handlers read attributes after commit
# without another round trip.
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False
)

# Base class for all models
Base = declarative_base()


@event.listens_for(engine, "connect")
def set_connection_defaults(dbapi_connection, connection_record):
    """Set connection-level configuration on new connections."""
    cursor = dbapi_connection.cursor()
    # All timestamps are stored as naive UTC
    if settings.DATABASE_URL.startswith("postgresql"):
        cursor.execute("SET TIME ZONE 'UTC'")
    elif _is_sqlite:
        cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    logger.debug("New database connection established")


def get_db() -> Session:
    """
    Dependency function that provides a database session.

    The session is closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Create tables and seed the built-in event type catalogue.

    Development and tests only; production schemas are managed by migrations.
    """
    # Register every model on Base.metadata before create_all
    import bizos.models  # noqa: F401
    from bizos.services.event_bus import seed_event_types

    logger.warning("init_db() called - use migrations in production!")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_event_types(db)
    finally:
        db.close()
