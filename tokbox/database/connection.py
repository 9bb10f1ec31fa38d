import logging
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from tokbox.config.settings import settings

logger = logging.getLogger(__name__)

# SQLAlchemy setup
_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, the form stored in created_at"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(bind=None):
    """Create the analyses table and its indexes if they don't exist"""
    # Register the table on Base.metadata
    from tokbox.database import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("✅ Database connected successfully")
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        raise


def close_db():
    """Dispose of the connection pool"""
    engine.dispose()
    logger.info("🔌 Database disconnected")


def get_db_session() -> Session:
    """Get a new database session"""
    return SessionLocal()
