"""
Database configuration and session management
"""
import logging
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from adjudication.core.config import get_settings
from adjudication.core.logging_config import LoggingConfig

# Lazy initialization - don't create engine at module level
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

# Base class for models (can be created immediately)
Base = declarative_base()


def build_engine(database_url: str, echo: bool = False, pool_size: int = 10, max_overflow: int = 5) -> Engine:
    """Create an engine with connection options suited to the backend"""
    if database_url.startswith("sqlite"):
        # Store calls run in executor threads
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 5},
        )
    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
        connect_args={
            "connect_timeout": 5,
            "options": "-c statement_timeout=5000"
        } if database_url.startswith("postgresql") else {},
    )


def get_engine() -> Engine:
    """Get or create database engine (lazy initialization)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        LoggingConfig.configure()

        _engine = build_engine(
            settings.database_url,
            echo=settings.log_sqlalchemy,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )

        sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
        if not settings.log_sqlalchemy:
            sqlalchemy_logger.setLevel(logging.WARNING)
            sqlalchemy_logger.propagate = False

    return _engine


def get_session_local() -> sessionmaker:
    """Get or create session factory (lazy initialization)"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=get_engine()
        )
    return _SessionLocal


def reset_engine():
    """Dispose the engine and forget the session factory (settings changed)"""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def create_tables(engine: Optional[Engine] = None):
    """Create any missing tables for the registered models"""
    import adjudication.models  # noqa: F401 - register models with Base.metadata
    Base.metadata.create_all(bind=engine or get_engine())


def __getattr__(name):
    """Support module-level access to engine and SessionLocal"""
    if name == 'engine':
        return get_engine()
    elif name == 'SessionLocal':
        return get_session_local()
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session
    """
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
