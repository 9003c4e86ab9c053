"""
Database connection and session management
PostgreSQL when DATABASE_URL points at it, otherwise SQLite under DATA_DIR
"""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from config import settings
import logging
import os

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

DATABASE_AVAILABLE = False
engine = None
SessionLocal = None


def default_sqlite_url() -> str:
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    return f"sqlite:///{os.path.join(settings.DATA_DIR, 'followup.db')}"


def create_db_engine(url: str):
    """
    Engine for a PostgreSQL or SQLite URL. In-memory SQLite keeps a single
    shared connection so every session sees the same tables.
    """
    if url.startswith("postgresql"):
        return create_engine(
            url,
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=3600,
            pool_size=5,
            max_overflow=10,
            echo=settings.DEBUG,
            connect_args={"connect_timeout": 10}
        )

    options = {"echo": settings.DEBUG, "connect_args": {"check_same_thread": False}}
    if url in IN_MEMORY_URLS:
        options["poolclass"] = StaticPool
    return create_engine(url, **options)


def init_database(url: str = None):
    """Initialize the module-level engine and session factory"""
    global engine, SessionLocal, DATABASE_AVAILABLE

    url = url or settings.DATABASE_URL or default_sqlite_url()
    try:
        engine = create_db_engine(url)
        if url.startswith("postgresql"):
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("[DB] PostgreSQL connection established")
        else:
            logger.info(f"[DB] Using SQLite: {url}")

        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        DATABASE_AVAILABLE = True
    except Exception as e:
        logger.error(f"[DB] Database connection failed: {e}")
        DATABASE_AVAILABLE = False


# Initialize on module load
init_database()


def get_db():
    """Dependency to get database session; yields None when the database is unavailable"""
    if not DATABASE_AVAILABLE or SessionLocal is None:
        yield None
        return

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables on the given engine (default: the module engine)"""
    bind = bind if bind is not None else engine
    if bind is not None:
        Base.metadata.create_all(bind=bind)
