from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from database.base import Base
from core.config import settings

# Register every model on Base.metadata and the mapper registry
from models import user, order, offer, message, rating, wallet, notification  # noqa: F401

def is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")

def build_engine(database_url: str) -> Engine:
    """Create the engine for a database URL.

    An in-memory SQLite database exists only inside one connection, so every
    session shares it through StaticPool. File databases and servers give each
    session its own pooled connection.
    """
    if is_memory_sqlite(database_url):
        return create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False}
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)

# Create database engine
engine = build_engine(settings.DATABASE_URL)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create all tables
def create_tables():
    Base.metadata.create_all(bind=engine)

def drop_tables():
    Base.metadata.drop_all(bind=engine)

# Dependency to get database session
def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
