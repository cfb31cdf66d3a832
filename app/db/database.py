from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import os

from app.core.config import DATABASE_URL, DB_TIMEOUT_SECONDS


# Check if we should echo the SQL queries - never in production
def should_echo_sql():
    if os.getenv("ENVIRONMENT") == "production":
        return False
    return os.getenv("SQL_DEBUG", "false").lower() == "true"


echo = should_echo_sql()


# Database configuration. Every backend gets a bounded wait so a stuck
# database surfaces as an error instead of hanging the request.
def get_database_engine(url: str = DATABASE_URL, timeout: int = DB_TIMEOUT_SECONDS):
    if url.startswith("sqlite"):
        # SQLite specific configuration
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False, "timeout": timeout},
            echo=echo
        )
    elif url.startswith("mysql"):
        # MySQL specific configuration
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=3600,  # MySQL connections can be longer-lived
            pool_size=10,
            max_overflow=20,
            pool_timeout=timeout,
            connect_args={"connect_timeout": timeout, "read_timeout": timeout, "write_timeout": timeout},
            echo=echo
        )
    else:
        # PostgreSQL configuration
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=300,
            pool_timeout=timeout,
            connect_args={
                "connect_timeout": timeout,
                "options": f"-c statement_timeout={timeout * 1000}",
            },
            echo=echo
        )


engine = get_database_engine()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
