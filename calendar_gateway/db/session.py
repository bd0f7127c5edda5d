"""
Database session management - SQLAlchemy engine and session factory.
This module provides the database connection used by the credential store.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from calendar_gateway.core.config import settings

# ---------------------------------------------------------------------------
# DATABASE ENGINE
# ---------------------------------------------------------------------------
# pool_pre_ping=True: check pooled connections with "SELECT 1" before use so a
# database restart does not surface as a failed token write.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# ---------------------------------------------------------------------------
# SESSION FACTORY
# ---------------------------------------------------------------------------
# SessionLocal is a class (factory), not an instance. The credential store
# opens one short-lived session per read or write.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
