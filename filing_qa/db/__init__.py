# =============================================================================
# Database Package
# =============================================================================
# Provides the async SQLAlchemy engine, per-request sessions, and ORM models.
#
# Key exports:
#   - get_async_session: FastAPI dependency for database sessions
#   - Base: SQLAlchemy declarative base for ORM models
#   - Document, Question, DocumentStatus: the two tables and the status enum
# =============================================================================
