"""Persistence for analyzed contracts."""

from app.db.session import Base, create_tables, get_db, session_scope

__all__ = ["Base", "create_tables", "get_db", "session_scope"]
