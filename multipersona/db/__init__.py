"""Database module for PostgreSQL persona storage.

Provides async database connection utilities using psycopg v3, a persona
repository and per-principal session slots.

Usage:
    from multipersona.db import init_db, close_db, PersonaStore, SessionStore

    # At application startup
    await init_db()
    await PersonaStore().create_tables()
    await SessionStore.create_tables()

    # Per request
    manager = PersonaManager(PersonaStore(), SessionStore(principal.id), bus)

    # At application shutdown
    await close_db()
"""
from multipersona.db.connection import close_db, get_connection, init_db
from multipersona.db.persona_store import PersonaStore
from multipersona.db.session_store import SessionStore

__all__ = [
    "get_connection",
    "init_db",
    "close_db",
    "PersonaStore",
    "SessionStore",
]
