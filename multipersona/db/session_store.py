"""Per-principal session slots stored in PostgreSQL.

Each (principal_id, key) row holds one JSON value. Writes are single-row
upserts, so get/put/forget are atomic per key.
"""
from typing import Any, Optional

from psycopg.types.json import Jsonb

from multipersona.db.connection import get_connection
from multipersona.personas.types import PersonaId


class SessionStore:
    """Async key-value slot for one principal.

    Usage:
        await SessionStore.create_tables()
        session = SessionStore(principal_id="42")
        await session.put("active_persona_id", 7)
    """

    def __init__(self, principal_id: PersonaId) -> None:
        """Initialize store for a principal.

        Args:
            principal_id: ID of the principal owning the session.
        """
        self._principal_id = str(principal_id)

    @staticmethod
    async def create_tables() -> None:
        """Create the session table if it doesn't exist."""
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("""
                    CREATE TABLE IF NOT EXISTS persona_sessions (
                        principal_id TEXT NOT NULL,
                        key TEXT NOT NULL,
                        value JSONB,
                        updated_at TIMESTAMPTZ DEFAULT NOW(),
                        PRIMARY KEY (principal_id, key)
                    )
                """)
            await conn.commit()

    async def get(self, key: str) -> Optional[Any]:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT value FROM persona_sessions
                    WHERE principal_id = %s AND key = %s
                    """,
                    (self._principal_id, key),
                )
                row = await cur.fetchone()
        return row[0] if row else None

    async def put(self, key: str, value: Any) -> None:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO persona_sessions (principal_id, key, value, updated_at)
                    VALUES (%s, %s, %s, NOW())
                    ON CONFLICT (principal_id, key)
                    DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                    """,
                    (self._principal_id, key, Jsonb(value)),
                )
            await conn.commit()

    async def forget(self, key: str) -> None:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    DELETE FROM persona_sessions
                    WHERE principal_id = %s AND key = %s
                    """,
                    (self._principal_id, key),
                )
            await conn.commit()
