"""Persona repository backed by PostgreSQL.

Each call borrows a pooled connection (see connection.py), so one store
instance can be shared across requests.
"""
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from multipersona.config import get_settings
from multipersona.db.connection import get_connection
from multipersona.personas.types import Persona, PersonaContext, PersonaId

logger = structlog.get_logger()

PERSONA_COLUMNS = "id, name, context, is_active, owner_id, owner_type, created_at, updated_at"

# Columns update() may change; id and ownership are immutable
UPDATABLE_COLUMNS = frozenset({"name", "context", "is_active"})


def _row_to_persona(row: dict[str, Any]) -> Persona:
    return Persona(
        id=row["id"],
        name=row["name"],
        context=PersonaContext.model_validate(row["context"] or {}),
        owner_id=row["owner_id"],
        owner_type=row["owner_type"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _parse_id(persona_id: PersonaId) -> Optional[int]:
    try:
        return int(persona_id)
    except (TypeError, ValueError):
        return None


class PersonaStore:
    """Async CRUD for persona records using raw SQL.

    Usage:
        store = PersonaStore()
        await store.create_tables()
        persona = await store.create(owner_id=42, name="Work", context={"role": "admin"})
    """

    def __init__(self, table: Optional[str] = None) -> None:
        self._table_name = table or get_settings().persona_table
        self._table = sql.Identifier(self._table_name)

    async def create_tables(self) -> None:
        """Create the personas table and indexes if they don't exist."""
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql.SQL("""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id BIGSERIAL PRIMARY KEY,
                        name TEXT NOT NULL,
                        context JSONB NOT NULL DEFAULT '{{}}',
                        is_active BOOLEAN NOT NULL DEFAULT FALSE,
                        owner_id TEXT NOT NULL,
                        owner_type TEXT NOT NULL DEFAULT 'user',
                        created_at TIMESTAMPTZ DEFAULT NOW(),
                        updated_at TIMESTAMPTZ DEFAULT NOW()
                    )
                """).format(table=self._table))
                await cur.execute(sql.SQL("""
                    CREATE INDEX IF NOT EXISTS {index} ON {table} (owner_id, owner_type)
                """).format(
                    index=sql.Identifier(f"idx_{self._table_name}_owner"),
                    table=self._table,
                ))
                await cur.execute(sql.SQL("""
                    CREATE INDEX IF NOT EXISTS {index} ON {table} (owner_id, is_active)
                """).format(
                    index=sql.Identifier(f"idx_{self._table_name}_owner_active"),
                    table=self._table,
                ))
            await conn.commit()
        logger.info("persona_store_initialized")

    async def find_by_id(self, persona_id: PersonaId) -> Optional[Persona]:
        """Get persona by ID. Non-numeric IDs never match."""
        parsed = _parse_id(persona_id)
        if parsed is None:
            return None

        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("SELECT {columns} FROM {table} WHERE id = %s").format(
                        columns=sql.SQL(PERSONA_COLUMNS),
                        table=self._table,
                    ),
                    (parsed,),
                )
                row = await cur.fetchone()

        return _row_to_persona(row) if row else None

    async def find_by_owner(self, owner_id: PersonaId) -> list[Persona]:
        """List personas owned by a principal, oldest first."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("SELECT {columns} FROM {table} WHERE owner_id = %s ORDER BY id").format(
                        columns=sql.SQL(PERSONA_COLUMNS),
                        table=self._table,
                    ),
                    (str(owner_id),),
                )
                rows = await cur.fetchall()

        return [_row_to_persona(row) for row in rows]

    async def update(self, persona: Persona, **fields: Any) -> Persona:
        """Update name, context and/or is_active.

        Raises:
            ValueError: If a field is not updatable or the persona is gone.
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update persona fields: {', '.join(sorted(unknown))}")

        values = dict(fields)
        if "context" in values:
            context = values["context"]
            if isinstance(context, PersonaContext):
                context = context.as_dict()
            values["context"] = Jsonb(context or {})
        values["updated_at"] = datetime.now(timezone.utc)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in values
        )

        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("UPDATE {table} SET {assignments} WHERE id = %s RETURNING {columns}").format(
                        table=self._table,
                        assignments=assignments,
                        columns=sql.SQL(PERSONA_COLUMNS),
                    ),
                    (*values.values(), _parse_id(persona.id)),
                )
                row = await cur.fetchone()
            await conn.commit()

        if not row:
            raise ValueError(f"Persona not found: {persona.id}")

        return _row_to_persona(row)

    async def create(
        self,
        owner_id: PersonaId,
        name: str,
        context: Optional[dict[str, Any]] = None,
        owner_type: str = "user",
        is_active: bool = False,
    ) -> Persona:
        now = datetime.now(timezone.utc)

        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    sql.SQL("""
                        INSERT INTO {table} (name, context, is_active, owner_id, owner_type, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        RETURNING {columns}
                    """).format(table=self._table, columns=sql.SQL(PERSONA_COLUMNS)),
                    (name, Jsonb(context or {}), is_active, str(owner_id), owner_type, now, now),
                )
                row = await cur.fetchone()
            await conn.commit()

        logger.info("persona_stored", persona_id=row["id"], owner_id=str(owner_id))
        return _row_to_persona(row)
