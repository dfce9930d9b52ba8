"""Interfaces the persona manager depends on.

Concrete implementations live in ``multipersona.personas.memory`` (in-process)
and ``multipersona.db`` (PostgreSQL).
"""
from typing import Any, Optional, Protocol

from multipersona.personas.types import Persona, PersonaId


class PersonaRepository(Protocol):
    """Persona record storage."""

    async def find_by_id(self, persona_id: PersonaId) -> Optional[Persona]:
        ...

    async def find_by_owner(self, owner_id: PersonaId) -> list[Persona]:
        ...

    async def update(self, persona: Persona, **fields: Any) -> Persona:
        ...

    async def create(
        self,
        owner_id: PersonaId,
        name: str,
        context: Optional[dict[str, Any]] = None,
        owner_type: str = "user",
        is_active: bool = False,
    ) -> Persona:
        ...


class SessionStore(Protocol):
    """Key-value slot scoped to one principal's session."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def put(self, key: str, value: Any) -> None:
        ...

    async def forget(self, key: str) -> None:
        ...


class Publisher(Protocol):
    """Fire-and-forget notification channel."""

    def publish(self, event: Any) -> None:
        ...
