"""In-process persona repository and session store.

Used by the ``memory`` storage backend and by tests. Both keep plain dicts;
nothing survives a process restart.
"""
from datetime import datetime, timezone
from itertools import count
from typing import Any, Optional

from multipersona.personas.types import Persona, PersonaContext, PersonaId, same_id


class InMemoryPersonaRepository:
    """Persona storage backed by a dict keyed by persona ID.

    Usage:
        repository = InMemoryPersonaRepository()
        persona = await repository.create(owner_id=1, name="Work")
    """

    def __init__(self, personas: Optional[list[Persona]] = None) -> None:
        self._personas: dict[str, Persona] = {}
        self._ids = count(1)
        for persona in personas or []:
            self.add(persona)

    def add(self, persona: Persona) -> Persona:
        """Store a persona as-is (keeps its ID)."""
        self._personas[str(persona.id)] = persona
        return persona

    def remove(self, persona_id: PersonaId) -> None:
        self._personas.pop(str(persona_id), None)

    async def find_by_id(self, persona_id: PersonaId) -> Optional[Persona]:
        return self._personas.get(str(persona_id))

    async def find_by_owner(self, owner_id: PersonaId) -> list[Persona]:
        return [p for p in self._personas.values() if same_id(p.owner_id, owner_id)]

    async def update(self, persona: Persona, **fields: Any) -> Persona:
        """Replace stored fields and return the updated persona.

        Raises:
            ValueError: If the persona is not stored.
        """
        if str(persona.id) not in self._personas:
            raise ValueError(f"Persona not found: {persona.id}")
        if "context" in fields and not isinstance(fields["context"], PersonaContext):
            fields["context"] = PersonaContext.model_validate(fields["context"] or {})
        fields["updated_at"] = datetime.now(timezone.utc)
        updated = self._personas[str(persona.id)].model_copy(update=fields)
        self._personas[str(persona.id)] = updated
        return updated

    async def create(
        self,
        owner_id: PersonaId,
        name: str,
        context: Optional[dict[str, Any]] = None,
        owner_type: str = "user",
        is_active: bool = False,
    ) -> Persona:
        persona_id = next(self._ids)
        while str(persona_id) in self._personas:
            persona_id = next(self._ids)

        now = datetime.now(timezone.utc)
        persona = Persona(
            id=persona_id,
            name=name,
            context=PersonaContext.model_validate(context or {}),
            owner_id=owner_id,
            owner_type=owner_type,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        return self.add(persona)


class InMemorySessionStore:
    """Key-value slot for one principal's session."""

    def __init__(self, data: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = data if data is not None else {}

    async def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    async def put(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def forget(self, key: str) -> None:
        self._data.pop(key, None)


class InMemorySessionRegistry:
    """Hands out one session store per principal, sharing the underlying data.

    Stores returned for the same principal see each other's writes, which is
    what lets a new manager pick up the active persona set by an earlier one.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, dict[str, Any]] = {}

    def __call__(self, principal_id: PersonaId) -> InMemorySessionStore:
        return self.for_principal(principal_id)

    def for_principal(self, principal_id: PersonaId) -> InMemorySessionStore:
        data = self._sessions.setdefault(str(principal_id), {})
        return InMemorySessionStore(data)

    def clear(self) -> None:
        self._sessions.clear()
