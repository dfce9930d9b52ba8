"""Active persona management.

One manager serves one principal's session for the duration of a request (or
any equivalent unit of work). The only state it holds is the resolved active
persona; the session store is the source of truth, so a fresh manager over the
same store sees the same active persona.

Rules:
- Only set_active with an unknown identifier raises (PersonaNotFoundError)
- Authorization answers False, never raises
- Activated is published on every activation, Switched only when another
  persona was active before, Deactivated only when something was cleared
- Store errors propagate unchanged
"""
from typing import Any, Callable, Optional

import structlog

from multipersona.config import get_settings
from multipersona.personas.contracts import PersonaRepository, Publisher, SessionStore
from multipersona.personas.errors import PersonaNotFoundError
from multipersona.personas.events import PersonaActivated, PersonaDeactivated, PersonaSwitched
from multipersona.personas.types import Persona, PersonaId, PersonaRef, Principal

logger = structlog.get_logger()

PrincipalResolver = Callable[[], Optional[Principal]]


class PersonaManager:
    """Resolves, activates, switches and clears the active persona.

    Not safe for concurrent use: callers sharing one manager must serialize
    set_active/clear themselves.
    """

    def __init__(
        self,
        repository: PersonaRepository,
        session: SessionStore,
        publisher: Publisher,
        principal_resolver: Optional[PrincipalResolver] = None,
        session_key: Optional[str] = None,
    ) -> None:
        self._repository = repository
        self._session = session
        self._publisher = publisher
        self._principal_resolver = principal_resolver
        self._session_key = session_key or get_settings().session_key
        self._current: Optional[Persona] = None
        # Stored ID that did not resolve, so misses are not re-queried
        self._missing_id: Optional[PersonaId] = None

    @property
    def session_key(self) -> str:
        return self._session_key

    async def current(self) -> Optional[Persona]:
        """Get the active persona, reading the session store on first use."""
        if self._current is not None:
            return self._current

        persona_id = await self._session.get(self._session_key)
        if persona_id is None or persona_id == "":
            return None

        if self._missing_id is not None and str(self._missing_id) == str(persona_id):
            return None

        persona = await self._repository.find_by_id(persona_id)
        if persona is None:
            logger.warning("active_persona_missing", persona_id=persona_id)
            self._missing_id = persona_id
            return None

        self._current = persona
        return persona

    async def set_active(self, persona: PersonaRef) -> "PersonaManager":
        """Activate a persona without any ownership check.

        Args:
            persona: Persona or its identifier.

        Returns:
            This manager.

        Raises:
            PersonaNotFoundError: If the identifier does not resolve.
        """
        resolved = await self._resolve(persona)
        if resolved is None:
            raise PersonaNotFoundError(persona)

        previous = await self.current()
        principal = self._resolve_principal(None)

        await self._session.put(self._session_key, resolved.id)
        self._current = resolved
        self._missing_id = None

        logger.info(
            "persona_activated",
            persona_id=resolved.id,
            persona=resolved.name,
            previous_persona_id=previous.id if previous else None,
            principal_id=principal.id if principal else None,
        )

        context = {"method": "set_active"}
        self._publisher.publish(
            PersonaActivated(persona=resolved, principal=principal, context=context)
        )
        if previous is not None:
            self._publisher.publish(
                PersonaSwitched(
                    persona=resolved,
                    previous_persona=previous,
                    principal=principal,
                    context=context,
                )
            )

        return self

    async def clear(self) -> "PersonaManager":
        """Deactivate whatever is active. No-op when nothing is active."""
        previous = await self.current()
        principal = self._resolve_principal(None)

        await self._session.forget(self._session_key)
        self._current = None
        self._missing_id = None

        if previous is not None:
            logger.info(
                "persona_cleared",
                persona_id=previous.id,
                principal_id=principal.id if principal else None,
            )
            self._publisher.publish(
                PersonaDeactivated(
                    persona=previous,
                    principal=principal,
                    context={"method": "clear"},
                )
            )

        return self

    async def for_user(self, owner_id: PersonaId) -> list[Persona]:
        """Get all personas owned by a principal."""
        return await self._repository.find_by_owner(owner_id)

    async def can_activate(
        self,
        persona: PersonaRef,
        principal: Optional[Principal] = None,
    ) -> bool:
        """Check whether a principal owns a persona.

        Falls back to the principal resolver when no principal is given.
        Ownership is decided by the stored record's owner_id alone.
        """
        return await self._owned_record(persona, self._resolve_principal(principal)) is not None

    async def switch_to(
        self,
        persona: PersonaRef,
        principal: Optional[Principal] = None,
    ) -> bool:
        """Activate a persona if the principal owns it.

        Returns:
            True if activated, False if refused (nothing changes).
        """
        acting = self._resolve_principal(principal)
        record = await self._owned_record(persona, acting)
        if record is None:
            logger.info(
                "persona_switch_denied",
                persona_id=persona.id if isinstance(persona, Persona) else persona,
                principal_id=acting.id if acting else None,
            )
            return False

        await self.set_active(record)
        return True

    async def id(self) -> Optional[PersonaId]:
        persona = await self.current()
        return persona.id if persona else None

    async def name(self) -> Optional[str]:
        persona = await self.current()
        return persona.name if persona else None

    async def context(self) -> dict[str, Any]:
        persona = await self.current()
        return persona.context.as_dict() if persona else {}

    async def has_active(self) -> bool:
        return await self.current() is not None

    async def _resolve(self, persona: PersonaRef) -> Optional[Persona]:
        if isinstance(persona, Persona):
            return persona
        if persona is None or persona == "":
            return None
        return await self._repository.find_by_id(persona)

    async def _owned_record(
        self,
        persona: PersonaRef,
        principal: Optional[Principal],
    ) -> Optional[Persona]:
        # Persona objects are re-read so a stale or forged owner_id is not trusted
        if principal is None:
            return None
        persona_id = persona.id if isinstance(persona, Persona) else persona
        record = await self._resolve(persona_id)
        if record is None or not record.is_owned_by(principal):
            return None
        return record

    def _resolve_principal(self, principal: Optional[Principal]) -> Optional[Principal]:
        if principal is not None:
            return principal
        if self._principal_resolver is None:
            return None
        return self._principal_resolver()
