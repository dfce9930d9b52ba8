"""Owner-side persona operations.

Everything here goes through the owner's list of personas (the relationship
view). ``PersonaManager.can_activate`` compares ``owner_id`` directly, which
is the authoritative answer; ``owns`` can disagree with it when the
repository's owner listing is out of step with the persona records.
"""
from typing import Any, Optional

import structlog

from multipersona.personas.contracts import PersonaRepository
from multipersona.personas.errors import PersonaNotFoundError
from multipersona.personas.manager import PersonaManager
from multipersona.personas.types import Persona, PersonaRef, Principal, same_id

logger = structlog.get_logger()


class PersonaOwner:
    """A principal's view of the personas it owns."""

    def __init__(self, principal: Principal, repository: PersonaRepository) -> None:
        self.principal = principal
        self._repository = repository

    async def personas(self) -> list[Persona]:
        return await self._repository.find_by_owner(self.principal.id)

    async def owns(self, persona: PersonaRef) -> bool:
        """Check membership in this owner's persona list."""
        return await self._find_owned(_persona_id(persona)) is not None

    async def active_persona(self) -> Optional[Persona]:
        """First owned persona carrying the advisory is_active flag."""
        for persona in await self.personas():
            if persona.is_active:
                return persona
        return None

    async def create_persona(self, name: str, context: Optional[dict[str, Any]] = None) -> Persona:
        persona = await self._repository.create(
            owner_id=self.principal.id,
            name=name,
            context=context or {},
            owner_type=self.principal.type,
            is_active=False,
        )
        logger.info("persona_created", persona_id=persona.id, owner_id=self.principal.id, name=name)
        return persona

    async def has_persona(self, name: str) -> bool:
        return await self.get_persona_by_name(name) is not None

    async def get_persona_by_name(self, name: str) -> Optional[Persona]:
        for persona in await self.personas():
            if persona.name == name:
                return persona
        return None

    async def activate(self, persona: PersonaRef) -> Persona:
        """Set the advisory ``is_active`` flag on an owned persona.

        Raises:
            PersonaNotFoundError: If the persona is not among this owner's personas.
        """
        target = await self._require_owned(persona)
        if target.is_active:
            return target
        updated = await self._repository.update(target, is_active=True)
        logger.debug("persona_flag_set", persona_id=updated.id, owner_id=self.principal.id)
        return updated

    async def deactivate(self, persona: PersonaRef) -> Persona:
        """Clear the advisory ``is_active`` flag on an owned persona.

        Raises:
            PersonaNotFoundError: If the persona is not among this owner's personas.
        """
        target = await self._require_owned(persona)
        if not target.is_active:
            return target
        updated = await self._repository.update(target, is_active=False)
        logger.debug("persona_flag_cleared", persona_id=updated.id, owner_id=self.principal.id)
        return updated

    async def switch_to_persona(self, persona: PersonaRef, manager: PersonaManager) -> bool:
        """Make an owned persona the active one, flags included.

        Deactivates every other owned persona, activates the target, then
        activates it on the manager.

        Returns:
            False if the persona is not among this owner's personas.
        """
        target = await self._find_owned(_persona_id(persona))
        if target is None:
            return False

        for owned in await self.personas():
            if owned.is_active and not same_id(owned.id, target.id):
                await self.deactivate(owned)

        target = await self.activate(target)
        await manager.set_active(target)
        return True

    async def _require_owned(self, persona: PersonaRef) -> Persona:
        persona_id = _persona_id(persona)
        owned = await self._find_owned(persona_id)
        if owned is None:
            raise PersonaNotFoundError(persona_id)
        return owned

    async def _find_owned(self, persona_id: Any) -> Optional[Persona]:
        for persona in await self.personas():
            if same_id(persona.id, persona_id):
                return persona
        return None


def _persona_id(persona: PersonaRef) -> Any:
    return persona.id if isinstance(persona, Persona) else persona
