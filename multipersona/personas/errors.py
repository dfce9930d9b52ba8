"""Error types for persona management.

Authorization denial is not an error: ``can_activate`` and ``switch_to``
answer with ``False`` instead of raising.
"""
from typing import Optional

from multipersona.personas.types import PersonaId


class MultiPersonaError(Exception):
    """Base error for persona operations."""
    pass


class PersonaNotFoundError(MultiPersonaError, LookupError):
    """Identifier does not resolve to a persona."""

    def __init__(self, persona_id: Optional[PersonaId]):
        self.persona_id = persona_id
        super().__init__(f"Persona not found: {persona_id}")


class TransientStoreError(MultiPersonaError):
    """Backing store is unavailable. Callers may retry; the manager does not."""
    pass
