"""Personas module."""

from multipersona.personas.errors import (
    MultiPersonaError,
    PersonaNotFoundError,
    TransientStoreError,
)
from multipersona.personas.events import (
    PersonaActivated,
    PersonaDeactivated,
    PersonaSwitched,
)
from multipersona.personas.listeners import (
    CachePersonaPermissions,
    LogPersonaSwitch,
    register_listeners,
)
from multipersona.personas.manager import PersonaManager
from multipersona.personas.memory import (
    InMemoryPersonaRepository,
    InMemorySessionRegistry,
    InMemorySessionStore,
)
from multipersona.personas.ownership import PersonaOwner
from multipersona.personas.types import Persona, PersonaContext, PersonaId, Principal

__all__ = [
    "Persona",
    "PersonaContext",
    "PersonaId",
    "Principal",
    "PersonaManager",
    "PersonaOwner",
    "PersonaActivated",
    "PersonaSwitched",
    "PersonaDeactivated",
    "CachePersonaPermissions",
    "LogPersonaSwitch",
    "register_listeners",
    "InMemoryPersonaRepository",
    "InMemorySessionStore",
    "InMemorySessionRegistry",
    "MultiPersonaError",
    "PersonaNotFoundError",
    "TransientStoreError",
]
