"""Notifications published by the persona manager.

Each notification is an immutable record of one state transition. They are
not persisted; subscribers get them through the event bus.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional

from multipersona.personas.types import Persona, Principal


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _persona_summary(persona: Optional[Persona]) -> Optional[dict[str, Any]]:
    if persona is None:
        return None
    return {
        "id": persona.id,
        "name": persona.name,
        "context": persona.context.as_dict(),
    }


def _freeze_context(event: Any) -> None:
    object.__setattr__(event, "context", MappingProxyType(dict(event.context)))


def _principal_summary(principal: Optional[Principal]) -> Optional[dict[str, Any]]:
    if principal is None:
        return None
    return {"id": principal.id, "type": principal.type}


@dataclass(frozen=True)
class PersonaActivated:
    """A persona became the active one."""
    persona: Persona
    principal: Optional[Principal] = None
    context: Mapping[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        _freeze_context(self)

    def summary(self) -> dict[str, Any]:
        return {
            "persona": _persona_summary(self.persona),
            "user": _principal_summary(self.principal),
            "context": dict(self.context),
            "timestamp": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class PersonaSwitched:
    """The active persona changed from one persona to another."""
    persona: Persona
    previous_persona: Optional[Persona] = None
    principal: Optional[Principal] = None
    context: Mapping[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        _freeze_context(self)

    @property
    def is_initial_activation(self) -> bool:
        """True when there was no previous persona."""
        return self.previous_persona is None

    def summary(self) -> dict[str, Any]:
        return {
            "new_persona": _persona_summary(self.persona),
            "previous_persona": _persona_summary(self.previous_persona),
            "user": _principal_summary(self.principal),
            "context": dict(self.context),
            "timestamp": self.occurred_at.isoformat(),
            "is_initial_activation": self.is_initial_activation,
        }


@dataclass(frozen=True)
class PersonaDeactivated:
    """The active persona was cleared."""
    persona: Persona
    principal: Optional[Principal] = None
    context: Mapping[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        _freeze_context(self)

    def summary(self) -> dict[str, Any]:
        return {
            "persona": _persona_summary(self.persona),
            "user": _principal_summary(self.principal),
            "context": dict(self.context),
            "timestamp": self.occurred_at.isoformat(),
        }
