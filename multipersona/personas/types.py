"""Persona type definitions.

A persona is an identity context owned by a principal. Its context bag is
open-ended: consumers put whatever they need in it, and only two keys have a
meaning here (``permissions`` for access checks, ``role`` for audit output).
"""
from copy import deepcopy
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

PersonaId = Union[int, str]


def same_id(left: Optional[PersonaId], right: Optional[PersonaId]) -> bool:
    """Compare identifiers the way they travel over the wire (as strings)."""
    if left is None or right is None:
        return False
    return str(left) == str(right)


class PersonaContext(BaseModel):
    """Immutable context bag: typed ``permissions`` plus open JSON extras.

    ``role`` is only a convention. It stays an untyped extra so any JSON value
    is accepted.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    permissions: Optional[tuple[str, ...]] = None

    @property
    def role(self) -> Any:
        return deepcopy((self.model_extra or {}).get("role"))

    def as_dict(self) -> dict[str, Any]:
        """Return a fresh JSON mapping, omitting ``permissions`` when never set."""
        return self.model_dump(mode="json", exclude_unset=True)


class Principal(BaseModel):
    """The authenticated entity on whose behalf personas are activated."""

    model_config = ConfigDict(frozen=True)

    id: PersonaId
    type: str = "user"


class Persona(BaseModel):
    """Named identity context owned by a principal."""

    model_config = ConfigDict(frozen=True)

    id: PersonaId = Field(description="Opaque unique identifier")
    name: str = Field(description="Human-readable label, not unique")
    context: PersonaContext = Field(default_factory=PersonaContext)
    owner_id: PersonaId = Field(description="ID of the owning principal")
    owner_type: str = Field(default="user", description="Type of the owning principal")
    is_active: bool = Field(
        default=False,
        description="Advisory flag: last persona activated for this owner",
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def role(self) -> Any:
        return self.context.role

    @property
    def permissions(self) -> Optional[list[str]]:
        permissions = self.context.permissions
        return list(permissions) if permissions is not None else None

    def can_access(self, resource: str, extra_context: Optional[dict[str, Any]] = None) -> bool:
        """Check whether this persona may access a resource.

        Personas that never declared ``permissions`` are allowed everything.
        ``extra_context`` is accepted for callers that pass request details;
        the flat membership check does not use it.
        """
        permissions = self.context.permissions
        if permissions is None:
            return True
        return resource in permissions

    def is_owned_by(self, principal: Principal) -> bool:
        return same_id(self.owner_id, principal.id)


PersonaRef = Union[Persona, int, str]
