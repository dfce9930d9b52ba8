"""Persona routes."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from multipersona.api.dependencies import (
    ensure_active_persona,
    get_persona_manager,
    require_principal,
    set_persona_from_request,
)
from multipersona.personas.manager import PersonaManager
from multipersona.personas.ownership import PersonaOwner
from multipersona.personas.types import Persona, PersonaContext, Principal

logger = structlog.get_logger()

router = APIRouter(prefix="/personas", tags=["personas"])


class PersonaCreate(BaseModel):
    """Request body for creating a persona."""
    name: str = Field(..., min_length=1, max_length=255)
    context: PersonaContext = Field(default_factory=PersonaContext)


class AccessCheck(BaseModel):
    resource: str
    allowed: bool


@router.get("", response_model=list[Persona])
async def list_personas(
    principal: Principal = Depends(require_principal),
    manager: PersonaManager = Depends(get_persona_manager),
) -> list[Persona]:
    """List the caller's personas."""
    return await manager.for_user(principal.id)


@router.post("", response_model=Persona, status_code=status.HTTP_201_CREATED)
async def create_persona(
    body: PersonaCreate,
    request: Request,
    principal: Principal = Depends(require_principal),
) -> Persona:
    """Create a persona owned by the caller."""
    owner = PersonaOwner(principal, request.app.state.repository)
    return await owner.create_persona(body.name, body.context.as_dict())


@router.get("/current", response_model=Persona)
async def current_persona(
    manager: PersonaManager = Depends(set_persona_from_request()),
) -> Persona:
    """Get the active persona (a persona ID in the request activates it first)."""
    persona: Optional[Persona] = await manager.current()
    if persona is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active persona")
    return persona


@router.post("/{persona_id}/activate", response_model=Persona)
async def activate_persona(
    persona_id: str,
    principal: Principal = Depends(require_principal),
    manager: PersonaManager = Depends(get_persona_manager),
) -> Persona:
    """Switch the caller to one of their personas."""
    if not await manager.switch_to(persona_id, principal):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "persona_not_allowed", "persona_id": persona_id},
        )
    return await manager.current()


@router.delete("/current", status_code=status.HTTP_204_NO_CONTENT)
async def clear_persona(
    manager: PersonaManager = Depends(get_persona_manager),
) -> Response:
    """Deactivate the active persona, if any."""
    await manager.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/current/access/{resource}", response_model=AccessCheck)
async def check_access(
    resource: str,
    manager: PersonaManager = Depends(ensure_active_persona()),
) -> AccessCheck:
    """Check whether the active persona may access a resource."""
    persona = await manager.current()
    return AccessCheck(resource=resource, allowed=persona.can_access(resource))
