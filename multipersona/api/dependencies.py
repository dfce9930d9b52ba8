"""FastAPI dependencies wiring requests to the persona manager.

- get_principal: who is calling (set upstream on request.state, or a header)
- get_persona_manager: one manager per request, scoped to the principal
- ensure_active_persona: guard rejecting requests without an active persona
- set_persona_from_request: activate a persona named in the request
"""
import re
from typing import Callable, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status

from multipersona.personas.errors import PersonaNotFoundError
from multipersona.personas.manager import PersonaManager
from multipersona.personas.memory import InMemorySessionStore
from multipersona.personas.types import Principal

logger = structlog.get_logger()

# Persona IDs accepted from requests; anything else is ignored
VALID_PERSONA_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

NO_ACTIVE_PERSONA = {"error": "no_active_persona", "message": "No active persona"}


def get_principal(request: Request) -> Optional[Principal]:
    """Resolve the calling principal.

    Authentication is not handled here: an upstream middleware may put a
    Principal (or a bare ID) on ``request.state.principal``. Without it the
    request is anonymous, unless a principal header is configured; that header
    is only safe behind a proxy that sets it.
    """
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        return principal if isinstance(principal, Principal) else Principal(id=principal)

    settings = request.app.state.settings
    if not settings.principal_header:
        return None
    principal_id = request.headers.get(settings.principal_header)
    if principal_id:
        return Principal(id=principal_id)
    return None


def get_persona_manager(
    request: Request,
    principal: Optional[Principal] = Depends(get_principal),
) -> PersonaManager:
    """Build the request-scoped manager.

    Anonymous requests get a throwaway session, so nothing they activate
    outlives the request.
    """
    state = request.app.state
    session = state.sessions(principal.id) if principal is not None else InMemorySessionStore()
    return PersonaManager(
        repository=state.repository,
        session=session,
        publisher=state.bus,
        principal_resolver=lambda: principal,
        session_key=state.settings.session_key,
    )


def expects_json(request: Request) -> bool:
    """True when the caller wants a structured error rather than a redirect."""
    accept = request.headers.get("accept", "")
    requested_with = request.headers.get("x-requested-with", "")
    return "json" in accept.lower() or requested_with.lower() == "xmlhttprequest"


def ensure_active_persona(redirect_to: Optional[str] = None) -> Callable:
    """Create a dependency that requires an active persona.

    Args:
        redirect_to: Where to send interactive requests without an active
            persona. API-style requests always get a 403 with a JSON body.
    """

    async def dependency(
        request: Request,
        manager: PersonaManager = Depends(get_persona_manager),
        principal: Optional[Principal] = Depends(get_principal),
    ) -> PersonaManager:
        if await manager.has_active():
            return manager

        if request.app.state.settings.auto_activate_first and principal is not None:
            personas = await manager.for_user(principal.id)
            if personas:
                await manager.set_active(personas[0])
                logger.info(
                    "persona_auto_activated",
                    persona_id=personas[0].id,
                    principal_id=principal.id,
                )
                return manager

        if redirect_to and not expects_json(request):
            raise HTTPException(
                status_code=status.HTTP_303_SEE_OTHER,
                headers={"Location": redirect_to},
            )

        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NO_ACTIVE_PERSONA)

    return dependency


def set_persona_from_request(parameter: Optional[str] = None) -> Callable:
    """Create a dependency that activates the persona named in the request.

    Reads the query parameter (default from settings) or the persona header.
    Malformed, unknown or unauthorized IDs are ignored.
    """

    async def dependency(
        request: Request,
        manager: PersonaManager = Depends(get_persona_manager),
        principal: Optional[Principal] = Depends(get_principal),
    ) -> PersonaManager:
        settings = request.app.state.settings
        name = parameter or settings.persona_parameter
        persona_id = request.query_params.get(name) or request.headers.get(settings.persona_header)

        if not persona_id:
            return manager

        if not VALID_PERSONA_ID.match(persona_id):
            logger.debug("persona_id_ignored", reason="malformed")
            return manager

        try:
            if await manager.can_activate(persona_id, principal):
                await manager.set_active(persona_id)
            else:
                logger.debug("persona_id_ignored", persona_id=persona_id, reason="not_allowed")
        except PersonaNotFoundError:
            logger.debug("persona_id_ignored", persona_id=persona_id, reason="not_found")

        return manager

    return dependency


def require_principal(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
    """Reject anonymous requests."""
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return principal
