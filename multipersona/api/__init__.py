"""HTTP surface for persona management."""
from multipersona.api.app import create_app
from multipersona.api.dependencies import (
    ensure_active_persona,
    get_persona_manager,
    get_principal,
    set_persona_from_request,
)

__all__ = [
    "create_app",
    "ensure_active_persona",
    "get_persona_manager",
    "get_principal",
    "set_persona_from_request",
]
