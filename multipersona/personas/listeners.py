"""Default subscribers for persona notifications.

Both run as background handlers on the event bus; the manager does not know
they exist.
"""
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from multipersona.cache import TTLCache
from multipersona.config import get_settings
from multipersona.events import EventBus
from multipersona.personas.events import PersonaActivated, PersonaSwitched
from multipersona.personas.types import PersonaId

logger = structlog.get_logger()


class CachePersonaPermissions:
    """Caches a permission snapshot per (principal, persona) on activation.

    Nothing is cached when the activation has no acting principal: the cache
    is keyed by principal.
    """

    def __init__(
        self,
        cache: TTLCache,
        ttl: Optional[int] = None,
        prefix: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self._cache = cache
        self._ttl = ttl if ttl is not None else settings.permission_cache_ttl
        self._prefix = prefix if prefix is not None else settings.permission_cache_prefix

    def cache_key(self, principal_id: PersonaId, persona_id: PersonaId) -> str:
        return f"{self._prefix}:{principal_id}:{persona_id}"

    async def __call__(self, event: PersonaActivated) -> None:
        if event.principal is None:
            return

        persona = event.persona
        context = persona.context.as_dict()
        key = self.cache_key(event.principal.id, persona.id)

        self._cache.put(
            key,
            {
                "persona_id": persona.id,
                "persona_name": persona.name,
                "context": context,
                "permissions": persona.permissions or [],
                "role": persona.role,
                "cached_at": datetime.now(timezone.utc).isoformat(),
            },
            self._ttl,
        )
        logger.debug("persona_permissions_cached", key=key, ttl=self._ttl)


class LogPersonaSwitch:
    """Writes one audit log line per persona switch."""

    def __init__(self, audit_logger: Any = None) -> None:
        self._logger = audit_logger if audit_logger is not None else logger

    async def __call__(self, event: PersonaSwitched) -> None:
        summary = event.summary()
        user = summary["user"] or {}
        previous = summary["previous_persona"] or {}
        new = summary["new_persona"]

        self._logger.info(
            "persona_switched",
            user_id=user.get("id"),
            user_type=user.get("type"),
            previous_persona=previous.get("name"),
            previous_persona_role=(previous.get("context") or {}).get("role"),
            new_persona=new["name"],
            new_persona_role=new["context"].get("role"),
            is_initial_activation=summary["is_initial_activation"],
            timestamp=summary["timestamp"],
        )


def register_listeners(bus: EventBus, cache: TTLCache) -> tuple[CachePersonaPermissions, LogPersonaSwitch]:
    """Subscribe the default listeners. Call once at startup."""
    cache_listener = CachePersonaPermissions(cache)
    audit_listener = LogPersonaSwitch()
    bus.subscribe(PersonaActivated, cache_listener)
    bus.subscribe(PersonaSwitched, audit_listener)
    logger.info("persona_listeners_registered")
    return cache_listener, audit_listener
