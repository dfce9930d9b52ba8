"""Tests for the permission cache and switch audit listeners."""
from unittest.mock import MagicMock

import pytest

from multipersona.cache import TTLCache
from multipersona.events import EventBus
from multipersona.personas.events import PersonaActivated, PersonaSwitched
from multipersona.personas.listeners import (
    CachePersonaPermissions,
    LogPersonaSwitch,
    register_listeners,
)
from multipersona.personas.manager import PersonaManager
from multipersona.personas.memory import InMemorySessionStore
from multipersona.personas.types import Persona, Principal


class TestCachePersonaPermissions:
    """Tests for CachePersonaPermissions."""

    @pytest.mark.asyncio
    async def test_caches_snapshot(self, work_persona):
        cache = TTLCache()
        listener = CachePersonaPermissions(cache, ttl=3600, prefix="multipersona:permissions")

        await listener(PersonaActivated(persona=work_persona, principal=Principal(id=1)))

        entry = cache.get("multipersona:permissions:1:1")
        assert entry["persona_id"] == 1
        assert entry["persona_name"] == "Work"
        assert entry["permissions"] == ["read", "write"]
        assert entry["role"] == "admin"
        assert entry["context"]["department"] == "IT"
        assert "cached_at" in entry

    @pytest.mark.asyncio
    async def test_uses_ttl(self, work_persona):
        cache = MagicMock()
        listener = CachePersonaPermissions(cache, ttl=3600, prefix="p")

        await listener(PersonaActivated(persona=work_persona, principal=Principal(id=1)))

        key, _, ttl = cache.put.call_args.args
        assert key == "p:1:1"
        assert ttl == 3600

    @pytest.mark.asyncio
    async def test_defaults_from_settings(self, work_persona):
        cache = TTLCache()
        listener = CachePersonaPermissions(cache)

        await listener(PersonaActivated(persona=work_persona, principal=Principal(id=1)))

        assert cache.has(listener.cache_key(1, 1))
        assert 3500 < cache.ttl(listener.cache_key(1, 1)) <= 3600

    @pytest.mark.asyncio
    async def test_no_principal_no_cache(self, work_persona):
        cache = MagicMock()
        listener = CachePersonaPermissions(cache, ttl=60)

        await listener(PersonaActivated(persona=work_persona))

        cache.put.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_permissions_and_role(self):
        cache = TTLCache()
        listener = CachePersonaPermissions(cache, ttl=60, prefix="p")
        persona = Persona(id=9, name="Plain", owner_id=1)

        await listener(PersonaActivated(persona=persona, principal=Principal(id=1)))

        entry = cache.get("p:1:9")
        assert entry["permissions"] == []
        assert entry["role"] is None
        assert entry["context"] == {}


class TestLogPersonaSwitch:
    """Tests for LogPersonaSwitch."""

    @pytest.mark.asyncio
    async def test_logs_switch(self, work_persona, personal_persona):
        audit = MagicMock()
        listener = LogPersonaSwitch(audit)
        event = PersonaSwitched(
            persona=personal_persona,
            previous_persona=work_persona,
            principal=Principal(id=1),
        )

        await listener(event)

        audit.info.assert_called_once()
        name = audit.info.call_args.args[0]
        fields = audit.info.call_args.kwargs
        assert name == "persona_switched"
        assert fields["user_id"] == 1
        assert fields["user_type"] == "user"
        assert fields["previous_persona"] == "Work"
        assert fields["previous_persona_role"] == "admin"
        assert fields["new_persona"] == "Personal"
        assert fields["new_persona_role"] == "friend"
        assert fields["is_initial_activation"] is False
        assert fields["timestamp"] == event.occurred_at.isoformat()

    @pytest.mark.asyncio
    async def test_optional_fields_absent(self):
        """No previous persona, no principal, no role: still one line, no error."""
        audit = MagicMock()
        listener = LogPersonaSwitch(audit)

        await listener(PersonaSwitched(persona=Persona(id=5, name="Solo", owner_id=1)))

        fields = audit.info.call_args.kwargs
        assert fields["user_id"] is None
        assert fields["user_type"] is None
        assert fields["previous_persona"] is None
        assert fields["previous_persona_role"] is None
        assert fields["new_persona_role"] is None
        assert fields["is_initial_activation"] is True

    @pytest.mark.asyncio
    async def test_default_logger(self, work_persona, personal_persona):
        await LogPersonaSwitch()(PersonaSwitched(persona=personal_persona, previous_persona=work_persona))


class TestRegisteredListeners:
    """End-to-end: manager -> bus -> listeners."""

    @pytest.mark.asyncio
    async def test_activation_populates_cache(self, repository, work_persona):
        bus = EventBus()
        cache = TTLCache()
        cache_listener, _ = register_listeners(bus, cache)
        manager = PersonaManager(
            repository, InMemorySessionStore(), bus, principal_resolver=lambda: Principal(id=1)
        )

        await manager.set_active(work_persona)
        await bus.drain()

        assert cache.get(cache_listener.cache_key(1, work_persona.id))["persona_name"] == "Work"

    @pytest.mark.asyncio
    async def test_registers_on_the_right_events(self):
        bus = EventBus()
        cache_listener, audit_listener = register_listeners(bus, TTLCache())

        assert bus.subscribers(PersonaActivated) == [cache_listener]
        assert bus.subscribers(PersonaSwitched) == [audit_listener]

    @pytest.mark.asyncio
    async def test_listener_failure_keeps_state(self, repository, work_persona):
        """A crashing cache backend does not undo the activation."""
        bus = EventBus()
        cache = MagicMock()
        cache.put.side_effect = RuntimeError("cache down")
        register_listeners(bus, cache)
        session = InMemorySessionStore()
        manager = PersonaManager(repository, session, bus, principal_resolver=lambda: Principal(id=1))

        await manager.set_active(work_persona)
        await bus.drain()

        assert await session.get("active_persona_id") == work_persona.id
        assert await manager.id() == work_persona.id
