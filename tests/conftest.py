"""
Pytest configuration and fixtures.

Everything runs against the in-memory repository and session stores; no
database is needed.
"""

import pytest

from multipersona.events import EventBus
from multipersona.personas.events import PersonaActivated, PersonaDeactivated, PersonaSwitched
from multipersona.personas.manager import PersonaManager
from multipersona.personas.memory import InMemoryPersonaRepository, InMemorySessionRegistry
from multipersona.personas.types import Persona, Principal


class EventRecorder:
    """Collects published persona notifications (runs inline on the bus)."""

    def __init__(self, bus: EventBus) -> None:
        self.events = []
        for event_type in (PersonaActivated, PersonaSwitched, PersonaDeactivated):
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self):
        self.events.clear()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def alice():
    return Principal(id=1)


@pytest.fixture
def bob():
    return Principal(id=2)


@pytest.fixture
def work_persona():
    return Persona(
        id=1,
        name="Work",
        context={"role": "admin", "permissions": ["read", "write"], "department": "IT"},
        owner_id=1,
    )


@pytest.fixture
def personal_persona():
    return Persona(id=2, name="Personal", context={"role": "friend"}, owner_id=1)


@pytest.fixture
def bob_persona():
    return Persona(id=3, name="Bob at work", context={"role": "viewer"}, owner_id=2)


@pytest.fixture
def repository(work_persona, personal_persona, bob_persona):
    return InMemoryPersonaRepository([work_persona, personal_persona, bob_persona])


@pytest.fixture
def sessions():
    return InMemorySessionRegistry()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def make_manager(repository, sessions, bus, alice):
    """Factory for managers sharing one repository, bus and session registry."""

    def _make(principal=alice, resolver=True):
        return PersonaManager(
            repository=repository,
            session=sessions(principal.id),
            publisher=bus,
            principal_resolver=(lambda: principal) if resolver else None,
        )

    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager()
