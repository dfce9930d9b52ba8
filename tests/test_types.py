"""Tests for persona types and the access check."""
import pytest
from pydantic import ValidationError

from multipersona.personas.types import Persona, PersonaContext, Principal, same_id


class TestCanAccess:
    """Tests for Persona.can_access."""

    @pytest.mark.parametrize("resource", ["read", "write", "delete", "anything", ""])
    def test_no_permissions_allows_everything(self, resource):
        """Personas without declared permissions are allowed everything."""
        persona = Persona(id=1, name="Open", context={"role": "guest"}, owner_id=1)
        assert persona.can_access(resource) is True

    def test_listed_permissions_allowed(self, work_persona):
        assert work_persona.can_access("read") is True
        assert work_persona.can_access("write") is True

    def test_unlisted_permission_denied(self, work_persona):
        assert work_persona.can_access("delete") is False

    def test_empty_permissions_denies_everything(self):
        """An explicit empty list is not the same as no list."""
        persona = Persona(id=1, name="Locked", context={"permissions": []}, owner_id=1)
        assert persona.can_access("read") is False

    def test_membership_is_exact(self, work_persona):
        assert work_persona.can_access("READ") is False
        assert work_persona.can_access("rea") is False

    def test_extra_context_is_not_consulted(self, work_persona):
        assert work_persona.can_access("delete", {"override": True}) is False
        assert work_persona.can_access("read", {"override": False}) is True


class TestPersonaContext:
    """Tests for the context bag."""

    def test_extras_preserved(self, work_persona):
        assert work_persona.context.as_dict() == {
            "role": "admin",
            "permissions": ["read", "write"],
            "department": "IT",
        }

    def test_unset_conventional_keys_omitted(self):
        context = PersonaContext.model_validate({"theme": "dark"})
        assert context.as_dict() == {"theme": "dark"}
        assert context.role is None
        assert context.permissions is None

    def test_typed_accessors(self, work_persona):
        assert work_persona.role == "admin"
        assert work_persona.permissions == ["read", "write"]

    def test_default_context_is_empty(self):
        persona = Persona(id=1, name="Bare", owner_id=1)
        assert persona.context.as_dict() == {}

    @pytest.mark.parametrize("role", [5, {"name": "admin", "level": 3}, ["a", "b"], True])
    def test_role_accepts_any_json_value(self, role):
        persona = Persona(id=1, name="X", context={"role": role}, owner_id=1)

        assert persona.role == role
        assert persona.context.as_dict() == {"role": role}

    def test_malformed_permissions_rejected(self):
        with pytest.raises(ValidationError):
            Persona(id=1, name="X", context={"permissions": "read"}, owner_id=1)

    def test_context_is_frozen(self, work_persona):
        with pytest.raises(ValidationError):
            work_persona.context.permissions = ("everything",)

    def test_accessors_return_copies(self, work_persona):
        work_persona.permissions.append("delete")
        work_persona.context.as_dict()["permissions"].append("delete")

        assert work_persona.permissions == ["read", "write"]
        assert work_persona.can_access("delete") is False

    def test_nested_role_is_copied(self):
        persona = Persona(id=1, name="X", context={"role": {"name": "admin"}}, owner_id=1)

        persona.role["name"] = "root"

        assert persona.role == {"name": "admin"}


class TestOwnership:
    """Tests for ID comparison and ownership."""

    def test_same_id_across_types(self):
        assert same_id(5, "5") is True
        assert same_id("abc", "abc") is True

    def test_same_id_different(self):
        assert same_id(5, 6) is False

    def test_same_id_none_never_matches(self):
        assert same_id(None, None) is False
        assert same_id(None, 1) is False

    def test_owned_by_owner(self, work_persona):
        assert work_persona.is_owned_by(Principal(id=1)) is True
        assert work_persona.is_owned_by(Principal(id="1")) is True

    def test_not_owned_by_other(self, work_persona):
        assert work_persona.is_owned_by(Principal(id=2)) is False

    def test_persona_is_immutable(self, work_persona):
        with pytest.raises(Exception):
            work_persona.name = "Renamed"
