"""Tests for the role → capability mapping."""

from __future__ import annotations

import pytest

from chapterdesk.access.capabilities import (
    NO_CAPABILITIES,
    capabilities_for,
    has_capability,
    is_restricted,
    require,
    require_known_role,
)
from chapterdesk.errors import PermissionDenied
from chapterdesk.models.enums import Role
from chapterdesk.schemas.content import Principal


class TestCapabilitiesFor:
    """capabilities_for is total over roles and fails closed."""

    def test_restricted_has_nothing(self):
        caps = capabilities_for(Role.RESTRICTED)
        assert caps == NO_CAPABILITIES
        assert caps.granted() == []

    def test_unrestricted(self):
        caps = capabilities_for(Role.UNRESTRICTED)
        assert caps.can_write_direct
        assert caps.can_review
        assert caps.can_delete
        assert caps.can_view_audit
        assert not caps.can_export_audit

    def test_superuser_has_everything(self):
        caps = capabilities_for("superuser")
        assert caps.granted() == [
            "can_write_direct",
            "can_review",
            "can_delete",
            "can_view_audit",
            "can_export_audit",
        ]

    @pytest.mark.parametrize("role", ["admin", "", "SUPERUSER", None, "blog_editor"])
    def test_unknown_roles_are_denied(self, role):
        assert capabilities_for(role) == NO_CAPABILITIES

    def test_accepts_plain_strings(self):
        assert capabilities_for("unrestricted") == capabilities_for(Role.UNRESTRICTED)


class TestRequire:
    """require / has_capability / require_known_role."""

    def test_require_passes_with_capability(self):
        require(Principal(id="bob", role="unrestricted"), "can_review")

    def test_require_raises_permission_denied(self):
        alice = Principal(id="alice", role="restricted")
        with pytest.raises(PermissionDenied) as exc_info:
            require(alice, "can_write_direct")
        assert exc_info.value.actor_id == "alice"
        assert exc_info.value.capability == "can_write_direct"

    def test_unknown_capability_name_is_a_programming_error(self):
        with pytest.raises(ValueError, match="Unknown capability"):
            has_capability(Principal(id="bob", role="superuser"), "can_fly")

    def test_require_known_role_rejects_unknown(self):
        with pytest.raises(PermissionDenied):
            require_known_role(Principal(id="mallory", role="root"))

    def test_require_known_role_accepts_restricted(self):
        require_known_role(Principal(id="alice", role="restricted"))

    def test_is_restricted(self):
        assert is_restricted(Principal(id="alice", role="restricted"))
        assert is_restricted(Principal(id="mallory", role="root"))
        assert not is_restricted(Principal(id="bob", role="unrestricted"))

    def test_principal_is_frozen(self):
        principal = Principal(id="alice", role="restricted")
        with pytest.raises(Exception):
            principal.role = "superuser"  # type: ignore[misc]
